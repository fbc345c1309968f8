"""Public verification routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from parliament.models import get_db
from parliament.schemas import VerifyCertificateResponse
from parliament.services.verification import verification_service

router = APIRouter(tags=["verification"])


@router.get("/verify-certificate", response_model=VerifyCertificateResponse)
async def verify_certificate(
    envelope_id: str | None = None,
    hash: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Check an envelope's certificate against what is actually stored."""
    return await verification_service.verify(db, envelope_id, presented_hash=hash)
