"""Minute Book API routes: ingest and certification, called by sibling functions."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from parliament.api.auth import require_service_key
from parliament.models import get_db
from parliament.schemas import (
    CertificationResponse,
    CertifyRequest,
    IngestRequest,
    IngestResponse,
)
from parliament.services.certify import certification_service
from parliament.services.ingest import ingest_service

router = APIRouter(tags=["minute-book"], dependencies=[Depends(require_service_key)])


@router.post("/odp-pdf-ingest", response_model=IngestResponse)
async def ingest_document(
    request: IngestRequest,
    db: AsyncSession = Depends(get_db),
):
    """Register a stored PDF in the entity's Minute Book."""
    return await ingest_service.ingest(db, request)


@router.post("/odp-pdf-certify", response_model=CertificationResponse)
async def certify_document(
    request: CertifyRequest,
    db: AsyncSession = Depends(get_db),
):
    """Produce the hash-certified artifact of a signed envelope."""
    return await certification_service.certify(db, request.envelope_id, request.force_regen)
