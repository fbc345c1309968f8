"""Envelopes API routes for issuing signature requests."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from parliament.api.auth import require_service_key
from parliament.models import get_db
from parliament.schemas import StartEnvelopeRequest, StartEnvelopeResponse
from parliament.services.envelopes import envelope_service

router = APIRouter(tags=["envelopes"])


@router.post(
    "/start-signature-envelope",
    response_model=StartEnvelopeResponse,
    dependencies=[Depends(require_service_key)],
)
async def start_signature_envelope(
    request: StartEnvelopeRequest,
    db: AsyncSession = Depends(get_db),
):
    """Issue (or reuse) the envelope for a governance record and invite its parties."""
    return await envelope_service.start_envelope(db, request)
