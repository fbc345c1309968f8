"""Signing API routes for the signer-facing flow."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from parliament.models import get_db
from parliament.schemas import (
    CompleteSignatureRequest,
    CompleteSignatureResponse,
    SigningContextRequest,
    SigningContextResponse,
)
from parliament.services.downstream import DownstreamClient, get_downstream_client
from parliament.services.envelopes import envelope_service
from parliament.services.signing import signing_service

router = APIRouter(tags=["signing"])


@router.post("/complete-signature", response_model=CompleteSignatureResponse)
async def complete_signature(
    request: CompleteSignatureRequest,
    db: AsyncSession = Depends(get_db),
    downstream: DownstreamClient = Depends(get_downstream_client),
):
    """
    Complete one party's signature.

    When this signs the last party, the signed PDF with its certificate
    page is produced and handed to Minute Book ingest and certification.
    """
    return await signing_service.complete_signature(db, request, downstream)


@router.post("/get-signing-context", response_model=SigningContextResponse)
async def get_signing_context(
    request: SigningContextRequest,
    db: AsyncSession = Depends(get_db),
):
    """Load the envelope, party, entity and record a signer is about to sign."""
    return await envelope_service.get_signing_context(db, request)
