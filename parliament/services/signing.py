"""Signature completion: mark a party signed and certify the envelope once everyone has."""

import base64
import binascii
import io
import time
from dataclasses import dataclass
from typing import Any

from PIL import Image, UnidentifiedImageError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parliament.core.config import get_settings
from parliament.core.exceptions import (
    EnvelopeNotFoundError,
    InvalidRequestError,
    PartyNotFoundError,
    StorageError,
)
from parliament.core.logger import get_logger
from parliament.core.security import build_verify_url, enforce_party_token
from parliament.models import (
    Entity,
    EnvelopeStatus,
    GovernanceRecord,
    PartyStatus,
    SignatureEnvelope,
    SignatureEventType,
    SignatureParty,
    to_iso,
)
from parliament.schemas import CompleteSignatureRequest
from parliament.services.audit import audit_service
from parliament.services.certificate import (
    SignatureCertificateContext,
    certificate_renderer,
)
from parliament.services.downstream import DownstreamClient
from parliament.services.envelope_state import compute_status, envelope_state
from parliament.services.hashing import sha256_hex
from parliament.services.locator import (
    canonicalize_resolutions_path,
    document_locator,
    safe_text,
    to_signed_path,
)
from parliament.services.storage import storage_service

settings = get_settings()
logger = get_logger(__name__)

PNG_DATA_URL_PREFIX = "data:image/png;base64,"
CERTIFICATE_VERSION = 1


@dataclass
class SigningActors:
    """Rows loaded for one completion request."""

    envelope: SignatureEnvelope
    party: SignatureParty
    entity: Entity | None
    record: GovernanceRecord | None


def decode_png_data_url(data_url: str) -> bytes:
    """Decode and validate a ``data:image/png;base64,`` URL."""
    if not data_url.startswith(PNG_DATA_URL_PREFIX):
        raise ValueError("not a PNG data URL")

    png_bytes = base64.b64decode(data_url[len(PNG_DATA_URL_PREFIX):], validate=True)
    with Image.open(io.BytesIO(png_bytes)) as img:
        if img.format != "PNG":
            raise ValueError(f"unexpected image format {img.format}")
        img.verify()
    return png_bytes


def resolve_verify_url(envelope: SignatureEnvelope) -> str:
    return safe_text((envelope.meta or {}).get("verify_url")) or build_verify_url(envelope.id)


class SigningService:
    """Runs the completion flow for one party of an envelope."""

    async def load_actors(
        self,
        db: AsyncSession,
        envelope_id: str,
        party_id: str,
    ) -> SigningActors:
        """Load the envelope and the party scoped to it, or raise 404."""
        envelope = await db.get(SignatureEnvelope, envelope_id, populate_existing=True)
        if not envelope:
            raise EnvelopeNotFoundError()

        result = await db.execute(
            select(SignatureParty)
            .where(
                SignatureParty.id == party_id,
                SignatureParty.envelope_id == envelope_id,
            )
            .execution_options(populate_existing=True)
        )
        party = result.scalar_one_or_none()
        if not party:
            raise PartyNotFoundError()

        entity = await db.get(Entity, envelope.entity_id)
        record = await db.get(GovernanceRecord, envelope.record_id)
        return SigningActors(envelope=envelope, party=party, entity=entity, record=record)

    async def complete_signature(
        self,
        db: AsyncSession,
        request: CompleteSignatureRequest,
        downstream: DownstreamClient,
    ) -> dict[str, Any]:
        """
        Complete one party's signature.

        The envelope is certified (signed PDF rendered, hashed and uploaded)
        only by the request that signs the last party, or when
        ``force_regen`` is set on an all-signed envelope.
        """
        envelope_id = safe_text(request.envelope_id)
        party_id = safe_text(request.party_id)
        if not envelope_id or not party_id:
            raise InvalidRequestError(error="envelope_id and party_id are required")

        actors = await self.load_actors(db, envelope_id, party_id)
        envelope, party = actors.envelope, actors.party

        # No state changes before the capability check
        enforce_party_token(party.party_token, request.provided_token)

        newly_signed = False
        if party.status != PartyStatus.SIGNED:
            newly_signed = await envelope_state.mark_party_signed(db, party)
            if newly_signed:
                await audit_service.record_event(
                    db,
                    envelope.id,
                    SignatureEventType.PARTY_SIGNED,
                    party_id=party.id,
                    actor_email=party.email,
                    ip_address=request.client_ip,
                    user_agent=request.user_agent,
                    data={"signed_at": to_iso(party.signed_at)},
                )

        wet_png, wet_path = await self.capture_wet_signature(db, envelope, party, request)

        parties = await envelope_state.load_parties(db, envelope.id)
        next_status = compute_status(p.status for p in parties)
        all_signed = next_status == EnvelopeStatus.COMPLETED

        logger.info(
            "signature_completed",
            envelope_id=envelope.id,
            party_id=party.id,
            newly_signed=newly_signed,
            next_status=next_status.value,
            force_regen=request.force_regen,
        )

        rendered = False
        if all_signed and (newly_signed or request.force_regen):
            rendered = await self.render_signed_document(
                db, actors, request, next_status, wet_png, wet_path
            )

        await envelope_state.apply_status(db, envelope, next_status)

        if rendered:
            await self.notify_downstream(actors, downstream, force_regen=request.force_regen)

        await db.refresh(envelope)
        return self.build_response(envelope, request)

    async def capture_wet_signature(
        self,
        db: AsyncSession,
        envelope: SignatureEnvelope,
        party: SignatureParty,
        request: CompleteSignatureRequest,
    ) -> tuple[bytes | None, str | None]:
        """Store a hand-drawn PNG signature; any failure is logged and skipped."""
        data_url = request.wet_signature_png
        if request.normalized_wet_mode != "draw" or not data_url:
            return None, None
        if not data_url.startswith(PNG_DATA_URL_PREFIX):
            logger.warning("wet_signature_not_png", envelope_id=envelope.id, party_id=party.id)
            return None, None
        if len(data_url) > settings.wet_signature_max_chars:
            logger.warning(
                "wet_signature_too_large",
                envelope_id=envelope.id,
                party_id=party.id,
                length=len(data_url),
            )
            return None, None

        try:
            png_bytes = decode_png_data_url(data_url)
        except (ValueError, binascii.Error, UnidentifiedImageError) as e:
            logger.warning("wet_signature_invalid", envelope_id=envelope.id, error=str(e))
            return None, None

        path = f"signatures/{envelope.id}/{party.id}-{int(time.time() * 1000)}.png"
        try:
            await storage_service.upload(settings.minute_book_bucket, path, png_bytes)
        except StorageError as e:
            logger.error("wet_signature_upload_failed", envelope_id=envelope.id, error=str(e))
            return None, None

        await audit_service.record_event(
            db,
            envelope.id,
            SignatureEventType.WET_SIGNATURE_CAPTURED,
            party_id=party.id,
            actor_email=party.email,
            data={"path": path, "size": len(png_bytes)},
        )
        return png_bytes, path

    async def render_signed_document(
        self,
        db: AsyncSession,
        actors: SigningActors,
        request: CompleteSignatureRequest,
        next_status: EnvelopeStatus,
        wet_png: bytes | None,
        wet_path: str | None,
    ) -> bool:
        """
        Produce ``<base>-signed.pdf`` with a certificate page and record it.

        Returns False, leaving the envelope untouched, when the base document
        cannot be located or downloaded.
        """
        envelope, party, entity, record = (
            actors.envelope,
            actors.party,
            actors.entity,
            actors.record,
        )
        bucket = settings.minute_book_bucket

        base_path = await document_locator.resolve(envelope)
        if not base_path:
            logger.warning("base_document_unresolved", envelope_id=envelope.id)
            return False

        try:
            base_pdf = await storage_service.download(bucket, base_path)
        except StorageError as e:
            logger.error(
                "base_document_download_failed",
                envelope_id=envelope.id,
                path=base_path,
                error=str(e),
            )
            return False

        verify_url = resolve_verify_url(envelope)
        signed_at = to_iso(party.signed_at)
        record_title = (record.title if record else None) or envelope.title
        entity_name = entity.name if entity else None

        pdf_bytes = certificate_renderer.render_signature_certificate(
            base_pdf,
            SignatureCertificateContext(
                envelope_id=envelope.id,
                record_id=envelope.record_id,
                entity_id=envelope.entity_id,
                verify_url=verify_url,
                signed_at=signed_at,
                envelope_status=next_status.value,
                signer_name=party.display_name,
                signer_email=party.email,
                signer_role=party.role,
                record_title=record_title,
                record_created_at=to_iso(record.created_at) if record else None,
                entity_name=entity_name,
                entity_slug=entity.slug if entity else None,
                client_ip=request.client_ip,
                user_agent=request.user_agent,
                wet_signature_png=wet_png,
            ),
        )
        pdf_hash = sha256_hex(pdf_bytes)

        signed_path: str | None = to_signed_path(base_path)
        canonical_path = canonicalize_resolutions_path(signed_path)

        if canonical_path != signed_path:
            try:
                await storage_service.upload(bucket, canonical_path, pdf_bytes)
            except StorageError as e:
                logger.error("canonical_upload_failed", path=canonical_path, error=str(e))

        try:
            await storage_service.upload(bucket, signed_path, pdf_bytes)
        except StorageError as e:
            logger.error("signed_upload_failed", path=signed_path, error=str(e))
            signed_path = None

        wet_mode = request.normalized_wet_mode
        certificate = {
            "certificate_version": CERTIFICATE_VERSION,
            "envelope_id": envelope.id,
            "record_id": envelope.record_id,
            "entity_id": envelope.entity_id,
            "entity_name": entity_name,
            "record_title": record_title,
            "signer": {
                "party_id": party.id,
                "name": party.display_name,
                "email": party.email,
                "role": party.role or "signer",
            },
            "signed_at": signed_at,
            "envelope_status": next_status.value,
            "client_ip": request.client_ip,
            "user_agent": request.user_agent,
            "verify_url": verify_url,
            "pdf_hash": pdf_hash,
            "bucket": bucket,
            "base_document_path": base_path,
            "signed_document_path": signed_path,
            "signed_document_path_canonical": canonical_path,
            "wet_signature_mode": wet_mode,
            "wet_signature_path": wet_path,
        }

        existing = dict(envelope.meta or {})
        metadata = {
            **existing,
            "verify_url": verify_url,
            "certificate": certificate,
            "storage_path": existing.get("storage_path") or base_path,
            "signed_document_path": signed_path or existing.get("signed_document_path"),
            "signed_document_path_canonical": canonical_path,
            "pdf_hash": pdf_hash,
            "wet_signature_mode": wet_mode,
            "wet_signature_path": wet_path or existing.get("wet_signature_path"),
        }

        applied = await envelope_state.patch_envelope(
            db,
            envelope,
            {
                "meta": metadata,
                "supporting_document_path": envelope.supporting_document_path or base_path,
                "storage_path": envelope.storage_path or base_path,
            },
            allow_completed=request.force_regen,
        )
        if not applied:
            return False

        await audit_service.record_event(
            db,
            envelope.id,
            SignatureEventType.COMPLETED,
            party_id=party.id,
            actor_email=party.email,
            ip_address=request.client_ip,
            user_agent=request.user_agent,
            data={
                "signed_at": signed_at,
                "pdf_hash": pdf_hash,
                "signed_document_path": signed_path,
                "signed_document_path_canonical": canonical_path,
                "wet_signature_mode": wet_mode,
                "wet_signature_path": wet_path,
                "force_regen": request.force_regen,
            },
        )

        logger.info(
            "signed_document_rendered",
            envelope_id=envelope.id,
            path=signed_path,
            pdf_hash=pdf_hash,
        )
        return True

    async def notify_downstream(
        self,
        actors: SigningActors,
        downstream: DownstreamClient,
        force_regen: bool = False,
    ) -> None:
        """
        Hand the signed document to ingest and certify; results are advisory.

        A regenerated signed document invalidates any earlier certified
        artifact, so ``force_regen`` is passed on to certification.
        """
        envelope, entity, record = actors.envelope, actors.entity, actors.record
        meta = envelope.meta or {}
        signed_path = safe_text(meta.get("signed_document_path"))
        if not signed_path:
            return

        if entity and entity.slug:
            await downstream.ingest(
                {
                    "entity_slug": entity.slug,
                    "entity_id": envelope.entity_id,
                    "document_class": "resolution",
                    "section_name": "Resolutions",
                    "source_bucket": settings.minute_book_bucket,
                    "source_path": signed_path,
                    "title": (record.title if record else None)
                    or envelope.title
                    or "Signed Corporate Record",
                    "source_table": "governance_ledger",
                    "source_record_id": envelope.record_id,
                    "envelope_id": envelope.id,
                    "pdf_hash": safe_text(meta.get("pdf_hash")),
                    "is_test": envelope.is_test,
                }
            )

        await downstream.certify(envelope.id, force_regen=force_regen)

    def build_response(
        self,
        envelope: SignatureEnvelope,
        request: CompleteSignatureRequest,
    ) -> dict[str, Any]:
        meta = envelope.meta or {}
        cert = meta.get("certificate") or {}

        return {
            "ok": True,
            "envelope_id": envelope.id,
            "status": envelope.status,
            "certificate": meta.get("certificate"),
            "base_document_path": safe_text(cert.get("base_document_path")),
            "signed_document_path": safe_text(cert.get("signed_document_path"))
            or safe_text(meta.get("signed_document_path")),
            "signed_document_path_canonical": safe_text(
                cert.get("signed_document_path_canonical")
            )
            or safe_text(meta.get("signed_document_path_canonical")),
            "pdf_hash": safe_text(cert.get("pdf_hash")) or safe_text(meta.get("pdf_hash")),
            "verify_url": safe_text(cert.get("verify_url"))
            or safe_text(meta.get("verify_url"))
            or resolve_verify_url(envelope),
            "wet_signature_mode": request.normalized_wet_mode,
            "wet_signature_path": safe_text(cert.get("wet_signature_path")),
            "force_regen": request.force_regen,
        }


# Singleton instance
signing_service = SigningService()
