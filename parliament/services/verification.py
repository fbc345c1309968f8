"""Public certificate verification."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from parliament.core.config import get_settings
from parliament.core.exceptions import (
    EnvelopeNotFoundError,
    InvalidRequestError,
    StorageError,
)
from parliament.core.logger import get_logger
from parliament.models import (
    Entity,
    EnvelopeStatus,
    GovernanceRecord,
    SignatureEnvelope,
    to_iso,
)
from parliament.services.audit import audit_service
from parliament.services.envelope_state import envelope_state
from parliament.services.hashing import sha256_hex
from parliament.services.locator import safe_text
from parliament.services.signing import CERTIFICATE_VERSION, resolve_verify_url
from parliament.services.storage import storage_service

settings = get_settings()
logger = get_logger(__name__)

REASON_NOT_COMPLETED = "The envelope has not been signed by every party yet."
REASON_NO_DOCUMENT = (
    "No signed document is attached yet. The envelope may be pending "
    "ingestion or certificate generation."
)
REASON_HASH_MISMATCH = "The stored document does not match its recorded hash."
REASON_PROVIDED_HASH = "The presented hash does not match this envelope's documents."


class VerificationService:
    """Answers "is this certificate genuine?" for an envelope."""

    async def _stored_hash(self, bucket: str, path: str | None) -> str | None:
        if not path:
            return None
        try:
            return sha256_hex(await storage_service.download(bucket, path))
        except StorageError as e:
            logger.warning("verify_download_failed", path=path, error=str(e))
            return None

    async def verify(
        self,
        db: AsyncSession,
        envelope_id: str | None,
        presented_hash: str | None = None,
    ) -> dict[str, Any]:
        envelope_id = safe_text(envelope_id)
        if not envelope_id:
            raise InvalidRequestError(error="Missing envelope_id")

        envelope = await db.get(SignatureEnvelope, envelope_id, populate_existing=True)
        if not envelope:
            raise EnvelopeNotFoundError()

        parties = await envelope_state.load_parties(db, envelope.id)
        entity = await db.get(Entity, envelope.entity_id)
        record = await db.get(GovernanceRecord, envelope.record_id)

        meta = envelope.meta or {}
        cert_meta = meta.get("certificate")
        certification = meta.get("certification")
        bucket = (cert_meta or {}).get("bucket") or settings.minute_book_bucket

        signed_path = (
            safe_text(meta.get("signed_document_path"))
            or safe_text((cert_meta or {}).get("signed_document_path"))
        )
        expected_hash = safe_text((cert_meta or {}).get("pdf_hash")) or safe_text(
            meta.get("pdf_hash")
        )

        certificate = cert_meta or {
            "certificate_version": CERTIFICATE_VERSION,
            "envelope_id": envelope.id,
            "record_id": envelope.record_id,
            "entity_id": envelope.entity_id,
            "entity_name": entity.name if entity else None,
            "record_title": (record.title if record else None) or envelope.title,
            "signer": {
                "name": parties[0].display_name if parties else None,
                "email": parties[0].email if parties else None,
                "role": (parties[0].role if parties else None) or "signer",
            },
            "signed_at": to_iso(envelope.completed_at),
            "envelope_status": envelope.status.value,
            "verify_url": resolve_verify_url(envelope),
            "pdf_hash": expected_hash,
            "bucket": bucket,
            "signed_document_path": signed_path,
        }

        computed_hash = await self._stored_hash(bucket, signed_path)
        hash_match = (
            computed_hash == expected_hash if computed_hash and expected_hash else None
        )

        valid = envelope.status == EnvelopeStatus.COMPLETED and bool(signed_path)
        reason = None
        if envelope.status != EnvelopeStatus.COMPLETED:
            reason = REASON_NOT_COMPLETED
        if not signed_path:
            reason = REASON_NO_DOCUMENT
        elif hash_match is False:
            valid = False
            reason = REASON_HASH_MISMATCH

        presented = safe_text(presented_hash)
        if presented:
            # The certified page's QR carries the hash it was rendered with,
            # which differs from the final hash when the fixed point is unstable
            certified = certification or {}
            known = {
                expected_hash,
                certified.get("hash"),
                certified.get("embedded_hash"),
            } - {None}
            if presented.lower() not in known:
                valid = False
                reason = REASON_PROVIDED_HASH

        audit_trail_valid, errors = await audit_service.verify_audit_trail(db, envelope.id)
        if errors:
            logger.warning("audit_trail_invalid", envelope_id=envelope.id, errors=errors)

        events = await audit_service.get_audit_trail(db, envelope.id)

        return {
            "ok": True,
            "envelope_id": envelope.id,
            "valid": valid,
            "reason": reason,
            "status": envelope.status,
            "certificate": certificate,
            "certification": certification,
            "parties": parties,
            "signed_document_path": signed_path,
            "expected_hash": expected_hash,
            "computed_hash": computed_hash,
            "hash_match": hash_match,
            "audit_trail_valid": audit_trail_valid,
            "events": events,
        }


# Singleton instance
verification_service = VerificationService()
