"""Hash-certified artifacts: ``<signed>-certified.pdf`` whose QR pins its own SHA-256."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from parliament.core.config import get_settings
from parliament.core.exceptions import (
    EnvelopeNotFoundError,
    InvalidRequestError,
    MissingSourcePointersError,
    ObjectNotFoundError,
)
from parliament.core.logger import get_logger
from parliament.core.security import build_verify_url
from parliament.models import (
    Entity,
    GovernanceRecord,
    SignatureEnvelope,
    SignatureEventType,
    utc_now_iso,
)
from parliament.services.audit import audit_service
from parliament.services.certificate import (
    CertificateRenderer,
    CertificationContext,
    certificate_renderer,
)
from parliament.services.envelope_state import envelope_state
from parliament.services.locator import safe_text, to_certified_path
from parliament.services.storage import storage_service

settings = get_settings()
logger = get_logger(__name__)


def signed_source_path(envelope: SignatureEnvelope) -> str | None:
    """The signed document recorded for an envelope, legacy path first."""
    meta = envelope.meta or {}
    cert = meta.get("certificate") or {}
    return (
        safe_text(meta.get("signed_document_path"))
        or safe_text(cert.get("signed_document_path"))
        or safe_text(meta.get("signed_document_path_canonical"))
        or safe_text(cert.get("signed_document_path_canonical"))
    )


class CertificationService:
    """Produces and records the certified artifact of a signed envelope."""

    def __init__(self, renderer: CertificateRenderer | None = None):
        self.renderer = renderer or certificate_renderer

    async def certify(
        self,
        db: AsyncSession,
        envelope_id: str | None,
        force_regen: bool = False,
    ) -> dict[str, Any]:
        envelope_id = safe_text(envelope_id)
        if not envelope_id:
            raise InvalidRequestError(error="envelope_id is required")

        envelope = await db.get(SignatureEnvelope, envelope_id, populate_existing=True)
        if not envelope:
            raise EnvelopeNotFoundError()

        existing = (envelope.meta or {}).get("certification")
        if existing and existing.get("path") and existing.get("hash") and not force_regen:
            logger.info("certification_reused", envelope_id=envelope.id)
            return self._response(envelope.id, existing, reused=True)

        source_path = signed_source_path(envelope)
        if not source_path:
            raise MissingSourcePointersError(details={"envelope_id": envelope.id})

        bucket = settings.minute_book_bucket
        try:
            source_pdf = await storage_service.download(bucket, source_path)
        except ObjectNotFoundError as e:
            raise MissingSourcePointersError(
                details={"envelope_id": envelope.id, "path": source_path}
            ) from e

        entity = await db.get(Entity, envelope.entity_id)
        record = await db.get(GovernanceRecord, envelope.record_id)
        certified_at = utc_now_iso()

        result = self.renderer.render_certified(
            source_pdf,
            CertificationContext(
                envelope_id=envelope.id,
                title=(record.title if record else None) or envelope.title or "Signed Corporate Record",
                entity_id=envelope.entity_id,
                entity_name=entity.name if entity else None,
                record_id=envelope.record_id,
                certified_at=certified_at,
                is_test=envelope.is_test,
            ),
            lambda cert_hash: build_verify_url(envelope.id, cert_hash),
        )

        certified_path = to_certified_path(source_path)
        await storage_service.upload(bucket, certified_path, result.content)

        certification = {
            "certified_at": certified_at,
            "bucket": bucket,
            "path": certified_path,
            "source_path": source_path,
            "hash": result.sha256,
            "verify_url": result.verify_url,
            "embedded_hash": result.embedded_hash,
            "embedded_verify_url": result.embedded_verify_url,
            "passes": result.passes,
            "stable": result.stable,
        }

        # Certification is additive metadata; it may land after completion
        await envelope_state.patch_envelope(
            db,
            envelope,
            {"meta": {**(envelope.meta or {}), "certification": certification}},
            allow_completed=True,
        )

        await audit_service.record_event(
            db,
            envelope.id,
            SignatureEventType.CERTIFIED,
            data={
                "path": certified_path,
                "hash": result.sha256,
                "passes": result.passes,
                "stable": result.stable,
                "force_regen": force_regen,
            },
        )

        logger.info(
            "envelope_certified",
            envelope_id=envelope.id,
            path=certified_path,
            passes=result.passes,
            stable=result.stable,
        )
        return self._response(envelope.id, certification, reused=False)

    def _response(
        self, envelope_id: str, certification: dict[str, Any], reused: bool
    ) -> dict[str, Any]:
        return {
            "ok": True,
            "envelope_id": envelope_id,
            "reused": reused,
            "certified_at": certification.get("certified_at") or "",
            "bucket": certification.get("bucket") or settings.minute_book_bucket,
            "path": certification["path"],
            "hash": certification["hash"],
            "verify_url": certification.get("verify_url")
            or build_verify_url(envelope_id, certification["hash"]),
            "passes": int(certification.get("passes") or 0),
            "stable": bool(certification.get("stable")),
            "embedded_hash": certification.get("embedded_hash"),
        }


# Singleton instance
certification_service = CertificationService()
