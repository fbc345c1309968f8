"""Register signed documents in an entity's Minute Book."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from parliament.core.config import get_settings
from parliament.core.exceptions import InvalidRequestError
from parliament.core.logger import get_logger
from parliament.models import (
    Entity,
    MinuteBookEntry,
    SignatureEnvelope,
    SignatureEventType,
)
from parliament.schemas import IngestRequest
from parliament.services.audit import audit_service
from parliament.services.hashing import sha256_hex
from parliament.services.locator import safe_text
from parliament.services.storage import storage_service

settings = get_settings()
logger = get_logger(__name__)


class IngestService:
    """Upserts Minute Book entries keyed by their storage location."""

    async def ingest(self, db: AsyncSession, request: IngestRequest) -> dict[str, Any]:
        entity_slug = safe_text(request.entity_slug)
        source_path = safe_text(request.source_path)
        if not entity_slug or not source_path:
            raise InvalidRequestError(error="entity_slug and source_path are required")

        bucket = safe_text(request.source_bucket) or settings.minute_book_bucket

        # Hash what is actually stored, not what the caller claims
        content = await storage_service.download(bucket, source_path)
        file_hash = sha256_hex(content)
        provided_hash = safe_text(request.pdf_hash)
        hash_mismatch = bool(provided_hash) and provided_hash.lower() != file_hash
        if hash_mismatch:
            logger.warning(
                "ingest_hash_mismatch",
                path=source_path,
                provided=provided_hash,
                computed=file_hash,
            )

        entity_id = safe_text(request.entity_id)
        if not entity_id:
            result = await db.execute(select(Entity.id).where(Entity.slug == entity_slug))
            entity_id = result.scalar_one_or_none()

        envelope_id = safe_text(request.envelope_id)
        envelope = await db.get(SignatureEnvelope, envelope_id) if envelope_id else None
        is_test = request.is_test if request.is_test is not None else bool(
            envelope and envelope.is_test
        )

        values = {
            "entity_id": entity_id,
            "entity_slug": entity_slug,
            "document_class": request.document_class,
            "section_name": request.section_name,
            "title": safe_text(request.title) or "Signed Corporate Record",
            "source_table": safe_text(request.source_table),
            "source_record_id": safe_text(request.source_record_id),
            "envelope_id": envelope_id,
            "file_hash": file_hash,
            "file_size": len(content),
            "hash_mismatch": hash_mismatch,
            "is_test": is_test,
        }

        entry, reused = await self._upsert(db, bucket, source_path, values)

        if envelope:
            await audit_service.record_event(
                db,
                envelope.id,
                SignatureEventType.INGESTED,
                data={
                    "entry_id": entry.id,
                    "path": source_path,
                    "file_hash": file_hash,
                    "reused": reused,
                    "hash_mismatch": hash_mismatch,
                },
            )

        logger.info(
            "minute_book_ingested",
            entry_id=entry.id,
            entity_slug=entity_slug,
            path=source_path,
            reused=reused,
        )

        return {
            "ok": True,
            "entry_id": entry.id,
            "reused": reused,
            "source_bucket": bucket,
            "source_path": source_path,
            "file_hash": file_hash,
            "file_size": len(content),
            "hash_mismatch": hash_mismatch,
        }

    async def get_entry(
        self, db: AsyncSession, bucket: str, path: str
    ) -> MinuteBookEntry | None:
        result = await db.execute(
            select(MinuteBookEntry).where(
                MinuteBookEntry.source_bucket == bucket,
                MinuteBookEntry.source_path == path,
            )
        )
        return result.scalar_one_or_none()

    async def _upsert(
        self,
        db: AsyncSession,
        bucket: str,
        path: str,
        values: dict[str, Any],
    ) -> tuple[MinuteBookEntry, bool]:
        entry = await self.get_entry(db, bucket, path)
        if entry is None:
            entry = MinuteBookEntry(source_bucket=bucket, source_path=path, **values)
            db.add(entry)
            try:
                await db.commit()
                await db.refresh(entry)
                return entry, False
            except IntegrityError:
                # Lost a race with a concurrent ingest of the same object
                await db.rollback()
                entry = await self.get_entry(db, bucket, path)
                if entry is None:
                    raise

        for key, value in values.items():
            setattr(entry, key, value)
        await db.commit()
        await db.refresh(entry)
        return entry, True


# Singleton instance
ingest_service = IngestService()
