"""Resolve the base (unsigned) PDF of an envelope inside the Minute Book bucket."""

from parliament.core.config import get_settings
from parliament.core.logger import get_logger
from parliament.models import SignatureEnvelope
from parliament.services.storage import StorageService, storage_service

settings = get_settings()
logger = get_logger(__name__)

SECTION_VARIANTS = ("resolutions", "Resolutions")
SIGNED_SUFFIX = "-signed.pdf"


def safe_text(value) -> str | None:
    """Stringify and strip; empty strings become None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_signed_path(base_path: str) -> str:
    """``a/b.pdf`` -> ``a/b-signed.pdf`` (case-insensitive extension)."""
    if base_path.lower().endswith(".pdf"):
        return base_path[:-4] + SIGNED_SUFFIX
    return f"{base_path}{SIGNED_SUFFIX}"


def to_certified_path(path: str) -> str:
    if "-certified" in path.lower():
        return path
    if path.lower().endswith(".pdf"):
        return path[:-4] + "-certified.pdf"
    return f"{path}-certified.pdf"


def canonicalize_resolutions_path(path: str) -> str:
    return path.replace("/Resolutions/", "/resolutions/")


class DocumentLocator:
    """
    Find the base document for an envelope.

    Deterministic pointers on the envelope row win. Without them the
    locator tries the conventional ``<entity>/resolutions/<record>.pdf``
    layout, then falls back to scanning the bucket listing.
    """

    def __init__(
        self,
        storage: StorageService | None = None,
        bucket: str | None = None,
        entity_prefixes: list[str] | None = None,
        scan_limit: int | None = None,
    ):
        self.storage = storage or storage_service
        self.bucket = bucket or settings.minute_book_bucket
        self.entity_prefixes = list(entity_prefixes or settings.locator_entity_prefixes)
        self.scan_limit = scan_limit or settings.locator_scan_limit

    def pointer_path(self, envelope: SignatureEnvelope) -> str | None:
        """The base path recorded on the envelope row, if any."""
        meta_path = safe_text((envelope.meta or {}).get("storage_path"))
        if meta_path and meta_path.startswith(f"{self.bucket}/"):
            meta_path = meta_path[len(self.bucket) + 1 :]

        return (
            safe_text(envelope.supporting_document_path)
            or safe_text(envelope.storage_path)
            or meta_path
        )

    async def resolve(self, envelope: SignatureEnvelope) -> str | None:
        return self.pointer_path(envelope) or await self.locate_by_record(
            str(envelope.record_id)
        )

    def candidate_paths(self, record_id: str) -> list[str]:
        return [
            f"{prefix}/{section}/{record_id}.pdf"
            for prefix in self.entity_prefixes
            for section in SECTION_VARIANTS
        ]

    async def locate_by_record(self, record_id: str) -> str | None:
        """Search the bucket for the base PDF of a governance record."""
        for name in self.candidate_paths(record_id):
            if await self.storage.exists(self.bucket, name):
                return name

        rid = record_id.lower()
        rows = [
            obj.name
            for obj in await self.storage.list_objects(self.bucket)
            if "/resolutions/" in obj.name.lower()
        ][: self.scan_limit]

        for name in rows:
            lower = name.lower()
            if rid in lower and lower.endswith(".pdf") and not lower.endswith(SIGNED_SUFFIX):
                return name

        for name in rows:
            if rid in name.lower():
                return name

        logger.warning("base_document_not_found", record_id=record_id, scanned=len(rows))
        return None


# Singleton instance
document_locator = DocumentLocator()
