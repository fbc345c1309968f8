"""Envelope issuance and the signer-facing signing context."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parliament.core.config import get_settings
from parliament.core.exceptions import (
    EntityNotFoundError,
    InvalidRequestError,
    LaneMismatchError,
    RecordNotFoundError,
)
from parliament.core.logger import get_logger
from parliament.core.security import (
    build_signing_url,
    build_verify_url,
    enforce_party_token,
    generate_party_token,
)
from parliament.models import (
    Entity,
    EnvelopeStatus,
    GovernanceRecord,
    PartyStatus,
    SignatureEnvelope,
    SignatureEventType,
    SignatureParty,
)
from parliament.models.base import generate_uuid
from parliament.schemas import (
    PartyCreate,
    SigningContextRequest,
    StartEnvelopeRequest,
)
from parliament.services.audit import audit_service
from parliament.services.envelope_state import envelope_state
from parliament.services.locator import document_locator, safe_text
from parliament.services.signing import resolve_verify_url, signing_service

settings = get_settings()
logger = get_logger(__name__)


def _normalized_parties(request: StartEnvelopeRequest) -> list[PartyCreate]:
    parties = list(request.parties)
    if not parties and request.signer_email:
        parties = [
            PartyCreate(name=request.signer_name, email=request.signer_email, role="primary")
        ]

    # One party per email address
    unique: dict[str, PartyCreate] = {}
    for party in parties:
        email = str(party.email).strip().lower()
        if email not in unique:
            unique[email] = party.model_copy(update={"email": email})
    return list(unique.values())


class EnvelopeService:
    """Issues envelopes over governance records and serves signing context."""

    async def start_envelope(
        self,
        db: AsyncSession,
        request: StartEnvelopeRequest,
    ) -> dict[str, Any]:
        """
        Issue (or reuse) the signature envelope for a governance record.

        An open envelope in the same lane is reused; parties whose email is
        already on it are skipped. New parties each get a capability token.
        """
        record_id = safe_text(request.record_id)
        entity_slug = safe_text(request.entity_slug)
        if not record_id:
            raise InvalidRequestError(error="RECORD_ID_REQUIRED")
        if not entity_slug:
            raise InvalidRequestError(error="ENTITY_SLUG_REQUIRED")

        result = await db.execute(select(Entity).where(Entity.slug == entity_slug))
        entity = result.scalar_one_or_none()
        if not entity:
            raise EntityNotFoundError(error="ENTITY_NOT_FOUND")

        record = await db.get(GovernanceRecord, record_id)
        if not record:
            raise RecordNotFoundError(error="LEDGER_NOT_FOUND")
        if record.entity_id != entity.id:
            raise InvalidRequestError(
                error="ENTITY_MISMATCH",
                details={"record_id": record_id, "entity_slug": entity_slug},
            )
        if bool(record.is_test) != request.is_test:
            raise LaneMismatchError(details={"record_is_test": bool(record.is_test)})

        envelope = await self._open_envelope(db, record_id, request.is_test)
        reused = envelope is not None

        if envelope is None:
            envelope_id = generate_uuid()
            envelope = SignatureEnvelope(
                id=envelope_id,
                entity_id=entity.id,
                record_id=record.id,
                title=safe_text(record.title) or f"Signature Envelope {record.id}",
                status=EnvelopeStatus.PENDING,
                is_test=request.is_test,
                meta={"verify_url": build_verify_url(envelope_id)},
            )
            db.add(envelope)
            await db.commit()
            await db.refresh(envelope)

            await audit_service.record_event(
                db,
                envelope.id,
                SignatureEventType.ENVELOPE_CREATED,
                data={"record_id": record.id, "entity_slug": entity.slug},
            )

        storage_path = await self._attach_base_document(db, envelope)
        created = await self._add_parties(db, envelope, _normalized_parties(request))

        parties = await envelope_state.load_parties(db, envelope.id)
        logger.info(
            "envelope_issued",
            envelope_id=envelope.id,
            record_id=record.id,
            reused=reused,
            created_parties=created,
        )

        return {
            "ok": True,
            "envelope_id": envelope.id,
            "record_id": record.id,
            "entity_slug": entity.slug,
            "reused": reused,
            "created_parties": created,
            "status": envelope.status,
            "storage_bucket": settings.minute_book_bucket,
            "storage_path": storage_path,
            "parties": [
                {
                    **self._party_dict(party),
                    "signing_url": build_signing_url(envelope.id, party.id, party.party_token),
                }
                for party in parties
            ],
        }

    async def _open_envelope(
        self, db: AsyncSession, record_id: str, is_test: bool
    ) -> SignatureEnvelope | None:
        result = await db.execute(
            select(SignatureEnvelope)
            .where(
                SignatureEnvelope.record_id == record_id,
                SignatureEnvelope.is_test == is_test,
                SignatureEnvelope.status != EnvelopeStatus.COMPLETED,
            )
            .order_by(SignatureEnvelope.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def _attach_base_document(
        self, db: AsyncSession, envelope: SignatureEnvelope
    ) -> str | None:
        """Record the base PDF pointer on the envelope when it can be found."""
        existing = document_locator.pointer_path(envelope)
        if existing:
            return existing

        path = await document_locator.locate_by_record(envelope.record_id)
        if not path:
            return None

        await envelope_state.patch_envelope(
            db,
            envelope,
            {
                "storage_path": path,
                "supporting_document_path": path,
                "meta": {**(envelope.meta or {}), "storage_path": path},
            },
        )
        return path

    async def _add_parties(
        self,
        db: AsyncSession,
        envelope: SignatureEnvelope,
        parties: list[PartyCreate],
    ) -> int:
        if not parties:
            return 0

        existing = await envelope_state.load_parties(db, envelope.id)
        existing_emails = {(p.email or "").lower() for p in existing}
        next_order = max((p.signing_order for p in existing), default=0) + 1

        created = 0
        for party in parties:
            if party.email in existing_emails:
                continue
            db.add(
                SignatureParty(
                    envelope_id=envelope.id,
                    email=party.email,
                    display_name=safe_text(party.name) or party.email,
                    role=safe_text(party.role) or "signer",
                    signing_order=party.signing_order or next_order,
                    status=PartyStatus.PENDING,
                    party_token=generate_party_token(),
                )
            )
            next_order += 1
            created += 1

        await db.commit()
        return created

    def _party_dict(self, party: SignatureParty) -> dict[str, Any]:
        return {
            "id": party.id,
            "envelope_id": party.envelope_id,
            "email": party.email,
            "display_name": party.display_name,
            "role": party.role,
            "signing_order": party.signing_order,
            "status": party.status,
            "signed_at": party.signed_at,
        }

    async def get_signing_context(
        self,
        db: AsyncSession,
        request: SigningContextRequest,
    ) -> dict[str, Any]:
        """Everything a signer needs to review the record, minus any secrets."""
        envelope_id = safe_text(request.envelope_id)
        party_id = safe_text(request.party_id)
        if not envelope_id or not party_id:
            raise InvalidRequestError(error="party_id and envelope_id are required")

        actors = await signing_service.load_actors(db, envelope_id, party_id)
        enforce_party_token(actors.party.party_token, request.provided_token)

        if not actors.entity:
            raise EntityNotFoundError()
        if not actors.record:
            raise RecordNotFoundError()

        envelope = actors.envelope
        return {
            "ok": True,
            "envelope": envelope,
            "party": actors.party,
            "entity": actors.entity,
            "record": actors.record,
            "verify_url": resolve_verify_url(envelope),
            "document_path": document_locator.pointer_path(envelope),
            "already_signed": actors.party.status == PartyStatus.SIGNED,
        }


# Singleton instance
envelope_service = EnvelopeService()
