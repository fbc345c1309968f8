"""Envelope and party status transitions guarded by conditional updates."""

from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from parliament.core.exceptions import EnvelopeUpdateError
from parliament.core.logger import get_logger
from parliament.models import (
    EnvelopeStatus,
    PartyStatus,
    SignatureEnvelope,
    SignatureParty,
)

logger = get_logger(__name__)

# Envelope status only moves forward
ALLOWED_TRANSITIONS: dict[EnvelopeStatus, frozenset[EnvelopeStatus]] = {
    EnvelopeStatus.PENDING: frozenset({EnvelopeStatus.PARTIAL, EnvelopeStatus.COMPLETED}),
    EnvelopeStatus.PARTIAL: frozenset({EnvelopeStatus.COMPLETED}),
    EnvelopeStatus.COMPLETED: frozenset(),
}


def can_transition(current: EnvelopeStatus, target: EnvelopeStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def compute_status(statuses: Iterable[PartyStatus | str]) -> EnvelopeStatus:
    """
    Derive the envelope status from its parties' statuses.

    ``completed`` requires at least one party and every party signed;
    ``partial`` means some but not all signed; otherwise ``pending``.
    """
    normalized = [str(getattr(s, "value", s)).lower() for s in statuses]
    signed = sum(1 for s in normalized if s == PartyStatus.SIGNED.value)

    if normalized and signed == len(normalized):
        return EnvelopeStatus.COMPLETED
    if signed:
        return EnvelopeStatus.PARTIAL
    return EnvelopeStatus.PENDING


class EnvelopeStateUpdater:
    """Applies status and metadata changes without mutating completed envelopes."""

    async def load_parties(
        self, db: AsyncSession, envelope_id: str
    ) -> list[SignatureParty]:
        result = await db.execute(
            select(SignatureParty)
            .where(SignatureParty.envelope_id == envelope_id)
            .order_by(SignatureParty.signing_order)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def mark_party_signed(
        self,
        db: AsyncSession,
        party: SignatureParty,
        signed_at: datetime | None = None,
    ) -> bool:
        """
        Mark a party signed exactly once.

        Returns True when this call performed the transition and False when
        the party was already signed (including by a concurrent request).
        """
        signed_at = signed_at or datetime.now(timezone.utc)
        try:
            result = await db.execute(
                update(SignatureParty)
                .where(
                    SignatureParty.id == party.id,
                    SignatureParty.envelope_id == party.envelope_id,
                    SignatureParty.status != PartyStatus.SIGNED,
                )
                .values(status=PartyStatus.SIGNED, signed_at=signed_at)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("party_update_failed", party_id=party.id, error=str(e))
            raise EnvelopeUpdateError(error="Failed to update party", details=str(e)) from e

        await db.refresh(party)
        return result.rowcount > 0

    async def patch_envelope(
        self,
        db: AsyncSession,
        envelope: SignatureEnvelope,
        values: dict[str, Any],
        allow_completed: bool = False,
    ) -> bool:
        """
        Apply ``values`` to the envelope row.

        Unless ``allow_completed`` is set, the update only touches envelopes
        that are not yet completed. A guarded no-op is not an error: the
        envelope is re-read and False is returned.
        """
        statement = update(SignatureEnvelope).where(SignatureEnvelope.id == envelope.id)
        if not allow_completed:
            statement = statement.where(
                SignatureEnvelope.status != EnvelopeStatus.COMPLETED
            )

        try:
            result = await db.execute(
                statement.values(
                    {getattr(SignatureEnvelope, key): value for key, value in values.items()}
                ).execution_options(synchronize_session=False)
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(
                "envelope_update_failed",
                envelope_id=envelope.id,
                fields=sorted(values),
                error=str(e),
            )
            raise EnvelopeUpdateError(details=str(e)) from e

        await db.refresh(envelope)
        applied = result.rowcount > 0
        if not applied:
            logger.info(
                "envelope_update_skipped",
                envelope_id=envelope.id,
                status=envelope.status.value,
                fields=sorted(values),
            )
        return applied

    async def apply_status(
        self,
        db: AsyncSession,
        envelope: SignatureEnvelope,
        next_status: EnvelopeStatus,
    ) -> EnvelopeStatus:
        """Move the envelope to ``next_status`` and return the stored status."""
        if envelope.status == next_status:
            return envelope.status
        if not can_transition(envelope.status, next_status):
            logger.warning(
                "envelope_transition_rejected",
                envelope_id=envelope.id,
                current=envelope.status.value,
                target=next_status.value,
            )
            return envelope.status

        values: dict[str, Any] = {"status": next_status}
        if next_status == EnvelopeStatus.COMPLETED:
            values["completed_at"] = datetime.now(timezone.utc)

        await self.patch_envelope(db, envelope, values)
        return envelope.status


# Singleton instance
envelope_state = EnvelopeStateUpdater()
