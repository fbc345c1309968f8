"""Audit service for tamper-evident signature event logging."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from parliament.core.logger import get_logger
from parliament.models import SignatureEvent, SignatureEventType
from parliament.services.hashing import canonical_json_hash

logger = get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    # sqlite hands timestamps back naive
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AuditService:
    """Service for managing signature events."""

    async def log_event(
        self,
        db: AsyncSession,
        envelope_id: str,
        event_type: SignatureEventType,
        party_id: str | None = None,
        actor_email: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> SignatureEvent:
        """
        Log a signature event with tamper-evident hashing.

        Each event includes a hash of the previous event to create
        a chain that can detect tampering.
        """
        timestamp = datetime.now(timezone.utc)

        # Get the previous event's hash for chaining
        previous_event = await self._get_last_event(db, envelope_id)
        previous_hash = previous_event.event_hash if previous_event else None

        event = SignatureEvent(
            envelope_id=envelope_id,
            event_type=event_type,
            timestamp=timestamp,
            party_id=party_id,
            actor_email=actor_email,
            ip_address=ip_address,
            user_agent=user_agent,
            data=data,
            previous_event_hash=previous_hash,
        )

        event.event_hash = self._compute_event_hash(event)

        db.add(event)
        await db.commit()
        await db.refresh(event)

        return event

    async def record_event(
        self,
        db: AsyncSession,
        envelope_id: str,
        event_type: SignatureEventType,
        **kwargs: Any,
    ) -> SignatureEvent | None:
        """Like ``log_event`` but never fails the caller; returns None on error."""
        try:
            return await self.log_event(db, envelope_id, event_type, **kwargs)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.warning(
                "signature_event_failed",
                envelope_id=envelope_id,
                event_type=event_type.value,
                error=str(e),
            )
            return None

    async def _get_last_event(
        self,
        db: AsyncSession,
        envelope_id: str,
    ) -> SignatureEvent | None:
        """Get the most recent event for an envelope."""
        result = await db.execute(
            select(SignatureEvent)
            .where(SignatureEvent.envelope_id == envelope_id)
            .order_by(SignatureEvent.timestamp.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    def _compute_event_hash(self, event: SignatureEvent) -> str:
        """Compute SHA-256 hash of event data for tamper detection."""
        hash_data = {
            "envelope_id": event.envelope_id,
            "event_type": SignatureEventType(event.event_type).value,
            "timestamp": _as_utc(event.timestamp).isoformat(),
            "party_id": event.party_id,
            "actor_email": event.actor_email,
            "ip_address": event.ip_address,
            "data": event.data,
            "previous_event_hash": event.previous_event_hash,
        }
        return canonical_json_hash(hash_data)

    async def get_audit_trail(
        self,
        db: AsyncSession,
        envelope_id: str,
    ) -> list[SignatureEvent]:
        """Get all events for an envelope in chronological order."""
        result = await db.execute(
            select(SignatureEvent)
            .where(SignatureEvent.envelope_id == envelope_id)
            .order_by(SignatureEvent.timestamp.asc())
        )
        return list(result.scalars().all())

    async def verify_audit_trail(
        self,
        db: AsyncSession,
        envelope_id: str,
    ) -> tuple[bool, list[str]]:
        """
        Verify the integrity of the event chain.

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        events = await self.get_audit_trail(db, envelope_id)
        errors = []

        for i, event in enumerate(events):
            if i == 0:
                if event.previous_event_hash is not None:
                    errors.append(
                        f"Event {event.id}: First event should have no previous hash"
                    )
            else:
                expected_previous_hash = events[i - 1].event_hash
                if event.previous_event_hash != expected_previous_hash:
                    errors.append(
                        f"Event {event.id}: Previous hash mismatch "
                        f"(expected {expected_previous_hash}, "
                        f"got {event.previous_event_hash})"
                    )

            computed_hash = self._compute_event_hash(event)
            if event.event_hash != computed_hash:
                errors.append(
                    f"Event {event.id}: Hash mismatch "
                    f"(expected {computed_hash}, got {event.event_hash})"
                )

        return len(errors) == 0, errors


# Singleton instance
audit_service = AuditService()
