"""Signature event chain tests."""

import pytest
from sqlalchemy import update

from parliament.models import SignatureEvent, SignatureEventType
from parliament.services.audit import audit_service

pytestmark = pytest.mark.asyncio


class TestAuditChain:
    async def test_events_are_chained(self, test_db, seed):
        entity = await seed.entity()
        record = await seed.record(entity)
        envelope = await seed.envelope(entity, record)

        first = await audit_service.log_event(
            test_db, envelope.id, SignatureEventType.ENVELOPE_CREATED
        )
        second = await audit_service.log_event(
            test_db,
            envelope.id,
            SignatureEventType.PARTY_SIGNED,
            actor_email="a@oasis.test",
            data={"signing_order": 1},
        )

        assert first.previous_event_hash is None
        assert second.previous_event_hash == first.event_hash

        valid, errors = await audit_service.verify_audit_trail(test_db, envelope.id)
        assert valid
        assert errors == []

    async def test_tampering_detected(self, test_db, seed):
        entity = await seed.entity()
        record = await seed.record(entity)
        envelope = await seed.envelope(entity, record)

        event = await audit_service.log_event(
            test_db, envelope.id, SignatureEventType.PARTY_SIGNED, actor_email="a@oasis.test"
        )
        await test_db.execute(
            update(SignatureEvent)
            .where(SignatureEvent.id == event.id)
            .values(actor_email="mallory@oasis.test")
        )
        await test_db.commit()
        test_db.expire_all()

        valid, errors = await audit_service.verify_audit_trail(test_db, envelope.id)
        assert not valid
        assert "Hash mismatch" in errors[0]

    async def test_record_event_returns_event(self, test_db, seed):
        entity = await seed.entity()
        record = await seed.record(entity)
        envelope = await seed.envelope(entity, record)

        event = await audit_service.record_event(
            test_db, envelope.id, SignatureEventType.CERTIFIED, data={"hash": "h"}
        )

        assert event is not None
        trail = await audit_service.get_audit_trail(test_db, envelope.id)
        assert [e.event_type for e in trail] == [SignatureEventType.CERTIFIED]
