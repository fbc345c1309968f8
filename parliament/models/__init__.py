"""Database models package."""

from parliament.models.base import (
    AsyncSessionLocal,
    Base,
    engine,
    get_db,
    init_db,
    to_iso,
    utc_now_iso,
)
from parliament.models.models import (
    Entity,
    EnvelopeStatus,
    GovernanceRecord,
    MinuteBookEntry,
    PartyStatus,
    SignatureEnvelope,
    SignatureEvent,
    SignatureEventType,
    SignatureParty,
)

__all__ = [
    "AsyncSessionLocal",
    "Base",
    "engine",
    "get_db",
    "init_db",
    "to_iso",
    "utc_now_iso",
    "Entity",
    "EnvelopeStatus",
    "GovernanceRecord",
    "MinuteBookEntry",
    "PartyStatus",
    "SignatureEnvelope",
    "SignatureEvent",
    "SignatureEventType",
    "SignatureParty",
]
