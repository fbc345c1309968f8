"""Database models for governance records, signature envelopes and the Minute Book."""

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parliament.models.base import Base, TimestampMixin, uuid_pk


def _enum_type(enum_cls: type[enum.Enum]) -> Enum:
    # Store the lowercase values ("pending", "signed", ...) rather than member names
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )


class EnvelopeStatus(str, enum.Enum):
    """Envelope status enumeration."""

    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"


class PartyStatus(str, enum.Enum):
    """Signer status enumeration."""

    PENDING = "pending"
    SIGNED = "signed"


class SignatureEventType(str, enum.Enum):
    """Signature event types."""

    ENVELOPE_CREATED = "envelope_created"
    PARTY_SIGNED = "party_signed"
    WET_SIGNATURE_CAPTURED = "wet_signature_captured"
    COMPLETED = "completed"
    CERTIFIED = "certified"
    INGESTED = "ingested"


class Entity(Base, TimestampMixin):
    """A legal entity whose records live in the Minute Book."""

    __tablename__ = "entities"

    id: Mapped[uuid_pk]
    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255))

    records: Mapped[list["GovernanceRecord"]] = relationship(back_populates="entity")


class GovernanceRecord(Base, TimestampMixin):
    """A governance resolution; read-only from the signing pipeline."""

    __tablename__ = "governance_ledger"

    id: Mapped[uuid_pk]
    entity_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("entities.id"), index=True
    )
    title: Mapped[str] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(Text, default=None)
    body: Mapped[str | None] = mapped_column(Text, default=None)
    is_test: Mapped[bool] = mapped_column(Boolean, default=False)

    entity: Mapped["Entity"] = relationship(back_populates="records")
    envelopes: Mapped[list["SignatureEnvelope"]] = relationship(back_populates="record")


class SignatureEnvelope(Base, TimestampMixin):
    """A signature request grouping signer parties against one record."""

    __tablename__ = "signature_envelopes"

    id: Mapped[uuid_pk]
    entity_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("entities.id"), index=True
    )
    record_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("governance_ledger.id"), index=True
    )
    title: Mapped[str | None] = mapped_column(String(500), default=None)
    status: Mapped[EnvelopeStatus] = mapped_column(
        _enum_type(EnvelopeStatus), default=EnvelopeStatus.PENDING, index=True
    )

    # Pointers to the base (unsigned) document inside the bucket
    storage_path: Mapped[str | None] = mapped_column(String(1000), default=None)
    supporting_document_path: Mapped[str | None] = mapped_column(
        String(1000), default=None
    )

    # Opaque blob: verify_url, certificate, signed paths, pdf_hash, certification
    meta: Mapped[dict | None] = mapped_column("metadata", JSON, default=None)

    is_test: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    record: Mapped["GovernanceRecord"] = relationship(back_populates="envelopes")
    parties: Mapped[list["SignatureParty"]] = relationship(
        back_populates="envelope",
        cascade="all, delete-orphan",
        order_by="SignatureParty.signing_order",
    )
    events: Mapped[list["SignatureEvent"]] = relationship(
        back_populates="envelope", cascade="all, delete-orphan"
    )


class SignatureParty(Base, TimestampMixin):
    """An individual signer within an envelope."""

    __tablename__ = "signature_parties"

    id: Mapped[uuid_pk]
    envelope_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("signature_envelopes.id"), index=True
    )

    email: Mapped[str | None] = mapped_column(String(255), default=None)
    display_name: Mapped[str] = mapped_column(String(255))
    role: Mapped[str | None] = mapped_column(String(100), default="signer")
    signing_order: Mapped[int] = mapped_column(Integer, default=1)
    status: Mapped[PartyStatus] = mapped_column(
        _enum_type(PartyStatus), default=PartyStatus.PENDING
    )

    # Capability token; NULL for legacy parties
    party_token: Mapped[str | None] = mapped_column(
        String(200), unique=True, index=True, default=None
    )

    signed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    envelope: Mapped["SignatureEnvelope"] = relationship(back_populates="parties")


class SignatureEvent(Base):
    """Append-only, hash-chained event for an envelope."""

    __tablename__ = "signature_events"

    id: Mapped[uuid_pk]
    envelope_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("signature_envelopes.id"), index=True
    )

    event_type: Mapped[SignatureEventType] = mapped_column(
        _enum_type(SignatureEventType)
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    party_id: Mapped[str | None] = mapped_column(String(36), default=None)
    actor_email: Mapped[str | None] = mapped_column(String(255), default=None)
    ip_address: Mapped[str | None] = mapped_column(String(45), default=None)
    user_agent: Mapped[str | None] = mapped_column(String(500), default=None)

    data: Mapped[dict | None] = mapped_column(JSON, default=None)

    previous_event_hash: Mapped[str | None] = mapped_column(String(64), default=None)
    event_hash: Mapped[str | None] = mapped_column(String(64), default=None)

    envelope: Mapped["SignatureEnvelope"] = relationship(back_populates="events")


class MinuteBookEntry(Base, TimestampMixin):
    """An archived document registered in an entity's Minute Book."""

    __tablename__ = "minute_book_entries"
    __table_args__ = (
        UniqueConstraint("source_bucket", "source_path", name="uq_minute_book_source"),
    )

    id: Mapped[uuid_pk]
    entity_id: Mapped[str | None] = mapped_column(String(36), default=None, index=True)
    entity_slug: Mapped[str] = mapped_column(String(100), index=True)

    document_class: Mapped[str] = mapped_column(String(50), default="resolution")
    section_name: Mapped[str] = mapped_column(String(100), default="Resolutions")
    title: Mapped[str] = mapped_column(String(500))

    source_bucket: Mapped[str] = mapped_column(String(100))
    source_path: Mapped[str] = mapped_column(String(1000))
    source_table: Mapped[str | None] = mapped_column(String(100), default=None)
    source_record_id: Mapped[str | None] = mapped_column(String(36), default=None)
    envelope_id: Mapped[str | None] = mapped_column(String(36), default=None, index=True)

    file_hash: Mapped[str | None] = mapped_column(String(64), default=None)
    file_size: Mapped[int | None] = mapped_column(Integer, default=None)
    hash_mismatch: Mapped[bool] = mapped_column(Boolean, default=False)

    is_test: Mapped[bool] = mapped_column(Boolean, default=False)
