"""Pydantic schemas for API request/response validation."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field as PydanticField

from parliament.models.models import EnvelopeStatus, PartyStatus, SignatureEventType


# --- Base schemas ---


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(from_attributes=True)


class OkResponse(BaseModel):
    ok: bool = True


# --- Signing schemas ---


class PartyTokenMixin(BaseModel):
    # Signers may send the capability token under either name
    token: str | None = None
    party_token: str | None = None

    @property
    def provided_token(self) -> str | None:
        return self.party_token if self.party_token is not None else self.token


class CompleteSignatureRequest(PartyTokenMixin):
    """Schema for completing one party's signature."""

    envelope_id: str | None = None
    party_id: str | None = None
    client_ip: str | None = None
    user_agent: str | None = None
    wet_signature_mode: str | None = None
    wet_signature_png: str | None = None
    force_regen: bool = False

    @property
    def normalized_wet_mode(self) -> str:
        return (self.wet_signature_mode or "").strip().lower() or "click"


class CompleteSignatureResponse(OkResponse):
    """Schema for the completion result."""

    envelope_id: str
    status: EnvelopeStatus
    certificate: dict[str, Any] | None = None
    base_document_path: str | None = None
    signed_document_path: str | None = None
    signed_document_path_canonical: str | None = None
    pdf_hash: str | None = None
    verify_url: str | None = None
    wet_signature_mode: str = "click"
    wet_signature_path: str | None = None
    force_regen: bool = False


class SigningContextRequest(PartyTokenMixin):
    """Schema for loading what a signer needs to see."""

    envelope_id: str | None = None
    party_id: str | None = None


# --- Envelope schemas ---


class PartyCreate(BaseModel):
    """Schema for a party in a new envelope."""

    name: str | None = None
    email: EmailStr
    role: str | None = None
    signing_order: int | None = PydanticField(default=None, ge=1)


class StartEnvelopeRequest(BaseModel):
    """Schema for issuing a signature envelope over a governance record."""

    record_id: str | None = None
    entity_slug: str | None = None
    is_test: bool = False
    parties: list[PartyCreate] = PydanticField(default_factory=list)

    # Single-signer shorthand
    signer_name: str | None = None
    signer_email: EmailStr | None = None


class PartyResponse(BaseSchema):
    """Schema for a party; never carries the capability token."""

    id: str
    envelope_id: str
    email: str | None
    display_name: str
    role: str | None
    signing_order: int
    status: PartyStatus
    signed_at: datetime | None


class IssuedPartyResponse(PartyResponse):
    signing_url: str


class StartEnvelopeResponse(OkResponse):
    envelope_id: str
    record_id: str
    entity_slug: str
    reused: bool
    created_parties: int
    status: EnvelopeStatus
    storage_bucket: str
    storage_path: str | None = None
    parties: list[IssuedPartyResponse]


class EnvelopeSummary(BaseSchema):
    id: str
    title: str | None
    status: EnvelopeStatus
    entity_id: str
    record_id: str
    is_test: bool
    storage_path: str | None
    supporting_document_path: str | None
    created_at: datetime
    completed_at: datetime | None


class EntitySummary(BaseSchema):
    id: str
    slug: str
    name: str


class RecordSummary(BaseSchema):
    id: str
    title: str
    description: str | None
    body: str | None
    is_test: bool
    created_at: datetime


class SigningContextResponse(OkResponse):
    envelope: EnvelopeSummary
    party: PartyResponse
    entity: EntitySummary | None = None
    record: RecordSummary | None = None
    verify_url: str
    document_path: str | None = None
    already_signed: bool


# --- Certification / ingest schemas ---


class CertifyRequest(BaseModel):
    envelope_id: str | None = None
    force_regen: bool = False


class CertificationResponse(OkResponse):
    """Schema for the hash-certified artifact of an envelope."""

    envelope_id: str
    reused: bool
    certified_at: str
    bucket: str
    path: str
    hash: str
    verify_url: str
    passes: int
    stable: bool
    embedded_hash: str | None = None


class IngestRequest(BaseModel):
    """Schema for registering a document in the Minute Book."""

    entity_slug: str | None = None
    entity_id: str | None = None
    document_class: str = "resolution"
    section_name: str = "Resolutions"
    source_bucket: str | None = None
    source_path: str | None = None
    title: str | None = None
    source_table: str | None = None
    source_record_id: str | None = None
    envelope_id: str | None = None
    pdf_hash: str | None = None
    is_test: bool | None = None


class IngestResponse(OkResponse):
    entry_id: str
    reused: bool
    source_bucket: str
    source_path: str
    file_hash: str
    file_size: int
    hash_mismatch: bool


# --- Verification schemas ---


class SignatureEventResponse(BaseSchema):
    id: str
    event_type: SignatureEventType
    timestamp: datetime
    party_id: str | None
    actor_email: str | None
    event_hash: str | None


class VerifyCertificateResponse(OkResponse):
    """Schema for public certificate verification."""

    envelope_id: str
    valid: bool
    reason: str | None = None
    status: EnvelopeStatus
    certificate: dict[str, Any] | None = None
    certification: dict[str, Any] | None = None
    parties: list[PartyResponse]
    signed_document_path: str | None = None
    expected_hash: str | None = None
    computed_hash: str | None = None
    hash_match: bool | None = None
    audit_trail_valid: bool
    events: list[SignatureEventResponse] = PydanticField(default_factory=list)
