"""Pydantic schemas package."""

from parliament.schemas.schemas import (
    CertificationResponse,
    CertifyRequest,
    CompleteSignatureRequest,
    CompleteSignatureResponse,
    EntitySummary,
    EnvelopeSummary,
    IngestRequest,
    IngestResponse,
    IssuedPartyResponse,
    PartyCreate,
    PartyResponse,
    RecordSummary,
    SignatureEventResponse,
    SigningContextRequest,
    SigningContextResponse,
    StartEnvelopeRequest,
    StartEnvelopeResponse,
    VerifyCertificateResponse,
)

__all__ = [
    "CertificationResponse",
    "CertifyRequest",
    "CompleteSignatureRequest",
    "CompleteSignatureResponse",
    "EntitySummary",
    "EnvelopeSummary",
    "IngestRequest",
    "IngestResponse",
    "IssuedPartyResponse",
    "PartyCreate",
    "PartyResponse",
    "RecordSummary",
    "SignatureEventResponse",
    "SigningContextRequest",
    "SigningContextResponse",
    "StartEnvelopeRequest",
    "StartEnvelopeResponse",
    "VerifyCertificateResponse",
]
