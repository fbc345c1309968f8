"""Services package."""

from parliament.services.audit import audit_service
from parliament.services.certificate import certificate_renderer
from parliament.services.certify import certification_service
from parliament.services.envelope_state import envelope_state
from parliament.services.envelopes import envelope_service
from parliament.services.ingest import ingest_service
from parliament.services.locator import document_locator
from parliament.services.signing import signing_service
from parliament.services.storage import storage_service
from parliament.services.verification import verification_service

__all__ = [
    "audit_service",
    "certificate_renderer",
    "certification_service",
    "document_locator",
    "envelope_service",
    "envelope_state",
    "ingest_service",
    "signing_service",
    "storage_service",
    "verification_service",
]
