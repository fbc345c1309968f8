"""Capability tokens for signer links and service-to-service auth."""

import secrets

from parliament.core.config import get_settings
from parliament.core.exceptions import (
    ForbiddenError,
    TokenInvalidError,
    TokenRequiredError,
    UnauthorizedError,
)

settings = get_settings()


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token."""
    return secrets.token_urlsafe(length)


def generate_party_token() -> str:
    """Create the capability token a signer presents for their own party row."""
    return generate_secure_token(32)


def enforce_party_token(expected: str | None, provided: str | None) -> None:
    """
    Check a signer's capability token.

    Parties without a token on file (legacy rows) are allowed through.
    Otherwise the token is required and must match exactly.
    """
    if not expected:
        return

    provided = str(provided or "")
    if not provided:
        raise TokenRequiredError()
    if not secrets.compare_digest(provided.encode(), str(expected).encode()):
        raise TokenInvalidError()


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token part of an ``Authorization: Bearer ...`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def verify_service_key(authorization: str | None, apikey: str | None = None) -> None:
    """Require the service role key, as sent by sibling functions."""
    provided = extract_bearer_token(authorization) or (apikey or "").strip()
    if not provided:
        raise UnauthorizedError(details="Missing Authorization Bearer token")
    if not secrets.compare_digest(provided.encode(), settings.service_role_key.encode()):
        raise ForbiddenError(details="Invalid service key")


def build_signing_url(envelope_id: str, party_id: str, token: str | None) -> str:
    """Build the public signing link for a party."""
    url = (
        f"{settings.signing_link_base_url.rstrip('/')}/sign"
        f"?envelope_id={envelope_id}&party_id={party_id}"
    )
    if token:
        url += f"&token={token}"
    return url


def build_verify_url(envelope_id: str, cert_hash: str | None = None) -> str:
    """Public verification page for an envelope, optionally pinned to a hash."""
    url = f"{settings.verify_base_url.rstrip('/')}/verify.html?envelope_id={envelope_id}"
    if cert_hash:
        url += f"&hash={cert_hash}"
    return url
