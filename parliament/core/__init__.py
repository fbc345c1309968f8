"""Core module package."""

from parliament.core.config import Settings, get_settings
from parliament.core.security import (
    build_signing_url,
    build_verify_url,
    enforce_party_token,
    generate_party_token,
    generate_secure_token,
    verify_service_key,
)

__all__ = [
    "Settings",
    "get_settings",
    "build_signing_url",
    "build_verify_url",
    "enforce_party_token",
    "generate_party_token",
    "generate_secure_token",
    "verify_service_key",
]
