"""Authentication dependencies for service-to-service routes."""

from fastapi import Header

from parliament.core.security import verify_service_key


async def require_service_key(
    authorization: str | None = Header(default=None),
    apikey: str | None = Header(default=None),
) -> None:
    """Allow only callers holding the service role key."""
    verify_service_key(authorization, apikey)
