"""Best-effort calls to the sibling ingest and certify functions."""

from typing import Any

import httpx

from parliament.core.config import get_settings
from parliament.core.logger import get_logger, request_id_var

settings = get_settings()
logger = get_logger(__name__)

INGEST_FUNCTION = "odp-pdf-ingest"
CERTIFY_FUNCTION = "odp-pdf-certify"


class DownstreamClient:
    """
    POSTs JSON to sibling functions with the service role key.

    Every call returns True on a 2xx response and False otherwise. Transport
    errors and non-2xx responses are logged, never raised.
    """

    def __init__(
        self,
        base_url: str | None = None,
        service_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.functions_base_url).rstrip("/")
        self.service_key = service_key or settings.service_role_key
        self.timeout = timeout or settings.downstream_timeout_seconds
        self.transport = transport

    def function_url(self, name: str) -> str:
        return f"{self.base_url}{settings.api_prefix}/{name}"

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
            "Content-Type": "application/json",
        }
        request_id = request_id_var.get()
        if request_id:
            headers["X-Request-ID"] = request_id
        return headers

    async def call(self, name: str, payload: dict[str, Any]) -> bool:
        url = self.function_url(name)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning("downstream_call_failed", function=name, url=url, error=str(e))
            return False

        if response.is_success:
            logger.info("downstream_call_succeeded", function=name, status_code=response.status_code)
            return True

        logger.warning(
            "downstream_call_rejected",
            function=name,
            status_code=response.status_code,
            body=response.text[:500],
        )
        return False

    async def ingest(self, payload: dict[str, Any]) -> bool:
        """Register a signed document in the Minute Book."""
        return await self.call(INGEST_FUNCTION, payload)

    async def certify(self, envelope_id: str, force_regen: bool = False) -> bool:
        """Request the hash-certified artifact for an envelope."""
        return await self.call(
            CERTIFY_FUNCTION, {"envelope_id": envelope_id, "force_regen": force_regen}
        )


def get_downstream_client() -> DownstreamClient:
    """FastAPI dependency; overridden in tests."""
    return DownstreamClient()
