"""
Outbound HTTP Client.

Thin wrapper over httpx.AsyncClient shared by every third-party
integration (Microsoft Graph, GoCardless, OVH, Cloudflare). Requests are
logged with the ``integrations`` source, go through a per-service circuit
breaker (see core/resilience.py) and are sent once. Any transport error
or non-2xx answer becomes an ExternalServiceError.
"""

from typing import Any

import httpx
from aiobreaker import CircuitBreakerError

from crm.backend.core.concurrency import get_semaphore
from crm.backend.core.config import get_app_config
from crm.backend.core.exceptions import ExternalServiceError
from crm.backend.core.logging import get_logger, log_with_source
from crm.backend.core.resilience import get_circuit_breaker

logger = get_logger(__name__)


class UpstreamError(Exception):
    """A 5xx answer, raised so the circuit breaker counts it."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


class ExternalAPIClient:
    """
    HTTP client for one external API.

    Usage:
        async with ExternalAPIClient("cloudflare", "https://api.cloudflare.com/client/v4") as api:
            data = await api.get_json("/user/tokens/verify")
    """

    def __init__(
        self,
        service: str,
        base_url: str,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.service = service
        self.base_url = base_url.rstrip("/")
        self.timeout = (
            timeout if timeout is not None
            else get_app_config().integrations.http_timeout_seconds
        )
        self.headers = headers or {}
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "ExternalAPIClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        async with get_semaphore("external_api"):
            response = await client.request(method, path, **kwargs)
        if response.status_code >= 500:
            raise UpstreamError(response)
        return response

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request once and return the response.

        The call goes through the service's circuit breaker; transport
        errors and 5xx answers count as failures.

        Raises:
            ExternalServiceError: On transport failure, an error status or
                an open circuit
        """
        log_with_source(
            logger, "integrations", "debug", "External request",
            service=self.service, method=method, path=path,
        )
        try:
            response = await get_circuit_breaker(self.service).call_async(self._send, method, path, **kwargs)
        except CircuitBreakerError as e:
            log_with_source(
                logger, "integrations", "warning", "Circuit open, request skipped",
                service=self.service, method=method, path=path,
            )
            raise ExternalServiceError(f"{self.service}: service temporairement indisponible") from e
        except UpstreamError as e:
            response = e.response
        except httpx.HTTPError as e:
            log_with_source(
                logger, "integrations", "error", "External request failed",
                service=self.service, method=method, path=path, error=str(e),
            )
            raise ExternalServiceError(f"{self.service}: service injoignable") from e

        if response.status_code >= 400:
            log_with_source(
                logger, "integrations", "warning", "External request rejected",
                service=self.service, method=method, path=path,
                status_code=response.status_code, body=response.text[:500],
            )
            raise ExternalServiceError(
                f"{self.service}: erreur HTTP {response.status_code}"
            )
        return response

    async def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self.request(method, path, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ExternalServiceError(f"{self.service}: réponse illisible") from e

    async def get_json(self, path: str, **kwargs: Any) -> Any:
        return await self.request_json("GET", path, **kwargs)

    async def post_json(self, path: str, **kwargs: Any) -> Any:
        return await self.request_json("POST", path, **kwargs)
