"""
OVH API credential check.

Requests are signed with the application secret and consumer key:
``$1$`` + SHA1(secret+consumer+METHOD+url+body+timestamp).
"""

import hashlib
from typing import Any

import httpx

from crm.backend.core.config import get_app_config
from crm.backend.core.exceptions import ExternalServiceError, ValidationError
from crm.backend.integrations.http import ExternalAPIClient


def sign_request(
    app_secret: str,
    consumer_key: str,
    method: str,
    url: str,
    body: str,
    timestamp: int,
) -> str:
    raw = "+".join([app_secret, consumer_key, method.upper(), url, body, str(timestamp)])
    return "$1$" + hashlib.sha1(raw.encode("utf-8")).hexdigest()


class OvhClient:
    def __init__(
        self,
        app_key: str,
        app_secret: str,
        consumer_key: str,
        endpoint: str = "ovh-eu",
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ) -> None:
        if not (app_key and app_secret and consumer_key):
            raise ValidationError("Identifiants OVH incomplets")
        endpoints = get_app_config().integrations.ovh.endpoints
        if endpoint not in endpoints:
            raise ValidationError(f"Endpoint OVH inconnu: {endpoint}")
        self.app_key = app_key
        self.app_secret = app_secret
        self.consumer_key = consumer_key
        self.base_url = endpoints[endpoint].rstrip("/")
        self.api = ExternalAPIClient("ovh", self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "OvhClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.api.close()

    async def server_time(self) -> int:
        return int(await self.api.get_json("/auth/time"))

    async def get(self, path: str) -> Any:
        timestamp = await self.server_time()
        signature = sign_request(
            self.app_secret, self.consumer_key, "GET", f"{self.base_url}{path}", "", timestamp,
        )
        return await self.api.get_json(path, headers={
            "X-Ovh-Application": self.app_key,
            "X-Ovh-Consumer": self.consumer_key,
            "X-Ovh-Timestamp": str(timestamp),
            "X-Ovh-Signature": signature,
        })

    async def verify(self) -> dict[str, Any]:
        """Return the account nic handle and name, or raise."""
        me = await self.get("/me")
        if not isinstance(me, dict) or "nichandle" not in me:
            raise ExternalServiceError("ovh: réponse inattendue")
        return {
            "nichandle": me["nichandle"],
            "name": " ".join(p for p in (me.get("firstname"), me.get("name")) if p),
        }
