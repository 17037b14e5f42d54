"""Cloudflare API token check."""

from typing import Any

import httpx

from crm.backend.core.config import get_app_config
from crm.backend.core.exceptions import ExternalServiceError, ValidationError
from crm.backend.integrations.http import ExternalAPIClient


async def verify_token(
    api_token: str,
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float | None = None,
) -> dict[str, Any]:
    """
    Check a Cloudflare API token.

    Returns the token id and status. Raises when Cloudflare rejects it.
    """
    if not api_token:
        raise ValidationError("Jeton Cloudflare manquant")
    async with ExternalAPIClient(
        "cloudflare",
        get_app_config().integrations.cloudflare.base_url,
        timeout=timeout,
        headers={"Authorization": f"Bearer {api_token}"},
        transport=transport,
    ) as api:
        data = await api.get_json("/user/tokens/verify")
    if not data or not data.get("success"):
        raise ExternalServiceError("cloudflare: jeton refusé")
    result = data.get("result") or {}
    return {"id": result.get("id"), "status": result.get("status")}
