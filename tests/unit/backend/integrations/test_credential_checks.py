"""
Unit Tests for the OVH and Cloudflare credential checks.

Both APIs are httpx.MockTransport handlers.
"""

import hashlib

import httpx
import pytest

from crm.backend.core import resilience
from crm.backend.core.exceptions import ExternalServiceError, ValidationError
from crm.backend.integrations.cloudflare import verify_token
from crm.backend.integrations.ovh import OvhClient, sign_request


@pytest.fixture(autouse=True)
def fresh_breakers():
    resilience.reset_circuit_breakers()
    yield
    resilience.reset_circuit_breakers()


class TestOvh:
    def test_signature(self):
        raw = "secret+consumer+GET+https://eu.api.ovh.com/1.0/me++1700000000"
        expected = "$1$" + hashlib.sha1(raw.encode("utf-8")).hexdigest()

        assert sign_request("secret", "consumer", "get", "https://eu.api.ovh.com/1.0/me", "", 1700000000) == expected

    def test_incomplete_credentials(self):
        with pytest.raises(ValidationError):
            OvhClient("key", "", "consumer")

    def test_unknown_endpoint(self):
        with pytest.raises(ValidationError):
            OvhClient("key", "secret", "consumer", endpoint="ovh-mars")

    @pytest.mark.asyncio
    async def test_verify_signs_request(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path.endswith("/auth/time"):
                return httpx.Response(200, json=1700000000)
            return httpx.Response(200, json={"nichandle": "ab12345-ovh", "firstname": "Jean", "name": "Dupont"})

        async with OvhClient("key", "secret", "consumer", transport=httpx.MockTransport(handler)) as ovh:
            account = await ovh.verify()

        assert account == {"nichandle": "ab12345-ovh", "name": "Jean Dupont"}
        me = seen[1]
        assert me.headers["X-Ovh-Application"] == "key"
        assert me.headers["X-Ovh-Timestamp"] == "1700000000"
        assert me.headers["X-Ovh-Signature"] == sign_request(
            "secret", "consumer", "GET", "https://eu.api.ovh.com/1.0/me", "", 1700000000,
        )

    @pytest.mark.asyncio
    async def test_rejected_credentials(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/auth/time"):
                return httpx.Response(200, json=1700000000)
            return httpx.Response(403, json={"message": "Invalid credential"})

        async with OvhClient("key", "secret", "consumer", transport=httpx.MockTransport(handler)) as ovh:
            with pytest.raises(ExternalServiceError, match="403"):
                await ovh.verify()


class TestCloudflare:
    @pytest.mark.asyncio
    async def test_missing_token(self):
        with pytest.raises(ValidationError):
            await verify_token("")

    @pytest.mark.asyncio
    async def test_valid_token(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer tok"
            return httpx.Response(200, json={"success": True, "result": {"id": "abc", "status": "active"}})

        result = await verify_token("tok", transport=httpx.MockTransport(handler))

        assert result == {"id": "abc", "status": "active"}

    @pytest.mark.asyncio
    async def test_refused_token(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": False, "errors": [{"code": 1000}]})

        with pytest.raises(ExternalServiceError, match="refusé"):
            await verify_token("tok", transport=httpx.MockTransport(handler))
