# backend/tests/unit/test_security.py

import hmac
import hashlib
import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi import HTTPException

from convers.utils import dependencies
from convers.utils.dependencies import is_valid_signature
from convers.utils.rate_limiter import client_address

SECRET = "shh"


def sign(body: bytes, secret: str = SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def fake_request(headers=None, host="10.0.0.1", body=b""):
    request = MagicMock()
    request.headers = headers or {}
    request.client = MagicMock(host=host) if host else None
    request.body = AsyncMock(return_value=body)
    return request


class TestWebhookSignature:

    def test_valid_signature(self):
        body = b'{"entry": []}'
        assert is_valid_signature(body, sign(body), SECRET) is True

    def test_signature_for_other_body_or_secret_is_rejected(self):
        body = b'{"entry": []}'
        assert is_valid_signature(b'{"entry": [1]}', sign(body), SECRET) is False
        assert is_valid_signature(body, sign(body, "other"), SECRET) is False

    def test_missing_or_malformed_header_is_rejected(self):
        body = b"{}"
        assert is_valid_signature(body, "", SECRET) is False
        assert is_valid_signature(body, sign(body)[len("sha256="):], SECRET) is False

    @pytest.mark.asyncio
    async def test_dependency_returns_raw_body(self, mocker):
        mocker.patch.object(dependencies.settings, "whatsapp_app_secret", SECRET)
        body = b'{"entry": []}'
        request = fake_request(headers={"x-hub-signature-256": sign(body)}, body=body)
        assert await dependencies.verify_webhook_signature(request) == body

    @pytest.mark.asyncio
    async def test_dependency_rejects_bad_signature(self, mocker):
        mocker.patch.object(dependencies.settings, "whatsapp_app_secret", SECRET)
        request = fake_request(headers={"x-hub-signature-256": "sha256=00"}, body=b"{}")
        with pytest.raises(HTTPException) as exc_info:
            await dependencies.verify_webhook_signature(request)
        assert exc_info.value.status_code == 403


class TestApiKey:

    @pytest.mark.asyncio
    async def test_matching_key_passes(self, mocker):
        mocker.patch.object(dependencies.settings, "api_key", "k1")
        await dependencies.verify_api_key(fake_request(headers={"X-API-KEY": "k1"}))

    @pytest.mark.asyncio
    async def test_wrong_key_is_forbidden(self, mocker):
        mocker.patch.object(dependencies.settings, "api_key", "k1")
        with pytest.raises(HTTPException) as exc_info:
            await dependencies.verify_api_key(fake_request(headers={"X-API-KEY": "k2"}))
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_no_configured_key_disables_the_guard(self, mocker):
        mocker.patch.object(dependencies.settings, "api_key", None)
        await dependencies.verify_api_key(fake_request())


class TestClientAddress:

    def test_forwarded_header_wins(self):
        request = fake_request(headers={"x-forwarded-for": "203.0.113.9, 10.0.0.2"})
        assert client_address(request) == "203.0.113.9"

    def test_falls_back_to_socket_peer(self):
        assert client_address(fake_request()) == "10.0.0.1"
        assert client_address(fake_request(host=None)) == "127.0.0.1"
