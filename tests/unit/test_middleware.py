"""Tests for middleware functionality."""

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from fastapi import Request, Response
from jose import jwt

from chat_proxy.config import settings
from chat_proxy.exceptions import AuthenticationRequired
from chat_proxy.middleware import add_request_id, create_token, get_current_user


def mock_request(headers: dict[str, str]) -> Mock:
    request = Mock(spec=Request)
    request.headers = Mock()
    request.headers.get = lambda key, default=None: headers.get(key, default)
    request.state = SimpleNamespace()
    request.method = "POST"
    request.url = Mock(path="/chat/stream")
    request.client = None
    return request


async def call_next(request):
    response = Mock(spec=Response)
    response.headers = {}
    response.status_code = 200
    return response


class TestRequestIDMiddleware:
    """Test request ID middleware."""

    @pytest.mark.asyncio
    async def test_add_request_id_with_existing_header(self):
        request = mock_request({"X-Request-ID": "existing-id-123"})
        response = await add_request_id(request, call_next)

        assert request.state.request_id == "existing-id-123"
        assert response.headers["X-Request-ID"] == "existing-id-123"

    @pytest.mark.asyncio
    async def test_add_request_id_generates_new_id(self):
        request = mock_request({})
        response = await add_request_id(request, call_next)

        assert len(request.state.request_id) == 36
        assert response.headers["X-Request-ID"] == request.state.request_id


class TestJWT:
    """Test token creation and validation."""

    @pytest.mark.asyncio
    async def test_round_trip(self):
        token = create_token("user-42")
        assert await get_current_user(f"Bearer {token}") == "user-42"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", [None, "", "Token abc", "Bearer not-a-jwt"])
    async def test_invalid_headers(self, header):
        with pytest.raises(AuthenticationRequired) as exc_info:
            await get_current_user(header)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self):
        payload = {"sub": "user-42", "exp": datetime.now(UTC) - timedelta(minutes=1)}
        token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
        with pytest.raises(AuthenticationRequired):
            await get_current_user(f"Bearer {token}")

    @pytest.mark.asyncio
    async def test_token_without_subject(self):
        payload = {"exp": datetime.now(UTC) + timedelta(minutes=5)}
        token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
        with pytest.raises(AuthenticationRequired):
            await get_current_user(f"Bearer {token}")

    @pytest.mark.asyncio
    async def test_wrong_secret(self):
        token = jwt.encode({"sub": "user-42"}, "another-secret", algorithm=settings.jwt_algorithm)
        with pytest.raises(AuthenticationRequired):
            await get_current_user(f"Bearer {token}")
