"""Tests for the authenticated Eight Sleep HTTP client."""

import asyncio
import json

import httpx
import pytest
from pytest_httpx import HTTPXMock

from conftest import ME_URL, TEST_USER_ID, token_response
from core import eight_sleep_client
from core.config import AUTH_URL, EightSleepConfig
from core.eight_sleep_client import EightSleepClient
from core.exceptions import ApiError, AuthenticationError, ConfigurationError


def _auth_requests(httpx_mock: HTTPXMock) -> list[httpx.Request]:
    return httpx_mock.get_requests(url=AUTH_URL, method="POST")


def _bearer(request: httpx.Request) -> str:
    return request.headers["Authorization"]


class TestStatusHelpers:
    """Tests for is_http_error and is_auth_error."""

    def test_is_http_error(self) -> None:
        """Test that only 4xx/5xx are errors."""
        assert eight_sleep_client.is_http_error(200) is False
        assert eight_sleep_client.is_http_error(204) is False
        assert eight_sleep_client.is_http_error(400) is True
        assert eight_sleep_client.is_http_error(503) is True

    def test_is_auth_error(self) -> None:
        """Test that only 401 is an auth error."""
        assert eight_sleep_client.is_auth_error(401) is True
        assert eight_sleep_client.is_auth_error(403) is False
        assert eight_sleep_client.is_auth_error(500) is False


class TestExtractErrorMessage:
    """Tests for extract_error_message."""

    @pytest.mark.parametrize(
        ("body", "expected"),
        [
            ({"message": "Bad things"}, "Bad things"),
            ({"error_description": "Invalid grant"}, "Invalid grant"),
            ({"error": "invalid_client"}, "invalid_client"),
        ],
    )
    def test_extract_error_message_from_json(self, body: dict, expected: str) -> None:
        """Test that the vendor detail is taken from known JSON keys."""
        response = httpx.Response(400, json=body)
        assert eight_sleep_client.extract_error_message(response) == expected

    def test_extract_error_message_falls_back_to_text(self) -> None:
        """Test that a plain-text body is used as-is."""
        response = httpx.Response(502, text="Bad Gateway from upstream")
        assert eight_sleep_client.extract_error_message(response) == "Bad Gateway from upstream"

    def test_extract_error_message_falls_back_to_status(self) -> None:
        """Test that an empty body yields the status line."""
        response = httpx.Response(500)
        assert eight_sleep_client.extract_error_message(response) == "HTTP 500 Internal Server Error"


class TestValidateResponse:
    """Tests for validate_response."""

    def test_validate_response_returns_json(self) -> None:
        """Test that a 2xx JSON body is decoded."""
        response = httpx.Response(200, json={"ok": True})
        assert eight_sleep_client.validate_response(response) == {"ok": True}

    def test_validate_response_returns_none_for_empty_body(self) -> None:
        """Test that a 204 yields None."""
        assert eight_sleep_client.validate_response(httpx.Response(204)) is None

    def test_validate_response_raises_api_error(self) -> None:
        """Test that a non-2xx status raises ApiError with the status."""
        response = httpx.Response(404, json={"message": "No such alarm"})
        with pytest.raises(ApiError, match="No such alarm") as exc_info:
            eight_sleep_client.validate_response(response)
        assert exc_info.value.status == 404

    def test_validate_response_raises_on_invalid_json(self) -> None:
        """Test that a 2xx non-JSON body raises ApiError."""
        response = httpx.Response(200, text="<html>")
        with pytest.raises(ApiError, match="Invalid JSON"):
            eight_sleep_client.validate_response(response)


class TestAuthenticate:
    """Tests for EightSleepClient.authenticate."""

    @pytest.mark.asyncio
    async def test_authenticate_stores_token_and_user_id(
        self,
        httpx_mock: HTTPXMock,
        client: EightSleepClient,
    ) -> None:
        """Test that a successful login stores the token and user id."""
        httpx_mock.add_response(url=AUTH_URL, method="POST", json=token_response())

        token = await client.authenticate()

        assert token.token == "access-token-1"
        assert token.expires_in == 3600
        assert client.is_authenticated is True
        assert client.user_id == TEST_USER_ID

    @pytest.mark.asyncio
    async def test_authenticate_sends_password_grant(
        self,
        httpx_mock: HTTPXMock,
        client: EightSleepClient,
    ) -> None:
        """Test that the login payload uses the password grant."""
        httpx_mock.add_response(url=AUTH_URL, method="POST", json=token_response())

        await client.authenticate()

        request = httpx_mock.get_request(url=AUTH_URL)
        assert json.loads(request.content) == {
            "client_id": "client-id",
            "client_secret": "client-secret",
            "grant_type": "password",
            "username": "sleeper@example.com",
            "password": "hunter2",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["email", "password"])
    async def test_authenticate_without_credentials_raises_configuration_error(
        self,
        httpx_mock: HTTPXMock,
        missing: str,
    ) -> None:
        """Test that missing credentials fail before any network call."""
        values = {"email": "sleeper@example.com", "password": "hunter2", missing: ""}
        client = EightSleepClient(EightSleepConfig(user_id=TEST_USER_ID, **values))

        with pytest.raises(ConfigurationError, match="EIGHT_SLEEP_EMAIL"):
            await client.authenticate()

        assert httpx_mock.get_requests() == []
        assert client.is_authenticated is False

    @pytest.mark.asyncio
    async def test_authenticate_raises_with_upstream_detail(
        self,
        httpx_mock: HTTPXMock,
        client: EightSleepClient,
    ) -> None:
        """Test that a rejected login includes the vendor's message."""
        httpx_mock.add_response(
            url=AUTH_URL,
            method="POST",
            status_code=400,
            json={"error": "invalid_grant", "error_description": "Wrong password"},
        )

        with pytest.raises(AuthenticationError, match="Wrong password"):
            await client.authenticate()

    @pytest.mark.asyncio
    async def test_authenticate_raises_when_token_missing(
        self,
        httpx_mock: HTTPXMock,
        client: EightSleepClient,
    ) -> None:
        """Test that a 200 without access_token is an authentication error."""
        httpx_mock.add_response(url=AUTH_URL, method="POST", json={"expires_in": 3600})

        with pytest.raises(AuthenticationError, match="Invalid authentication response"):
            await client.authenticate()

    @pytest.mark.asyncio
    async def test_authenticate_raises_on_network_failure(
        self,
        httpx_mock: HTTPXMock,
        client: EightSleepClient,
    ) -> None:
        """Test that a connection failure is an authentication error."""
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"), url=AUTH_URL)

        with pytest.raises(AuthenticationError, match="Connection refused"):
            await client.authenticate()


class TestRequest:
    """Tests for EightSleepClient.request."""

    @pytest.mark.asyncio
    async def test_request_authenticates_lazily_once(
        self,
        httpx_mock: HTTPXMock,
        client: EightSleepClient,
    ) -> None:
        """Test that the first call logs in and later calls reuse the token."""
        httpx_mock.add_response(url=AUTH_URL, method="POST", json=token_response())
        httpx_mock.add_response(url=ME_URL, method="GET", json={"user": {"id": "a"}})
        httpx_mock.add_response(url=ME_URL, method="GET", json={"user": {"id": "b"}})

        first = await client.request("GET", "/users/me")
        second = await client.request("GET", "/users/me")

        assert first == {"user": {"id": "a"}}
        assert second == {"user": {"id": "b"}}
        assert len(_auth_requests(httpx_mock)) == 1
        for request in httpx_mock.get_requests(url=ME_URL):
            assert _bearer(request) == "Bearer access-token-1"

    @pytest.mark.asyncio
    async def test_request_retries_once_after_401(
        self,
        httpx_mock: HTTPXMock,
        client: EightSleepClient,
    ) -> None:
        """Test that one 401 triggers exactly one re-login and a retry."""
        httpx_mock.add_response(url=AUTH_URL, method="POST", json=token_response("expired"))
        httpx_mock.add_response(url=ME_URL, method="GET", status_code=401)
        httpx_mock.add_response(url=AUTH_URL, method="POST", json=token_response("fresh"))
        httpx_mock.add_response(url=ME_URL, method="GET", json={"user": {"id": "a"}})

        result = await client.request("GET", "/users/me")

        assert result == {"user": {"id": "a"}}
        assert len(_auth_requests(httpx_mock)) == 2
        attempts = httpx_mock.get_requests(url=ME_URL)
        assert [_bearer(r) for r in attempts] == ["Bearer expired", "Bearer fresh"]

    @pytest.mark.asyncio
    async def test_request_replays_body_and_params_on_retry(
        self,
        httpx_mock: HTTPXMock,
        client: EightSleepClient,
    ) -> None:
        """Test that the retried request is identical apart from the token."""
        url = f"{ME_URL}?a=1"
        httpx_mock.add_response(url=AUTH_URL, method="POST", json=token_response("expired"))
        httpx_mock.add_response(url=url, method="PATCH", status_code=401)
        httpx_mock.add_response(url=AUTH_URL, method="POST", json=token_response("fresh"))
        httpx_mock.add_response(url=url, method="PATCH", status_code=204)

        await client.request("PATCH", "/users/me", json={"units": "metric"}, params={"a": "1"})

        first, retry = httpx_mock.get_requests(url=url)
        assert json.loads(first.content) == json.loads(retry.content) == {"units": "metric"}

    @pytest.mark.asyncio
    async def test_request_raises_after_second_401(
        self,
        httpx_mock: HTTPXMock,
        client: EightSleepClient,
    ) -> None:
        """Test that a 401 on the retry is not retried again."""
        httpx_mock.add_response(url=AUTH_URL, method="POST", json=token_response("t1"))
        httpx_mock.add_response(url=ME_URL, method="GET", status_code=401)
        httpx_mock.add_response(url=AUTH_URL, method="POST", json=token_response("t2"))
        httpx_mock.add_response(url=ME_URL, method="GET", status_code=401)

        with pytest.raises(AuthenticationError):
            await client.request("GET", "/users/me")

        assert len(httpx_mock.get_requests(url=ME_URL)) == 2
        assert len(_auth_requests(httpx_mock)) == 2
        assert client.is_authenticated is False

    @pytest.mark.asyncio
    async def test_request_raises_when_relogin_fails(
        self,
        httpx_mock: HTTPXMock,
        client: EightSleepClient,
    ) -> None:
        """Test that a failed re-login surfaces and leaves no token."""
        httpx_mock.add_response(url=AUTH_URL, method="POST", json=token_response())
        httpx_mock.add_response(url=ME_URL, method="GET", status_code=401)
        httpx_mock.add_response(url=AUTH_URL, method="POST", status_code=503)

        with pytest.raises(AuthenticationError, match="Failed to authenticate"):
            await client.request("GET", "/users/me")

        assert client.is_authenticated is False

    @pytest.mark.asyncio
    async def test_request_raises_api_error_with_status(
        self,
        httpx_mock: HTTPXMock,
        client: EightSleepClient,
    ) -> None:
        """Test that non-401 errors become ApiError without retrying."""
        httpx_mock.add_response(url=AUTH_URL, method="POST", json=token_response())
        httpx_mock.add_response(
            url=ME_URL, method="GET", status_code=500, json={"message": "Internal failure"}
        )

        with pytest.raises(ApiError, match="Internal failure") as exc_info:
            await client.request("GET", "/users/me")

        assert exc_info.value.status == 500
        assert len(_auth_requests(httpx_mock)) == 1

    @pytest.mark.asyncio
    async def test_request_raises_api_error_on_network_failure(
        self,
        httpx_mock: HTTPXMock,
        client: EightSleepClient,
    ) -> None:
        """Test that a transport failure on a resource call is an ApiError."""
        httpx_mock.add_response(url=AUTH_URL, method="POST", json=token_response())
        httpx_mock.add_exception(httpx.ReadTimeout("Read timed out"), url=ME_URL)

        with pytest.raises(ApiError, match="Read timed out") as exc_info:
            await client.request("GET", "/users/me")

        assert exc_info.value.status is None

    @pytest.mark.asyncio
    async def test_request_without_credentials_makes_no_calls(
        self,
        httpx_mock: HTTPXMock,
    ) -> None:
        """Test that the first request fails fast without credentials."""
        client = EightSleepClient(EightSleepConfig(user_id=TEST_USER_ID))

        with pytest.raises(ConfigurationError):
            await client.request("GET", "/users/me")

        assert httpx_mock.get_requests() == []

    @pytest.mark.asyncio
    async def test_concurrent_401s_share_one_relogin(
        self,
        httpx_mock: HTTPXMock,
        client: EightSleepClient,
    ) -> None:
        """Test that callers rejected with the same stale token log in once."""
        issued = iter(["stale", "fresh", "unexpected"])

        def login(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=token_response(next(issued)))

        def resource(request: httpx.Request) -> httpx.Response:
            if _bearer(request) == "Bearer stale":
                return httpx.Response(401)
            return httpx.Response(200, json={"ok": True})

        httpx_mock.add_callback(login, url=AUTH_URL, method="POST", is_reusable=True)
        httpx_mock.add_callback(resource, url=ME_URL, method="GET", is_reusable=True)

        await client.authenticate()
        results = await asyncio.gather(
            client.request("GET", "/users/me"),
            client.request("GET", "/users/me"),
            client.request("GET", "/users/me"),
        )

        assert results == [{"ok": True}] * 3
        assert len(_auth_requests(httpx_mock)) == 2

    @pytest.mark.asyncio
    async def test_aclose_closes_both_sessions(self, config: EightSleepConfig) -> None:
        """Test that the async context manager closes the HTTP clients."""
        session = httpx.AsyncClient()
        auth_session = httpx.AsyncClient()

        async with EightSleepClient(config, session=session, auth_session=auth_session):
            pass

        assert session.is_closed is True
        assert auth_session.is_closed is True
