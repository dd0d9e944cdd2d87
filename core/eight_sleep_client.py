# =============================================================================
# core/eight_sleep_client.py  -  Authenticated HTTP Client
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   EightSleepClient holds one bearer token, attaches it to every resource
#   request and recovers from expiry by logging in again and replaying the
#   rejected request exactly once.
#
# TOKEN STATES:
#   No token   -> first request logs in (password grant against AUTH_URL)
#   Token held -> a 401 drops it; one relogin, one retry.  A second 401
#                 raises AuthenticationError and leaves no token behind.
# =============================================================================

import asyncio
import logging
from typing import Any

import httpx

from core.config import USER_AGENT, EightSleepConfig
from core.exceptions import ApiError, AuthenticationError, ConfigurationError
from core.models import AccessToken

_LOGGER = logging.getLogger(__name__)

# HTTP status codes
HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "User-Agent": USER_AGENT,
}


def is_http_error(status: int) -> bool:
    """Check if HTTP status code indicates an error.

    Args:
        status: HTTP status code to check.

    Returns:
        True if status code is 400 or higher, False otherwise.

    """
    return status >= HTTP_BAD_REQUEST


def is_auth_error(status: int) -> bool:
    """Check if HTTP status code indicates an expired or rejected token."""
    return status == HTTP_UNAUTHORIZED


def extract_error_message(response: httpx.Response) -> str:
    """Pull the vendor's error detail out of a failed response.

    The token endpoint and the resource API use different keys, so the
    first non-empty of ``message``, ``error_description`` and ``error`` wins.
    Falls back to the raw body, then to the reason phrase.
    """
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        for key in ("message", "error_description", "error"):
            if data.get(key):
                return str(data[key])

    text = response.text.strip()
    return text or f"HTTP {response.status_code} {response.reason_phrase}"


def validate_response(response: httpx.Response) -> Any:
    """Validate HTTP response and return parsed JSON data.

    Args:
        response: HTTP response object to validate.

    Returns:
        Parsed JSON body, or None when the body is empty.

    Raises:
        ApiError: If the status is not 2xx or the body is not JSON.

    """
    if is_http_error(response.status_code):
        raise ApiError(response.status_code, extract_error_message(response))

    if not response.content:
        return None

    try:
        return response.json()
    except ValueError as err:
        raise ApiError(response.status_code, f"Invalid JSON in response: {err}") from err


class EightSleepClient:
    """Bearer-token HTTP client with lazy login and one retry on 401.

    Two httpx clients are used: one for the token endpoint and one, rooted at
    the API base URL, for resource calls.  Both can be injected for testing.

    Re-authentication is single-flight: concurrent callers that see a 401
    for the same stale token wait on one login instead of each starting
    their own.
    """

    def __init__(
        self,
        config: EightSleepConfig,
        *,
        session: httpx.AsyncClient | None = None,
        auth_session: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Credentials and endpoints.
            session: HTTP client for resource calls.
            auth_session: HTTP client for the token endpoint.

        """
        self._config = config
        self._session = session or httpx.AsyncClient(
            base_url=config.api_url,
            headers=DEFAULT_HEADERS,
            timeout=config.timeout,
        )
        self._auth_session = auth_session or httpx.AsyncClient(
            headers=DEFAULT_HEADERS,
            timeout=config.timeout,
        )
        self._token: AccessToken | None = None
        self._auth_lock = asyncio.Lock()
        self.user_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        """True while a token is held."""
        return self._token is not None

    async def __aenter__(self) -> "EightSleepClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close both underlying HTTP clients."""
        await self._session.aclose()
        await self._auth_session.aclose()

    async def authenticate(self) -> AccessToken:
        """Log in with the configured email and password.

        Returns:
            The new access token, which is also stored on the client.

        Raises:
            ConfigurationError: If email or password is missing.
            AuthenticationError: If the login request fails or returns no token.

        """
        if not self._config.has_credentials:
            missing_credentials = (
                "Missing required credentials. Set EIGHT_SLEEP_EMAIL and "
                "EIGHT_SLEEP_PASSWORD in the environment or .env file"
            )
            raise ConfigurationError(missing_credentials)

        payload = {
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "grant_type": "password",
            "username": self._config.email,
            "password": self._config.password,
        }

        _LOGGER.debug("Authenticating with Eight Sleep API")
        try:
            response = await self._auth_session.post(self._config.auth_url, json=payload)
        except httpx.RequestError as err:
            failure = f"Failed to authenticate with Eight Sleep: {err}"
            raise AuthenticationError(failure) from err

        if is_http_error(response.status_code):
            failure = (
                "Failed to authenticate with Eight Sleep: "
                f"{extract_error_message(response)}"
            )
            raise AuthenticationError(failure)

        try:
            data = response.json()
        except ValueError as err:
            invalid = "Invalid authentication response from Eight Sleep"
            raise AuthenticationError(invalid) from err

        if not isinstance(data, dict) or not data.get("access_token"):
            invalid = "Invalid authentication response from Eight Sleep"
            raise AuthenticationError(invalid)

        self._token = AccessToken(
            token=data["access_token"],
            expires_in=data.get("expires_in"),
        )
        self.user_id = self._config.user_id
        _LOGGER.debug(
            "Successfully authenticated with Eight Sleep API (expires_in=%s)",
            self._token.expires_in,
        )
        return self._token

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send an authenticated request to the resource API.

        Args:
            method: HTTP method.
            path: Path relative to the API base URL, e.g. "/users/me".
            json: Optional JSON body.
            params: Optional query parameters.

        Returns:
            Parsed JSON body, or None for an empty body.

        Raises:
            ConfigurationError: If credentials are missing.
            AuthenticationError: If login fails or the retried request is
                rejected again.
            ApiError: For any other non-2xx status or a network failure.

        """
        token = self._token or await self._ensure_token()
        response = await self._send(method, path, token, json, params)

        if is_auth_error(response.status_code):
            _LOGGER.debug("Access token rejected for %s %s, re-authenticating", method, path)
            token = await self._refresh_token(token)
            response = await self._send(method, path, token, json, params)
            if is_auth_error(response.status_code):
                async with self._auth_lock:
                    if self._token is token:
                        self._token = None
                rejected = (
                    "Eight Sleep rejected the request after re-authenticating: "
                    f"{extract_error_message(response)}"
                )
                raise AuthenticationError(rejected)

        return validate_response(response)

    async def _send(
        self,
        method: str,
        path: str,
        token: AccessToken,
        json: Any,
        params: dict[str, Any] | None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token.token}"}
        _LOGGER.debug("%s %s params=%s", method, path, params)
        try:
            return await self._session.request(
                method, path, json=json, params=params, headers=headers
            )
        except httpx.RequestError as err:
            raise ApiError(None, f"Request to {path} failed: {err}") from err

    async def _ensure_token(self) -> AccessToken:
        """Log in on first use; later callers reuse the token."""
        async with self._auth_lock:
            if self._token is None:
                await self.authenticate()
            return self._token

    async def _refresh_token(self, stale: AccessToken) -> AccessToken:
        """Replace a rejected token, unless another caller already did."""
        async with self._auth_lock:
            if self._token is None or self._token is stale:
                self._token = None
                await self.authenticate()
            return self._token
