# =============================================================================
# core/config.py  -  Credentials & Connection Settings
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Reads the Eight Sleep credentials from the environment into a single
#   immutable EightSleepConfig.  The entry point builds one instance at start
#   and hands it to EightSleepClient; nothing else reads os.environ.
#
# ENVIRONMENT VARIABLES:
#   EIGHT_SLEEP_EMAIL          account email           (required at first login)
#   EIGHT_SLEEP_PASSWORD       account password        (required at first login)
#   EIGHT_SLEEP_CLIENT_ID      OAuth client id
#   EIGHT_SLEEP_CLIENT_SECRET  OAuth client secret
#   EIGHT_SLEEP_USER_ID        user every tool acts on
#   EIGHT_SLEEP_TIMEZONE       IANA zone for sleep trend queries
#   PORT                       kept for parity with HTTP deployments
#
#   Missing email/password is NOT checked here.  It surfaces as a
#   ConfigurationError on the first authentication attempt.
# =============================================================================

import os
from dataclasses import dataclass, field
from typing import Mapping

API_BASE_URL = "https://client-api.8slp.net/v1"
AUTH_URL = "https://auth-api.8slp.net/v1/tokens"

DEFAULT_TIMEZONE = "America/Los_Angeles"
DEFAULT_PORT = 8001
REQUEST_TIMEOUT = 10.0
USER_AGENT = "Eight Sleep MCP Client/1.0"


def _parse_port(value: str | None) -> int:
    """Parse PORT, falling back to the default when unset or not a number."""
    try:
        return int(value) if value else DEFAULT_PORT
    except ValueError:
        return DEFAULT_PORT


@dataclass(frozen=True)
class EightSleepConfig:
    """Credentials and endpoints for one Eight Sleep account."""

    email: str = ""
    password: str = field(default="", repr=False)
    client_id: str = ""
    client_secret: str = field(default="", repr=False)
    user_id: str = ""
    port: int = DEFAULT_PORT
    timezone: str = DEFAULT_TIMEZONE
    api_url: str = API_BASE_URL
    auth_url: str = AUTH_URL
    timeout: float = REQUEST_TIMEOUT

    @property
    def has_credentials(self) -> bool:
        """True when both email and password are set."""
        return bool(self.email and self.password)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EightSleepConfig":
        """Build a config from environment variables.

        Args:
            environ: Mapping to read from.  Defaults to os.environ.

        Returns:
            A frozen EightSleepConfig.  Unset variables become empty strings.
        """
        env = os.environ if environ is None else environ
        return cls(
            email=env.get("EIGHT_SLEEP_EMAIL", ""),
            password=env.get("EIGHT_SLEEP_PASSWORD", ""),
            client_id=env.get("EIGHT_SLEEP_CLIENT_ID", ""),
            client_secret=env.get("EIGHT_SLEEP_CLIENT_SECRET", ""),
            user_id=env.get("EIGHT_SLEEP_USER_ID", ""),
            port=_parse_port(env.get("PORT")),
            timezone=env.get("EIGHT_SLEEP_TIMEZONE") or DEFAULT_TIMEZONE,
        )
