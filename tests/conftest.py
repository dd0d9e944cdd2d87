"""Pytest configuration and fixtures for Eight Sleep MCP tests."""

from typing import Any
from unittest.mock import AsyncMock

import pytest

from core.config import API_BASE_URL, EightSleepConfig
from core.eight_sleep_api import EightSleepAPI
from core.eight_sleep_client import EightSleepClient

TEST_USER_ID = "user-123"
ME_URL = f"{API_BASE_URL}/users/me"
TEMPERATURE_URL = f"{API_BASE_URL}/users/{TEST_USER_ID}/temperature"


def token_response(token: str = "access-token-1", expires_in: int = 3600) -> dict[str, Any]:
    """Build a token endpoint response body."""
    return {"access_token": token, "expires_in": expires_in, "userId": TEST_USER_ID}


@pytest.fixture
def config() -> EightSleepConfig:
    """Fixture providing a fully populated config."""
    return EightSleepConfig(
        email="sleeper@example.com",
        password="hunter2",
        client_id="client-id",
        client_secret="client-secret",
        user_id=TEST_USER_ID,
    )


@pytest.fixture
def client(config: EightSleepConfig) -> EightSleepClient:
    """Fixture providing a client backed by real httpx clients."""
    return EightSleepClient(config)


@pytest.fixture
def mock_client() -> AsyncMock:
    """Fixture providing a mocked EightSleepClient for facade tests."""
    mock = AsyncMock(spec=EightSleepClient)
    mock.user_id = TEST_USER_ID
    mock.request.return_value = {}
    return mock


@pytest.fixture
def eight_api(mock_client: AsyncMock) -> EightSleepAPI:
    """Fixture providing the facade over the mocked client."""
    return EightSleepAPI(mock_client)


@pytest.fixture
def sample_day() -> dict[str, Any]:
    """Fixture providing one vendor day record from the trends endpoint."""
    return {
        "day": "2024-03-08",
        "score": 84,
        "tnt": 12,
        "sleepQualityScore": {
            "hrv": {"score": 77, "average": 48.5, "minimum": 31.0, "maximum": 72.0},
            "respiratoryRate": {"score": 90},
        },
        "stages": [
            {"stage": "AWAKE", "duration": 600},
            {"stage": "LIGHT", "duration": 240},
            {"stage": "DEEP", "duration": 120},
            {"stage": "LIGHT", "duration": 60},
        ],
    }
