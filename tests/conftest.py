"""Pytest fixtures for flashwallet tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

TEST_BASE_URL = "http://localhost:4000"


def make_response(status_code=200, json_data=None, headers=None, reason="OK", content=None):
    """Build a mock requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    response.headers = headers or {}
    response.url = TEST_BASE_URL
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
        response.content = content if content is not None else b"<html>oops</html>"
    else:
        response.json.return_value = json_data if json_data is not None else {}
        response.content = content if content is not None else b"{...}"
    return response


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    """Records backoff delays instead of sleeping."""
    return []


@pytest.fixture
def settings():
    from flashwallet.config import ClientSettings

    return ClientSettings(
        _env_file=None,
        base_url=TEST_BASE_URL,
        api_key="test-api-key",
        auth_token=None,
        enable_flash_send=True,
        enable_bank_settle=True,
        enable_bank_topup=True,
        enable_fygaro_topup=True,
        token_file=None,
    )


@pytest.fixture
def store():
    from flashwallet.storage import MemoryStore

    return MemoryStore()


@pytest.fixture
def client(settings, store, sleeps, clock):
    """FlashClient wired to a real requests.Session whose request() is mocked."""
    from flashwallet.client import FlashClient

    client = FlashClient(
        settings,
        store=store,
        http=requests.Session(),
        sleep=sleeps.append,
        clock=clock,
    )
    yield client
    client.close()


@pytest.fixture
def mock_request(client):
    """Patch the HTTP session used by the client."""
    with patch.object(client.executor.http, "request") as mock:
        yield mock


@pytest.fixture
def logged_in(client, clock):
    """Client holding a valid access token and a refresh token."""
    from flashwallet.client import AuthState

    client.session.apply("access-1", "refresh-1", 3600)
    client.auth_state = AuthState.AUTHENTICATED
    return client
