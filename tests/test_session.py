"""Tests for AuthSession and token stores."""

import json
import os
import stat
from datetime import timedelta

import pytest


@pytest.fixture
def session(store, clock):
    from flashwallet.session import AuthSession

    return AuthSession(store, clock=clock)


class TestAuthSession:
    """Tests for token validity and persistence."""

    def test_empty_session_is_invalid(self, session):
        assert session.is_valid() is False
        assert session.authorization_header_value() is None

    def test_token_without_expiry_is_valid(self, session):
        session.apply("tok")

        assert session.is_valid() is True
        assert session.expires_at is None

    def test_expiry(self, session, clock):
        """Valid until expires_in seconds have passed, invalid after."""
        session.apply("tok", "ref", 3600)

        assert session.is_valid() is True
        clock.advance(3599)
        assert session.is_valid() is True
        clock.advance(2)
        assert session.is_valid() is False

    def test_apply_keeps_refresh_token_when_omitted(self, session):
        session.apply("a1", "r1", 60)
        session.apply("a2", expires_in=60)

        assert session.access_token == "a2"
        assert session.refresh_token == "r1"

    def test_apply_persists(self, session, store, clock):
        from flashwallet.storage import REFRESH_TOKEN_KEY, TOKEN_EXPIRY_KEY, TOKEN_KEY

        session.apply("a1", "r1", 60)

        assert store.get(TOKEN_KEY) == "a1"
        assert store.get(REFRESH_TOKEN_KEY) == "r1"
        assert store.get(TOKEN_EXPIRY_KEY) == (clock.now + timedelta(seconds=60)).isoformat()

        session.apply("a2")
        assert TOKEN_EXPIRY_KEY not in store

    def test_clear(self, session, store):
        from flashwallet.storage import REFRESH_TOKEN_KEY, TOKEN_EXPIRY_KEY, TOKEN_KEY

        session.apply("a1", "r1", 60)
        session.clear()

        assert session.access_token is None
        assert session.refresh_token is None
        assert session.expires_at is None
        for key in (TOKEN_KEY, REFRESH_TOKEN_KEY, TOKEN_EXPIRY_KEY):
            assert key not in store

    @pytest.mark.parametrize("token,expected", [
        ("abc", "Bearer abc"),
        ("Bearer abc", "Bearer abc"),
        ("bearer abc", "Bearer abc"),
        ("BEARER abc", "Bearer abc"),
        ("Bearerabc", "Bearer Bearerabc"),
    ])
    def test_bearer_prefix_not_doubled(self, session, token, expected):
        session.apply(token)

        assert session.authorization_header_value() == expected

    def test_restore(self, store, clock):
        """A new session picks up what an earlier one persisted."""
        from flashwallet.session import AuthSession

        AuthSession(store, clock=clock).apply("a1", "r1", 120)
        restored = AuthSession(store, clock=clock)

        assert restored.restore() is True
        assert restored.access_token == "a1"
        assert restored.refresh_token == "r1"
        assert restored.expires_at == clock.now + timedelta(seconds=120)
        assert restored.is_valid() is True

    def test_restore_empty_store(self, session):
        assert session.restore() is False

    def test_restore_ignores_bad_expiry(self, store, clock):
        from flashwallet.session import AuthSession
        from flashwallet.storage import TOKEN_EXPIRY_KEY, TOKEN_KEY

        store.set(TOKEN_KEY, "a1")
        store.set(TOKEN_EXPIRY_KEY, "tomorrow-ish")
        session = AuthSession(store, clock=clock)

        assert session.restore() is True
        assert session.expires_at is None

    def test_static_token_not_persisted(self, store):
        from flashwallet.session import AuthSession
        from flashwallet.storage import TOKEN_KEY

        session = AuthSession(store, access_token="static")

        assert session.is_valid() is True
        assert store.get(TOKEN_KEY) is None


class TestMemoryStore:
    """Tests for the in-process store."""

    def test_get_set_remove(self):
        from flashwallet.storage import MemoryStore

        store = MemoryStore({"a": "1"})
        store.set("b", "2")

        assert store.get("a") == "1"
        assert store.get("b") == "2"
        store.remove("a")
        store.remove("missing")
        assert store.get("a") is None
        assert "b" in store


class TestJsonFileStore:
    """Tests for the JSON file store."""

    def test_round_trip_and_permissions(self, tmp_path):
        from flashwallet.storage import JsonFileStore

        path = tmp_path / "nested" / "tokens.json"
        store = JsonFileStore(str(path))

        assert store.get("flash_token") is None
        store.set("flash_token", "abc")

        assert JsonFileStore(str(path)).get("flash_token") == "abc"
        assert json.loads(path.read_text()) == {"flash_token": "abc"}
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

        store.remove("flash_token")
        assert json.loads(path.read_text()) == {}

    def test_corrupt_file_reads_empty(self, tmp_path):
        from flashwallet.storage import JsonFileStore

        path = tmp_path / "tokens.json"
        path.write_text("{not json")

        assert JsonFileStore(str(path)).get("flash_token") is None

    def test_client_uses_token_file(self, settings, tmp_path):
        """token_file in settings persists the session to disk."""
        from flashwallet.client import FlashClient
        from flashwallet.storage import JsonFileStore

        path = tmp_path / "tokens.json"
        client = FlashClient(settings.model_copy(update={"token_file": str(path)}))
        client.session.apply("a1", "r1", 60)
        client.close()

        assert JsonFileStore(str(path)).get("flash_refresh_token") == "r1"
