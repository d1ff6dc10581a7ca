"""
Token persistence for the Flash wallet client.

The client writes tokens to a simple key-value store on every successful
login, verification or refresh, and removes them on logout. Storage
semantics belong to the store; the client only calls get/set/remove.
"""

import json
import os
from typing import Optional, Protocol


TOKEN_KEY = "flash_token"
REFRESH_TOKEN_KEY = "flash_refresh_token"
TOKEN_EXPIRY_KEY = "flash_token_expires_at"
USER_KEY = "flash_user"


class KeyValueStore(Protocol):
    """Minimal string key-value store the session persists tokens into."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """In-process store. Tokens are lost when the process exits."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class JsonFileStore:
    """
    Store backed by a single JSON file.

    The file is rewritten on every change and restricted to the owner,
    since it holds bearer and refresh tokens.
    """

    def __init__(self, path: str):
        self.path = os.path.expanduser(path)

    def _load(self) -> dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, str]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(data, f, indent=2)
        os.chmod(self.path, 0o600)

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)
