"""Bearer-token session held by the Flash wallet client."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from flashwallet.storage import (
    KeyValueStore,
    MemoryStore,
    REFRESH_TOKEN_KEY,
    TOKEN_EXPIRY_KEY,
    TOKEN_KEY,
)

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthSession:
    """
    Access token, refresh token and expiry for one client.

    A session is valid when it holds an access token that has no expiry
    or has not yet expired. Every apply/clear is mirrored into the
    injected store so a later process can restore the session.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        clock: Callable[[], datetime] = _utcnow,
        access_token: Optional[str] = None,
    ):
        """
        Args:
            store: Key-value store tokens are persisted into
            clock: Returns the current time (timezone-aware)
            access_token: Statically injected bearer token; not persisted
        """
        self.store = store if store is not None else MemoryStore()
        self._clock = clock

        self.access_token: Optional[str] = access_token
        self.refresh_token: Optional[str] = None
        self.expires_at: Optional[datetime] = None

    def now(self) -> datetime:
        return self._clock()

    def is_valid(self) -> bool:
        """Check whether the access token is present and unexpired."""
        if not self.access_token:
            return False
        return self.expires_at is None or self.expires_at > self.now()

    def apply(
        self,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_in: Optional[float] = None,
    ) -> None:
        """
        Install new tokens.

        Args:
            access_token: Bearer token for API calls
            refresh_token: New refresh token; the current one is kept if omitted
            expires_in: Lifetime of the access token in seconds
        """
        self.access_token = access_token
        if refresh_token:
            self.refresh_token = refresh_token
        if expires_in is not None:
            self.expires_at = self.now() + timedelta(seconds=float(expires_in))
        else:
            self.expires_at = None

        self.store.set(TOKEN_KEY, access_token)
        if self.refresh_token:
            self.store.set(REFRESH_TOKEN_KEY, self.refresh_token)
        if self.expires_at is not None:
            self.store.set(TOKEN_EXPIRY_KEY, self.expires_at.isoformat())
        else:
            self.store.remove(TOKEN_EXPIRY_KEY)
        logger.debug("Session tokens updated (expires_at=%s)", self.expires_at)

    def clear(self) -> None:
        """Drop all tokens and remove them from the store."""
        self.access_token = None
        self.refresh_token = None
        self.expires_at = None
        self.store.remove(TOKEN_KEY)
        self.store.remove(REFRESH_TOKEN_KEY)
        self.store.remove(TOKEN_EXPIRY_KEY)
        logger.debug("Session cleared")

    def restore(self) -> bool:
        """
        Load previously persisted tokens from the store.

        Returns:
            True if an access token was found
        """
        access_token = self.store.get(TOKEN_KEY)
        if not access_token:
            return False

        self.access_token = access_token
        self.refresh_token = self.store.get(REFRESH_TOKEN_KEY) or self.refresh_token
        self.expires_at = None

        expiry = self.store.get(TOKEN_EXPIRY_KEY)
        if expiry:
            try:
                self.expires_at = datetime.fromisoformat(expiry)
            except ValueError:
                logger.warning("Ignoring unreadable token expiry %r", expiry)
        return True

    def authorization_header_value(self) -> Optional[str]:
        """Access token as a bearer credential, without doubling the prefix."""
        if not self.access_token:
            return None
        token = self.access_token
        if token[:len(BEARER_PREFIX)].lower() == BEARER_PREFIX.lower():
            token = token[len(BEARER_PREFIX):].lstrip()
        return f"{BEARER_PREFIX}{token}"
