"""
flashwallet - Resilient client for the Flash payment backend.

Usage:
    from flashwallet import ClientSettings, FlashClient

    settings = ClientSettings(api_key="...", enable_flash_send=True)
    client = FlashClient(settings)

    # Phone login
    client.request_phone_code("876-425-0250", "JM")
    client.verify_phone_code("876-425-0250", "123456")

    # Move funds
    client.send_to_username("alice", 5, memo="lunch")

    # Every failure is a FlashApiError with a kind
    try:
        client.get_balance()
    except FlashApiError as e:
        if e.kind is ErrorKind.RATE_LIMITED:
            print(f"Try again in {e.retry_after}s")

Features:
- Bearer session with silent refresh on 401
- Retry with exponential backoff for transient failures
- Single error taxonomy across GraphQL and REST
"""

__version__ = "0.1.0"

from flashwallet.client import AuthState, FlashClient
from flashwallet.config import ClientSettings
from flashwallet.errors import ErrorKind, FlashApiError
from flashwallet.features import Capability, FeatureGate
from flashwallet.resilience import RetryConfig
from flashwallet.session import AuthSession
from flashwallet.storage import JsonFileStore, KeyValueStore, MemoryStore
from flashwallet.wallet import WalletSession

__all__ = [
    # Client
    "FlashClient",
    "AuthState",
    "WalletSession",
    "ClientSettings",
    # Session
    "AuthSession",
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    # Errors
    "ErrorKind",
    "FlashApiError",
    # Features / resilience
    "Capability",
    "FeatureGate",
    "RetryConfig",
]
