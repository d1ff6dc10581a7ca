"""Client configuration."""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://api.flashapp.me"


class ClientSettings(BaseSettings):
    """
    Settings for a FlashClient.

    Values can be passed explicitly or picked up from ``FLASH_*``
    environment variables / a ``.env`` file when the settings object is
    built. The client itself never reads the environment.
    """

    # Backend
    base_url: str = DEFAULT_BASE_URL
    api_key: Optional[str] = None  # sent as X-API-Key on every call
    auth_token: Optional[str] = None  # statically injected initial bearer token

    # Feature flags (capability map consumed by FeatureGate)
    enable_flash_send: bool = False
    enable_bank_settle: bool = False
    enable_bank_topup: bool = False
    enable_fygaro_topup: bool = False

    # Transport
    timeout: float = 30.0  # seconds per HTTP request
    user_agent: Optional[str] = None  # defaults to flashwallet/<version>
    max_retries: int = 3  # transient-failure retries per call
    retry_base_delay: float = 1.0  # seconds
    retry_max_delay: float = 10.0  # seconds

    # Card top-up landing page
    return_url: str = "http://localhost:3000/topup-success"

    # Optional JSON file to persist tokens into (memory only when unset)
    token_file: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="FLASH_",
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = (value or DEFAULT_BASE_URL).strip()
        return value.rstrip("/")

    @field_validator("max_retries")
    @classmethod
    def _non_negative_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("max_retries must be >= 0")
        return value

    @property
    def graphql_url(self) -> str:
        return f"{self.base_url}/graphql"

    @property
    def features(self) -> dict[str, bool]:
        """Capability map keyed by the backend's feature names."""
        return {
            "flashSend": self.enable_flash_send,
            "bankSettle": self.enable_bank_settle,
            "bankTopup": self.enable_bank_topup,
            "fygaroTopup": self.enable_fygaro_topup,
        }
