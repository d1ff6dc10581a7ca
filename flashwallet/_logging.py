"""Logging helpers for the Flash wallet client.

The library never configures handlers; applications decide where
``flashwallet.*`` records go. Anything that may carry credentials is
masked before it reaches a log record.
"""

import logging
from typing import Any

# Fields whose values must never be logged in full
SENSITIVE_FIELDS = {
    "password", "secret", "token", "key", "credential", "authorization",
    "api_key", "apikey", "access_token", "refresh_token", "authtoken",
    "seccode", "validationcode", "challengecode",
}

# Matched exactly; as substrings these would also hit countryCode and friends
SENSITIVE_EXACT_FIELDS = {"code", "otp"}


def _mask_value(value: Any) -> Any:
    if isinstance(value, str) and len(value) > 8:
        return f"{value[:4]}...{value[-4:]}"
    return "[REDACTED]"


def mask_sensitive(data: Any) -> Any:
    """Mask sensitive values in a (possibly nested) mapping."""
    if isinstance(data, list):
        return [mask_sensitive(item) for item in data]
    if not isinstance(data, dict):
        return data

    masked = {}
    for key, value in data.items():
        key_lower = str(key).lower()
        if isinstance(value, (dict, list)):
            masked[key] = mask_sensitive(value)
        elif key_lower in SENSITIVE_EXACT_FIELDS or any(s in key_lower for s in SENSITIVE_FIELDS):
            masked[key] = _mask_value(value)
        else:
            masked[key] = value
    return masked


def mask_headers(headers: dict[str, str]) -> dict[str, str]:
    """Mask credential headers (Authorization, X-API-Key)."""
    return mask_sensitive(dict(headers))


def configure_logging(level: int = logging.INFO) -> None:
    """Attach a plain stderr handler to the ``flashwallet`` logger (CLI use)."""
    logger = logging.getLogger("flashwallet")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(handler)
    logger.setLevel(level)
