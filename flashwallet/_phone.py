"""Phone number normalization for the phone-code login flow."""

import re

# ISO country code -> international calling code
COUNTRY_CALLING_CODES = {
    "JM": "+1",    # Jamaica
    "US": "+1",    # United States
    "CA": "+1",    # Canada
    "GB": "+44",   # United Kingdom
    "SV": "+503",  # El Salvador
}

DEFAULT_COUNTRY = "JM"
FALLBACK_CALLING_CODE = "+1"

_NON_DIAL_CHARS = re.compile(r"[^\d+]")


def calling_code_for(country_code: str) -> str:
    """Calling code for an ISO country code; +1 when unknown."""
    return COUNTRY_CALLING_CODES.get((country_code or "").upper(), FALLBACK_CALLING_CODE)


def normalize_phone(phone: str, country_code: str = DEFAULT_COUNTRY) -> str:
    """
    Convert user input to international format.

    Everything except digits and ``+`` is dropped. Numbers that do not
    already start with ``+`` get the country's calling code prepended.

        >>> normalize_phone("876-425-0250", "JM")
        '+18764250250'
    """
    formatted = _NON_DIAL_CHARS.sub("", phone or "")
    if not formatted.startswith("+"):
        formatted = calling_code_for(country_code) + formatted
    return formatted
