"""Feature gate consulted before every money-movement operation."""

from enum import Enum
from types import MappingProxyType
from typing import Mapping, Union

from flashwallet.errors import ErrorKind, FlashApiError


class Capability(str, Enum):
    """Capabilities the backend can switch on per deployment."""
    FLASH_SEND = "flashSend"        # Send to a Flash username
    BANK_SETTLE = "bankSettle"      # Settle wallet balance to a bank account
    BANK_TOPUP = "bankTopup"        # Top up from a bank account
    FYGARO_TOPUP = "fygaroTopup"    # Top up by card via a Fygaro payment link


# User-facing names for "not available" messages
_LABELS = {
    Capability.FLASH_SEND: "Send to Flash",
    Capability.BANK_SETTLE: "Bank settlement",
    Capability.BANK_TOPUP: "Bank top up",
    Capability.FYGARO_TOPUP: "Fygaro top up",
}


def _name(capability: Union[Capability, str]) -> str:
    return capability.value if isinstance(capability, Capability) else str(capability)


class FeatureGate:
    """Read-only capability map, fixed at construction."""

    def __init__(self, features: Mapping[str, bool]):
        self._features = MappingProxyType({
            _name(name): bool(enabled) for name, enabled in features.items()
        })

    def is_enabled(self, capability: Union[Capability, str]) -> bool:
        """Look up a capability; unknown names are disabled."""
        return self._features.get(_name(capability), False)

    def enabled_features(self) -> list[str]:
        return [name for name, enabled in self._features.items() if enabled]

    def require(self, capability: Union[Capability, str]) -> None:
        """
        Raise FEATURE_DISABLED unless the capability is on.

        Raises:
            FlashApiError: If the capability is disabled or unknown
        """
        if self.is_enabled(capability):
            return
        try:
            label = _LABELS[Capability(_name(capability))]
        except ValueError:
            label = _name(capability)
        raise FlashApiError(
            f"{label} feature is not enabled",
            ErrorKind.FEATURE_DISABLED,
            details={"feature": _name(capability)},
        )

    def as_dict(self) -> dict[str, bool]:
        return dict(self._features)
