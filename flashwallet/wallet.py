"""
Wallet state on top of FlashClient.

WalletSession is what a front-end holds on to: it restores the login at
startup, keeps the last known balance and transaction history, and records
the most recent error message for display. Every call goes through the
client it wraps; the session never touches tokens itself.
"""

import logging
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping, Optional

from flashwallet.client import AuthState, FlashClient
from flashwallet.errors import FlashApiError

logger = logging.getLogger(__name__)

RECENT_TRANSACTIONS = 20


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass
class WalletActivity:
    """A locally recorded send, settlement or top-up."""
    id: Any
    type: str  # "send", "settle", "topup_bank", "topup_card"
    amount: Any
    currency: str
    status: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    recipient: Optional[str] = None
    memo: Optional[str] = None
    bank_details: Optional[dict[str, str]] = None
    # Backend ids, used to match later status lookups
    transaction_id: Optional[str] = None
    settlement_id: Optional[str] = None
    topup_id: Optional[str] = None
    payment_url: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Record with camelCase keys; unset fields are left out."""
        return {
            _camel(f.name): getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


def _add(balance: Any, delta: Any) -> Any:
    """
    balance + delta without mixing float and Decimal.

    Ints stay ints; anything else is computed in Decimal and returned as
    float, matching what the balance endpoint returns.
    """
    if isinstance(balance, int) and isinstance(delta, int):
        return balance + delta
    result = Decimal(str(balance or 0)) + Decimal(str(delta))
    return float(result)


class WalletSession:
    """
    Cached wallet state driven by a FlashClient.

    Example:
        wallet = WalletSession(FlashClient(settings))
        if not wallet.initialize():
            wallet.request_phone_code("876-425-0250")
            wallet.verify_phone_code("876-425-0250", "123456")
        print(wallet.balance)
    """

    def __init__(self, client: FlashClient):
        self.client = client

        self.balance: Any = 0
        self.transactions: list[dict[str, Any]] = []
        self.settlements: list[dict[str, Any]] = []
        self.topups: list[dict[str, Any]] = []
        self.last_error: Optional[str] = None
        self.user: Optional[dict[str, Any]] = None

    @property
    def is_authenticated(self) -> bool:
        return self.client.auth_state is AuthState.AUTHENTICATED and self.client.is_authenticated()

    @property
    def auth_state(self) -> AuthState:
        return self.client.auth_state

    def initialize(self) -> bool:
        """
        Restore a persisted login and load wallet data.

        Returns:
            True if the user is logged in afterwards
        """
        try:
            authenticated = self.client.restore_session()
        except FlashApiError as e:
            logger.error("Failed to initialize authentication: %s", e.message)
            self.client.logout()
            return False

        if authenticated:
            self.user = self.client.current_user
            self.load_user_data()
        return authenticated

    def load_user_data(self) -> None:
        """Refresh balance and recent transactions; errors are recorded, not raised."""
        if not self.is_authenticated:
            return

        self.last_error = None
        try:
            balance = self.client.get_balance()
            self.balance = (balance or {}).get("balance") or 0
            self.transactions = self.client.get_transaction_history(RECENT_TRANSACTIONS, 0)
        except FlashApiError as e:
            logger.error("Failed to load user data: %s", e.message)
            self.last_error = e.message

    def refresh_balance(self) -> None:
        try:
            balance = self.client.get_balance()
        except FlashApiError as e:
            self.last_error = e.message
            return
        self.balance = (balance or {}).get("balance") or 0

    def refresh_transactions(self) -> None:
        try:
            self.transactions = self.client.get_transaction_history(RECENT_TRANSACTIONS, 0)
        except FlashApiError as e:
            self.last_error = e.message

    def clear_error(self) -> None:
        self.last_error = None

    def _run(self, operation: Callable[..., Any], *args, **kwargs) -> Any:
        self.last_error = None
        try:
            return operation(*args, **kwargs)
        except FlashApiError as e:
            self.last_error = e.message
            raise

    def _adjust_balance(self, amount: Any, credit: bool = True) -> None:
        # Runs after the backend accepted the operation, so it must not raise
        try:
            self.balance = _add(self.balance, amount if credit else -amount)
        except (InvalidOperation, ValueError, TypeError):
            logger.warning("Could not update cached balance %r by %r; reloading", self.balance, amount)
            self.refresh_balance()

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    def login(self, username: str, password: str) -> dict[str, Any]:
        response = self._run(self.client.authenticate, username, password)
        self.user = response.get("user") or {"username": username}
        self.load_user_data()
        return response

    def request_phone_code(self, phone: str, country_code: str = "JM") -> dict[str, Any]:
        return self._run(self.client.request_phone_code, phone, country_code)

    def verify_phone_code(self, phone: str, code: str, country_code: str = "JM") -> dict[str, Any]:
        response = self._run(self.client.verify_phone_code, phone, code, country_code)
        self.user = response.get("me") or {"phoneNumber": phone}
        self.load_user_data()
        return response

    def logout(self) -> None:
        self.client.logout()
        self.user = None
        self.balance = 0
        self.transactions = []
        self.settlements = []
        self.topups = []
        self.last_error = None

    # -------------------------------------------------------------------------
    # Money movement
    # -------------------------------------------------------------------------

    def send_to_username(
        self,
        username: str,
        amount: Any,
        memo: str = "",
        currency: str = "USD",
    ) -> dict[str, Any]:
        response = self._run(self.client.send_to_username, username, amount, memo, currency)

        transaction_id = (response or {}).get("transaction_id")
        activity = WalletActivity(
            id=transaction_id or _local_id(),
            type="send",
            amount=amount,
            currency=currency,
            status="confirmed",
            recipient=username,
            memo=memo or None,
            transaction_id=transaction_id,
        )
        self.transactions.insert(0, activity.to_dict())
        self._adjust_balance(amount, credit=False)
        return response

    def settle_to_bank(
        self,
        bank_details: Mapping[str, str],
        amount: Any,
        currency: str = "USD",
    ) -> dict[str, Any]:
        response = self._run(self.client.settle_to_bank, bank_details, amount, currency)

        settlement_id = (response or {}).get("settlement_id")
        activity = WalletActivity(
            id=settlement_id or _local_id(),
            type="settle",
            amount=amount,
            currency=currency,
            status=(response or {}).get("status") or "pending",
            recipient=bank_details.get("account_name"),
            bank_details=dict(bank_details),
            settlement_id=settlement_id,
        )
        self.settlements.insert(0, activity.to_dict())
        self._adjust_balance(amount, credit=False)
        return response

    def get_settlement_status(self, settlement_id: str) -> dict[str, Any]:
        """Look up a settlement and update the cached record's status."""
        response = self._run(self.client.get_settlement_status, settlement_id)
        status = (response or {}).get("status")
        if status:
            for settlement in self.settlements:
                if settlement.get("settlementId") == settlement_id:
                    settlement["status"] = status
        return response

    def topup_bank(
        self,
        bank_details: Mapping[str, str],
        amount: Any,
        currency: str = "USD",
    ) -> dict[str, Any]:
        response = self._run(self.client.topup_bank, bank_details, amount, currency)

        topup_id = (response or {}).get("topup_id")
        activity = WalletActivity(
            id=topup_id or _local_id(),
            type="topup_bank",
            amount=amount,
            currency=currency,
            status=(response or {}).get("status") or "pending",
            bank_details=dict(bank_details),
            topup_id=topup_id,
        )
        self.topups.insert(0, activity.to_dict())
        return response

    def get_fygaro_payment_link(
        self,
        amount: Any,
        currency: str = "USD",
        return_url: Optional[str] = None,
    ) -> dict[str, Any]:
        response = self._run(self.client.get_fygaro_payment_link, amount, currency, return_url)

        activity = WalletActivity(
            id=_local_id(),
            type="topup_card",
            amount=amount,
            currency=currency,
            status="pending",
            payment_url=(response or {}).get("payment_url"),
        )
        self.topups.insert(0, activity.to_dict())
        return response

    topup_card = get_fygaro_payment_link

    def get_topup_status(self, topup_id: str) -> dict[str, Any]:
        """
        Look up a top-up and update the cached record's status.

        A top-up seen completing credits its amount to the cached balance.
        """
        response = self._run(self.client.get_topup_status, topup_id)
        status = (response or {}).get("status")
        already_completed = False
        if status:
            for topup in self.topups:
                if topup.get("topupId") == topup_id:
                    already_completed = already_completed or topup.get("status") == "completed"
                    topup["status"] = status

        # Repeated lookups of a completed top-up credit it once
        if status == "completed" and not already_completed and response.get("amount") is not None:
            self._adjust_balance(response["amount"])
        return response

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_supported_banks(self) -> list[dict[str, Any]]:
        return self._run(self.client.get_supported_banks)

    def validate_bank_account(self, bank_code: str, account_number: str) -> dict[str, Any]:
        return self._run(self.client.validate_bank_account, bank_code, account_number)


def _local_id() -> int:
    """Millisecond timestamp used when the backend returns no id."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)
