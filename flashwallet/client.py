"""Flash wallet API client."""

import json
import logging
import math
import time
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Union
from urllib.parse import quote

import requests

from flashwallet._phone import DEFAULT_COUNTRY, normalize_phone
from flashwallet.adapters import GraphQLAdapter, RestAdapter
from flashwallet.config import ClientSettings
from flashwallet.errors import ErrorKind, FlashApiError
from flashwallet.features import Capability, FeatureGate
from flashwallet.resilience import RetryConfig
from flashwallet.session import AuthSession
from flashwallet.storage import JsonFileStore, KeyValueStore, MemoryStore, USER_KEY
from flashwallet.transport import TransportExecutor

logger = logging.getLogger(__name__)

Amount = Union[int, float, Decimal]

# Phone logins return no expiry; assume a day
PHONE_LOGIN_TOKEN_LIFETIME = 24 * 60 * 60  # seconds

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20
MEMO_MAX_LENGTH = 500

# Placeholder captcha answers accepted by the backend's test deployments
PLACEHOLDER_CAPTCHA = {
    "challengeCode": "mock_challenge_code",
    "validationCode": "mock_validation_code",
    "secCode": "mock_sec_code",
}

REQUEST_AUTH_CODE_MUTATION = """
mutation CaptchaRequestAuthCode($input: CaptchaRequestAuthCodeInput!) {
  captchaRequestAuthCode(input: $input) {
    success
    errors {
      message
      code
    }
  }
}
"""

USER_LOGIN_MUTATION = """
mutation UserLogin($input: UserLoginInput!) {
  userLogin(input: $input) {
    authToken
    totpRequired
    errors {
      message
      code
    }
  }
}
"""

ME_QUERY = """
query Me {
  me {
    id
    username
    phone
  }
}
"""

TEST_CONNECTION_QUERY = """
query TestConnection {
  __typename
}
"""


class AuthState(str, Enum):
    """Where the client is in the phone-login flow."""
    UNAUTHENTICATED = "unauthenticated"
    CODE_REQUESTED = "code_requested"
    AUTHENTICATED = "authenticated"


def _invalid_amount(message: str = "Invalid amount. Must be greater than 0.") -> FlashApiError:
    return FlashApiError(message, ErrorKind.INVALID_AMOUNT)


def _validate_amount(amount: Any) -> Union[int, float]:
    """Check that amount is a finite positive number; returns a JSON-safe value."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float, Decimal)):
        raise _invalid_amount()
    try:
        if not math.isfinite(amount) or amount <= 0:
            raise _invalid_amount()
        value = float(amount) if isinstance(amount, Decimal) else amount
        # Decimals beyond float range convert to inf
        if not math.isfinite(value):
            raise _invalid_amount()
    except (ArithmeticError, ValueError) as e:
        raise _invalid_amount() from e
    return value


def _payload_errors(result: Mapping[str, Any]) -> list:
    errors = result.get("errors") or []
    return [e if isinstance(e, dict) else {"message": str(e)} for e in errors]


class FlashClient:
    """
    Client for the Flash payment backend.

    Wraps the GraphQL endpoint and the REST endpoints behind named
    operations. All failures surface as FlashApiError.

    Example:
        settings = ClientSettings(api_key="...", enable_flash_send=True)
        with FlashClient(settings) as client:
            client.request_phone_code("876-425-0250", "JM")
            client.verify_phone_code("876-425-0250", "123456")
            client.send_to_username("alice", 5, memo="lunch")
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        store: Optional[KeyValueStore] = None,
        http: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Client configuration (read from FLASH_* env vars if omitted)
            store: Token store; defaults to settings.token_file or memory
            http: requests.Session to send requests with
            sleep: Sleep function used for retry backoff
            clock: Current-time source for token expiry
        """
        self.settings = settings if settings is not None else ClientSettings()

        if store is None:
            store = JsonFileStore(self.settings.token_file) if self.settings.token_file else MemoryStore()

        session_kwargs = {"clock": clock} if clock is not None else {}
        self.session = AuthSession(store, access_token=self.settings.auth_token, **session_kwargs)
        self.features = FeatureGate(self.settings.features)

        self.executor = TransportExecutor(
            self.session,
            api_key=self.settings.api_key,
            timeout=self.settings.timeout,
            retry_config=RetryConfig(
                max_retries=self.settings.max_retries,
                initial_delay=self.settings.retry_base_delay,
                max_delay=self.settings.retry_max_delay,
            ),
            http=http,
            sleep=sleep,
            user_agent=self.settings.user_agent,
        )
        self.executor.set_refresh_handler(self.refresh_auth_token)
        self.executor.set_session_lost_handler(self.logout)

        self.graphql = GraphQLAdapter(self.executor, self.settings.base_url)
        self.rest = RestAdapter(self.executor, self.settings.base_url)

        self.user: Optional[dict[str, Any]] = None
        self.auth_state = (
            AuthState.AUTHENTICATED if self.session.is_valid() else AuthState.UNAUTHENTICATED
        )

    @property
    def base_url(self) -> str:
        return self.settings.base_url

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    def authenticate(self, username: str, password: str) -> dict[str, Any]:
        """
        Log in with username and password.

        Returns:
            The login response (access_token, refresh_token, expires_in)

        Raises:
            FlashApiError: AUTHENTICATION_FAILED on bad credentials; rate-limit
                and network errors keep their own kind
        """
        try:
            response = self.rest.post(
                "/auth/login",
                json={"username": username, "password": password},
                authenticated=False,
            )
        except FlashApiError as e:
            if e.kind in (ErrorKind.RATE_LIMITED, ErrorKind.NETWORK_ERROR):
                raise
            raise FlashApiError(
                "Authentication failed. Please check your credentials.",
                ErrorKind.AUTHENTICATION_FAILED,
                details={**e.details, "cause": e.message},
                status_code=e.status_code,
            ) from e

        access_token = (response or {}).get("access_token")
        if not access_token:
            raise FlashApiError(
                "Authentication failed. Please check your credentials.",
                ErrorKind.AUTHENTICATION_FAILED,
            )

        self.session.apply(access_token, response.get("refresh_token"), response.get("expires_in"))
        self.auth_state = AuthState.AUTHENTICATED
        return response

    def request_phone_code(
        self,
        phone: str,
        country_code: str = DEFAULT_COUNTRY,
        channel: str = "SMS",
        captcha: Optional[Mapping[str, str]] = None,
    ) -> dict[str, Any]:
        """
        Ask the backend to send a one-time login code.

        Args:
            phone: Phone number as typed by the user
            country_code: ISO country used when the number has no ``+`` prefix
            channel: Delivery channel ("SMS" or "WHATSAPP")
            captcha: challengeCode / validationCode / secCode answers

        Returns:
            The captchaRequestAuthCode payload
        """
        formatted = normalize_phone(phone, country_code)
        logger.info("Requesting login code for %s via %s", formatted[:-4] + "****", channel)

        variables = {
            "input": {
                "phone": formatted,
                "channel": channel,
                **(captcha or PLACEHOLDER_CAPTCHA),
            },
        }

        try:
            data = self.graphql.call(REQUEST_AUTH_CODE_MUTATION, variables, authenticated=False)
        except FlashApiError as e:
            if e.kind is ErrorKind.RATE_LIMITED:
                raise
            raise e.with_message("Failed to send verification code. Please try again.") from e

        result = data.get("captchaRequestAuthCode") or {}
        errors = _payload_errors(result)
        if errors:
            raise FlashApiError(
                errors[0].get("message") or "Failed to send verification code. Please try again.",
                ErrorKind.AUTHENTICATION_FAILED,
                details={"errors": errors},
            )

        self.auth_state = AuthState.CODE_REQUESTED
        return result

    def verify_phone_code(
        self,
        phone: str,
        code: str,
        country_code: str = DEFAULT_COUNTRY,
    ) -> dict[str, Any]:
        """
        Exchange a one-time code for a session.

        Args:
            phone: Phone number the code was sent to
            code: The code the user received
            country_code: ISO country used when the number has no ``+`` prefix

        Returns:
            Dict with authToken, totpRequired and me (None if the user
            lookup failed)

        Raises:
            FlashApiError: AUTHENTICATION_FAILED when the code is rejected
        """
        formatted = normalize_phone(phone, country_code)
        logger.info("Verifying login code for %s", formatted[:-4] + "****")

        data = self.graphql.call(
            USER_LOGIN_MUTATION,
            {"input": {"phone": formatted, "code": code}},
            authenticated=False,
        )

        result = data.get("userLogin") or {}
        errors = _payload_errors(result)
        if errors:
            raise FlashApiError(
                errors[0].get("message") or "Verification failed",
                ErrorKind.AUTHENTICATION_FAILED,
                details={"errors": errors},
            )

        auth_token = result.get("authToken")
        if not auth_token:
            raise FlashApiError("Verification failed", ErrorKind.AUTHENTICATION_FAILED)

        # A phone login replaces any earlier session, refresh token included
        self.session.clear()
        self.session.apply(auth_token, expires_in=PHONE_LOGIN_TOKEN_LIFETIME)
        self.auth_state = AuthState.AUTHENTICATED

        self.user = self._fetch_current_user()
        return {
            "authToken": auth_token,
            "totpRequired": result.get("totpRequired"),
            "me": self.user,
        }

    def _fetch_current_user(self) -> Optional[dict[str, Any]]:
        """Look up the logged-in user; failures are logged, never raised."""
        try:
            data = self.graphql.call(ME_QUERY)
        except FlashApiError as e:
            logger.warning("Failed to fetch user info: %s (%s)", e.message, e.kind.value)
            return None

        me = data.get("me")
        if me:
            self.session.store.set(USER_KEY, json.dumps(me))
        return me

    def _cached_user(self) -> Optional[dict[str, Any]]:
        raw = self.session.store.get(USER_KEY)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unreadable cached user")
            return None

    def refresh_auth_token(self) -> dict[str, Any]:
        """
        Exchange the refresh token for a new access token.

        Any failure ends the session.

        Raises:
            FlashApiError: AUTHENTICATION_FAILED if there is no refresh token
                or the refresh is rejected
        """
        refresh_token = self.session.refresh_token
        if not refresh_token:
            raise FlashApiError("No refresh token available", ErrorKind.AUTHENTICATION_FAILED)

        try:
            response = self.rest.post(
                "/auth/refresh",
                json={"refresh_token": refresh_token},
                authenticated=False,
            )
            access_token = (response or {}).get("access_token")
            if not access_token:
                raise FlashApiError(
                    "Refresh response did not include an access token",
                    ErrorKind.AUTHENTICATION_FAILED,
                )
        except FlashApiError as e:
            logger.warning("Token refresh failed: %s", e.message)
            self.logout()
            raise FlashApiError(
                "Token refresh failed. Please log in again.",
                ErrorKind.AUTHENTICATION_FAILED,
                details={"cause": e.message},
            ) from e

        self.session.apply(access_token, response.get("refresh_token"), response.get("expires_in"))
        self.auth_state = AuthState.AUTHENTICATED
        return response

    def restore_session(self) -> bool:
        """
        Pick up tokens persisted by an earlier run.

        An expired token is silently refreshed; if that fails the stored
        session is discarded.

        Returns:
            True if the client ends up authenticated
        """
        if not self.session.restore():
            return False

        if self.session.is_valid():
            self.auth_state = AuthState.AUTHENTICATED
            self.user = self._cached_user()
            return True

        if self.session.refresh_token:
            try:
                self.refresh_auth_token()
            except FlashApiError:
                return False
            self.user = self._cached_user()
            return True

        self.logout()
        return False

    def logout(self) -> None:
        """Forget all tokens and the cached user."""
        self.session.clear()
        self.session.store.remove(USER_KEY)
        self.user = None
        self.auth_state = AuthState.UNAUTHENTICATED

    def is_authenticated(self) -> bool:
        return self.session.is_valid()

    @property
    def current_user(self) -> Optional[dict[str, Any]]:
        """The logged-in user from the last identity lookup, if any."""
        return self.user

    # -------------------------------------------------------------------------
    # Send to Flash username
    # -------------------------------------------------------------------------

    def send_to_username(
        self,
        username: str,
        amount: Amount,
        memo: str = "",
        currency: str = "USD",
    ) -> dict[str, Any]:
        """
        Send funds to another Flash user.

        Raises:
            FlashApiError: FEATURE_DISABLED, INVALID_USERNAME, INVALID_AMOUNT,
                USER_NOT_FOUND, or any transport error
        """
        self.features.require(Capability.FLASH_SEND)

        if (
            not isinstance(username, str)
            or not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH
        ):
            raise FlashApiError(
                f"Invalid username format. Must be {USERNAME_MIN_LENGTH}-{USERNAME_MAX_LENGTH} characters.",
                ErrorKind.INVALID_USERNAME,
            )
        amount = _validate_amount(amount)
        if memo and (not isinstance(memo, str) or len(memo) > MEMO_MAX_LENGTH):
            raise _invalid_amount(f"Memo too long. Maximum {MEMO_MAX_LENGTH} characters.")

        try:
            return self.rest.post(
                "/flash/send-to-username",
                json={"username": username, "amount": amount, "memo": memo, "currency": currency},
            )
        except FlashApiError as e:
            if e.kind is ErrorKind.USER_NOT_FOUND:
                raise e.with_message(
                    f'User "{username}" not found. Please check the username and try again.'
                ) from e
            raise

    # -------------------------------------------------------------------------
    # Bank settlement
    # -------------------------------------------------------------------------

    def settle_to_bank(
        self,
        bank_details: Mapping[str, str],
        amount: Amount,
        currency: str = "USD",
    ) -> dict[str, Any]:
        """
        Move wallet balance out to a bank account.

        Args:
            bank_details: bank_code, account_number and account_name
            amount: Amount to settle
            currency: ISO currency code
        """
        self.features.require(Capability.BANK_SETTLE)

        if not all(bank_details.get(k) for k in ("bank_code", "account_number", "account_name")):
            raise FlashApiError(
                "Invalid bank details. Please provide bank code, account number, and account name.",
                ErrorKind.INVALID_BANK_ACCOUNT,
            )
        amount = _validate_amount(amount)

        try:
            return self.rest.post(
                "/flash/settle-to-bank",
                json={
                    "bank_code": bank_details["bank_code"],
                    "account_number": bank_details["account_number"],
                    "account_name": bank_details["account_name"],
                    "amount": amount,
                    "currency": currency,
                },
            )
        except FlashApiError as e:
            if e.kind is ErrorKind.SETTLEMENT_LIMIT_EXCEEDED:
                raise e.with_message(
                    "Settlement amount exceeds daily limit. Please try a smaller amount."
                ) from e
            raise

    def get_settlement_status(self, settlement_id: str) -> dict[str, Any]:
        self.features.require(Capability.BANK_SETTLE)
        return self.rest.get(f"/flash/settlement-status/{quote(str(settlement_id), safe='')}")

    # -------------------------------------------------------------------------
    # Top up
    # -------------------------------------------------------------------------

    def topup_bank(
        self,
        bank_details: Mapping[str, str],
        amount: Amount,
        currency: str = "USD",
    ) -> dict[str, Any]:
        """Pull funds into the wallet from a bank account."""
        self.features.require(Capability.BANK_TOPUP)

        if not all(bank_details.get(k) for k in ("bank_code", "account_number")):
            raise FlashApiError(
                "Invalid bank details. Please provide bank code and account number.",
                ErrorKind.INVALID_BANK_ACCOUNT,
            )
        amount = _validate_amount(amount)

        return self.rest.post(
            "/flash/topup-bank",
            json={
                "bank_code": bank_details["bank_code"],
                "account_number": bank_details["account_number"],
                "amount": amount,
                "currency": currency,
            },
        )

    def get_fygaro_payment_link(
        self,
        amount: Amount,
        currency: str = "USD",
        return_url: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Create a card top-up payment link.

        Returns:
            Dict containing ``payment_url``
        """
        self.features.require(Capability.FYGARO_TOPUP)
        amount = _validate_amount(amount)

        return self.rest.post(
            "/flash/fygaro-payment-link",
            json={
                "amount": amount,
                "currency": currency,
                "return_url": return_url or self.settings.return_url,
            },
        )

    # Card top-up goes through a Fygaro payment link
    topup_card = get_fygaro_payment_link

    def get_topup_status(self, topup_id: str) -> dict[str, Any]:
        return self.rest.get(f"/flash/topup-status/{quote(str(topup_id), safe='')}")

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_supported_banks(self) -> list[dict[str, Any]]:
        response = self.rest.get("/flash/supported-banks")
        return (response or {}).get("banks") or []

    def validate_bank_account(self, bank_code: str, account_number: str) -> dict[str, Any]:
        return self.rest.post(
            "/flash/validate-bank-account",
            json={"bank_code": bank_code, "account_number": account_number},
        )

    def get_balance(self) -> dict[str, Any]:
        return self.rest.get("/flash/balance")

    def get_transaction_history(self, limit: int = 50, offset: int = 0) -> list[dict[str, Any]]:
        response = self.rest.get("/flash/transactions", params={"limit": limit, "offset": offset})
        return (response or {}).get("transactions") or []

    def test_connection(self) -> dict[str, Any]:
        """Run a trivial unauthenticated query against the GraphQL endpoint."""
        logger.info("Testing GraphQL API connection to %s", self.settings.graphql_url)
        return self.graphql.call(TEST_CONNECTION_QUERY, authenticated=False)

    # -------------------------------------------------------------------------
    # Feature flags
    # -------------------------------------------------------------------------

    def is_feature_enabled(self, feature: Union[Capability, str]) -> bool:
        return self.features.is_enabled(feature)

    def get_enabled_features(self) -> list[str]:
        return self.features.enabled_features()

    def close(self):
        """Close the client session."""
        self.executor.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
