"""
Transport layer for the Flash wallet client.

Every outbound call, GraphQL or REST, goes through TransportExecutor so the
same policy applies regardless of protocol shape:

- Content-Type, bearer and API-key headers
- HTTP 429 surfaces as RATE_LIMITED with a retry-after hint (no retry)
- HTTP 401 on authenticated calls triggers one refresh-and-retry; a second
  401 ends the session through the registered session-lost handler
- Other non-2xx statuses map onto ErrorKind via HTTP_STATUS_KINDS
- GraphQL ``errors`` become FlashApiError even on HTTP 200
- Transient failures are retried with exponential backoff
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

import requests

from flashwallet import __version__
from flashwallet._logging import mask_headers, mask_sensitive
from flashwallet.errors import ErrorKind, FlashApiError, kind_for_status
from flashwallet.resilience import Backoff, RetryConfig
from flashwallet.session import AuthSession

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 60  # seconds


@dataclass
class Call:
    """One logical request, replayed as-is on every retry."""
    method: str
    url: str
    json: Any = None
    params: Optional[dict[str, Any]] = None
    headers: dict[str, str] = field(default_factory=dict)
    authenticated: bool = True
    graphql: bool = False


class AttemptStatus(Enum):
    """How a single attempt ended."""
    SUCCESS = "success"        # 2xx with a decodable body
    HTTP_ERROR = "http_error"  # well-formed non-2xx response
    TRANSIENT = "transient"    # never reached the server, or garbage came back


@dataclass
class AttemptResult:
    status: AttemptStatus
    payload: Any = None
    response: Optional[requests.Response] = None
    error: Optional[BaseException] = None


def parse_retry_after(response: requests.Response) -> int:
    """Retry-After in seconds; 60 when missing or not an integer."""
    value = response.headers.get("Retry-After")
    if value is None:
        return DEFAULT_RETRY_AFTER
    try:
        return int(str(value).strip())
    except ValueError:
        return DEFAULT_RETRY_AFTER


def _json_body(response: requests.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class TransportExecutor:
    """
    Executes calls against the Flash backend with a uniform failure policy.

    The executor is the only place raw transport failures are turned into
    FlashApiError. It reads tokens from the AuthSession for headers and,
    on a 401, asks the registered refresh handler for new ones.
    """

    def __init__(
        self,
        auth: AuthSession,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        retry_config: Optional[RetryConfig] = None,
        http: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        user_agent: Optional[str] = None,
    ):
        """
        Initialize the executor.

        Args:
            auth: Session supplying bearer and refresh tokens
            api_key: Sent as X-API-Key on every call when set
            timeout: Per-request timeout in seconds
            retry_config: Backoff policy for transient failures
            http: requests.Session to use (a new one by default)
            sleep: Sleep function used between retries
            user_agent: Custom user agent string
        """
        self.auth = auth
        self.api_key = api_key
        self.timeout = timeout
        self.backoff = Backoff(retry_config, sleep=sleep)

        self.http = http or requests.Session()
        self.http.headers.update({
            "User-Agent": user_agent or f"flashwallet/{__version__}",
        })

        self._refresh_handler: Optional[Callable[[], Any]] = None
        self._session_lost_handler: Optional[Callable[[], Any]] = None
        # Concurrent 401s share one in-flight refresh
        self._refresh_lock = threading.Lock()

    def set_refresh_handler(self, handler: Callable[[], Any]) -> None:
        """
        Register the callable that exchanges the refresh token.

        The handler must update the AuthSession on success and raise
        FlashApiError (after clearing the session) on failure.
        """
        self._refresh_handler = handler

    def set_session_lost_handler(self, handler: Callable[[], Any]) -> None:
        """
        Register the callable run when a refreshed token is rejected too.

        Without a handler the executor only clears the AuthSession.
        """
        self._session_lost_handler = handler

    def build_headers(self, call: Call) -> dict[str, str]:
        """Headers for one attempt of ``call``."""
        headers = {"Content-Type": "application/json"}
        headers.update(call.headers)

        if call.authenticated:
            bearer = self.auth.authorization_header_value()
            if bearer:
                headers["Authorization"] = bearer

        # Independent of auth state
        if self.api_key:
            headers["X-API-Key"] = self.api_key

        return headers

    def execute(self, call: Call, cancel: Optional[threading.Event] = None) -> Any:
        """
        Run ``call`` to completion under the retry and refresh policy.

        Args:
            call: Request to execute
            cancel: Optional event; once set, no further attempts are made

        Returns:
            Decoded JSON body (the ``data`` member for GraphQL calls)

        Raises:
            FlashApiError: For every failure, whatever its origin
        """
        attempt = 0
        refreshed = False

        while True:
            if cancel is not None and cancel.is_set():
                raise self._cancelled(call)

            token_used = self.auth.access_token if call.authenticated else None
            result = self._attempt(call, attempt)

            if result.status is AttemptStatus.SUCCESS:
                return self._unwrap(call, result.payload)

            if result.status is AttemptStatus.TRANSIENT:
                if not self.backoff.should_retry(attempt):
                    raise FlashApiError(
                        f"Network error occurred: {result.error}",
                        ErrorKind.NETWORK_ERROR,
                        details={"originalError": result.error, "attempts": attempt + 1},
                    ) from result.error

                logger.warning(
                    "Transient failure on %s %s (attempt %d), retrying in %.1fs: %s",
                    call.method, call.url, attempt + 1,
                    self.backoff.delay_for(attempt), result.error,
                )
                if not self.backoff.wait(attempt, cancel):
                    raise self._cancelled(call)
                attempt += 1
                continue

            response = result.response
            status = response.status_code

            if status == 429:
                retry_after = parse_retry_after(response)
                raise FlashApiError(
                    "Rate limited. Please try again later.",
                    ErrorKind.RATE_LIMITED,
                    details={"retryAfter": retry_after},
                    status_code=status,
                )

            if status == 401 and call.authenticated:
                if refreshed:
                    # Fresh token rejected as well; the session is unusable
                    self._session_lost()
                    raise self._authentication_failed()
                if self.auth.refresh_token and self._refresh_handler is not None:
                    self._refresh(token_used)
                    refreshed = True
                    continue
                raise self._authentication_failed()

            raise self._http_error(response)

    def _attempt(self, call: Call, attempt: int) -> AttemptResult:
        """Perform one HTTP exchange and classify how it ended."""
        headers = self.build_headers(call)
        logger.debug(
            "%s %s (attempt %d) headers=%s",
            call.method, call.url, attempt + 1, mask_headers(headers),
        )

        try:
            response = self.http.request(
                call.method,
                call.url,
                json=call.json,
                params=call.params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            return AttemptResult(AttemptStatus.TRANSIENT, error=e)

        if not 200 <= response.status_code < 300:
            return AttemptResult(AttemptStatus.HTTP_ERROR, response=response)

        if not response.content:
            return AttemptResult(AttemptStatus.SUCCESS, payload={}, response=response)

        try:
            payload = response.json()
        except ValueError as e:
            return AttemptResult(AttemptStatus.TRANSIENT, error=e, response=response)

        if call.graphql and not isinstance(payload, dict):
            return AttemptResult(
                AttemptStatus.TRANSIENT,
                error=ValueError("GraphQL response is not a JSON object"),
                response=response,
            )

        return AttemptResult(AttemptStatus.SUCCESS, payload=payload, response=response)

    def _unwrap(self, call: Call, payload: Any) -> Any:
        if not call.graphql:
            return payload

        errors = payload.get("errors")
        if errors:
            first = errors[0] if isinstance(errors[0], dict) else {"message": str(errors[0])}
            code = (first.get("extensions") or {}).get("code")
            details = dict(first)
            if code:
                details["code"] = code

            logger.warning(
                "GraphQL error response: %s",
                mask_sensitive({"errors": errors, "variables": (call.json or {}).get("variables")}),
            )
            raise FlashApiError(
                first.get("message") or "GraphQL error occurred",
                ErrorKind.from_code(code),
                details=details,
            )

        return payload.get("data") or {}

    def _refresh(self, stale_token: Optional[str]) -> None:
        with self._refresh_lock:
            # Another caller already swapped the token while we waited
            if self.auth.access_token and self.auth.access_token != stale_token:
                logger.debug("Token already refreshed by a concurrent call")
                return
            logger.info("Access token rejected, refreshing")
            self._refresh_handler()

    def _session_lost(self) -> None:
        logger.warning("Refreshed token rejected, ending session")
        if self._session_lost_handler is not None:
            self._session_lost_handler()
        else:
            self.auth.clear()

    def _http_error(self, response: requests.Response) -> FlashApiError:
        status = response.status_code
        body = _json_body(response)
        message = body.get("message") or body.get("detail")
        if not message:
            message = f"HTTP {status}: {response.reason or ''}".rstrip(": ").rstrip()

        logger.debug("HTTP %d from %s: %s", status, response.url, mask_sensitive(body))
        return FlashApiError(
            str(message),
            kind_for_status(status),
            details=body,
            status_code=status,
        )

    @staticmethod
    def _authentication_failed() -> FlashApiError:
        return FlashApiError(
            "Authentication failed. Please log in again.",
            ErrorKind.AUTHENTICATION_FAILED,
            status_code=401,
        )

    @staticmethod
    def _cancelled(call: Call) -> FlashApiError:
        return FlashApiError(
            "Request cancelled",
            ErrorKind.NETWORK_ERROR,
            details={"cancelled": True, "url": call.url},
        )

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.http.close()
