"""Tests for retry backoff and log masking."""

import threading

import pytest


class TestBackoff:
    """Tests for exponential backoff."""

    def test_default_schedule(self):
        from flashwallet.resilience import RetryConfig, calculate_delay

        config = RetryConfig()

        assert [calculate_delay(n, config) for n in range(5)] == [1.0, 2.0, 4.0, 8.0, 10.0]

    def test_jitter_bounds(self):
        from flashwallet.resilience import RetryConfig, calculate_delay

        config = RetryConfig(initial_delay=2.0, jitter=0.5)

        for _ in range(20):
            assert 1.0 <= calculate_delay(0, config) <= 3.0

    def test_should_retry(self):
        from flashwallet.resilience import Backoff, RetryConfig

        backoff = Backoff(RetryConfig(max_retries=2))

        assert backoff.should_retry(0) is True
        assert backoff.should_retry(1) is True
        assert backoff.should_retry(2) is False

    def test_wait_uses_sleep(self):
        from flashwallet.resilience import Backoff

        slept = []
        backoff = Backoff(sleep=slept.append)

        assert backoff.wait(1) is True
        assert slept == [2.0]

    def test_wait_cancelled(self):
        """A set cancel event ends the wait and reports it."""
        from flashwallet.resilience import Backoff

        cancel = threading.Event()
        cancel.set()

        assert Backoff().wait(0, cancel) is False


class TestMasking:
    """Tests for credential masking in logs."""

    def test_nested_values_masked(self):
        from flashwallet._logging import mask_sensitive

        data = {
            "variables": {"input": {"phone": "+18764250250", "code": "123456", "countryCode": "JM"}},
            "refresh_token": "abcdefghijklmnop",
            "items": [{"password": "pw"}],
        }

        masked = mask_sensitive(data)

        assert masked["variables"]["input"]["phone"] == "+18764250250"
        assert masked["variables"]["input"]["code"] == "[REDACTED]"
        assert masked["variables"]["input"]["countryCode"] == "JM"
        assert masked["refresh_token"] == "abcd...mnop"
        assert masked["items"] == [{"password": "[REDACTED]"}]
        assert data["refresh_token"] == "abcdefghijklmnop"

    def test_headers_masked(self):
        from flashwallet._logging import mask_headers

        masked = mask_headers({
            "Authorization": "Bearer eyJhbGciOi",
            "X-API-Key": "short",
            "Content-Type": "application/json",
        })

        assert masked["Authorization"] == "Bear...ciOi"
        assert masked["X-API-Key"] == "[REDACTED]"
        assert masked["Content-Type"] == "application/json"

    @pytest.mark.parametrize("value", [None, 12345, "short"])
    def test_non_string_or_short_redacted(self, value):
        from flashwallet._logging import mask_sensitive

        assert mask_sensitive({"api_key": value}) == {"api_key": "[REDACTED]"}

    def test_configure_logging_idempotent(self):
        import logging

        from flashwallet._logging import configure_logging

        configure_logging(logging.DEBUG)
        configure_logging(logging.INFO)

        logger = logging.getLogger("flashwallet")
        assert len(logger.handlers) == 1
        assert logger.level == logging.INFO
