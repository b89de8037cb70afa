"""Tests for structured logging."""

import structlog

from cadence.observability.logging import PIIRedactor, get_logger, setup_logging


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_json_format(self) -> None:
        """Should configure JSON format for production."""
        setup_logging(level="INFO", format="json", redact_pii=False)
        logger = get_logger("test")
        # Should not raise
        logger.info("test_message")

    def test_setup_console_format(self) -> None:
        """Should configure console format for development."""
        setup_logging(level="DEBUG", format="console", redact_pii=False)
        logger = get_logger("test")
        logger.debug("test_message")

    def test_setup_with_pii_redaction(self) -> None:
        setup_logging(level="INFO", format="json", redact_pii=True)
        logger = get_logger("test")
        logger.info("test_message", credential="channel-token")


class TestPIIRedactor:
    """Tests for the redaction processor."""

    def _redact(self, **event: object) -> dict:
        return PIIRedactor()(None, "info", dict(event))

    def test_sensitive_keys_redacted(self) -> None:
        result = self._redact(event="push", token="abc", Authorization="Bearer abc")
        assert result["token"] == "[REDACTED]"
        assert result["Authorization"] == "[REDACTED]"
        assert result["event"] == "push"

    def test_email_in_value_redacted(self) -> None:
        result = self._redact(error="contact taro@example.com bounced")
        assert result["error"] == "contact [EMAIL] bounced"

    def test_bearer_in_value_redacted(self) -> None:
        result = self._redact(error="request failed: Bearer xyz.123 rejected")
        assert result["error"] == "request failed: Bearer [REDACTED] rejected"

    def test_nested_dicts_and_lists(self) -> None:
        result = self._redact(
            payload={"secret": "s", "to": "U1"},
            recipients=["a@example.com", 3],
        )
        assert result["payload"] == {"secret": "[REDACTED]", "to": "U1"}
        assert result["recipients"] == ["[EMAIL]", 3]


class TestContextBinding:
    def test_contextvars_bound(self) -> None:
        setup_logging(level="INFO", format="json", redact_pii=False)
        structlog.contextvars.bind_contextvars(run_trigger="timer")
        try:
            assert structlog.contextvars.get_contextvars()["run_trigger"] == "timer"
        finally:
            structlog.contextvars.clear_contextvars()
