"""Structured logging for Cadence using structlog.

Every event is a snake_case name plus keyword context, e.g.::

    logger.info("step_delivered", record_id=..., message_count=2)

Delivery runs bind ``run_trigger`` through contextvars so nested calls
inherit it. Channel access tokens and contact e-mail addresses never
reach the renderer when redaction is on.
"""

import logging
import re
import sys
from typing import Any, cast

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

SENSITIVE_KEYS: frozenset[str] = frozenset({
    "password",
    "secret",
    "token",
    "access_token",
    "channel_access_token",
    "credential",
    "credentials",
    "authorization",
    "bearer",
    "api_key",
    "email",
    "phone",
})

REDACTED = "[REDACTED]"

_VALUE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"), "[EMAIL]"),
    (re.compile(r"Bearer\s+[A-Za-z0-9._~+/=-]+"), f"Bearer {REDACTED}"),
)


class PIIRedactor:
    """Processor that masks credentials and contact PII.

    Keys listed in SENSITIVE_KEYS are replaced outright, at any nesting
    depth. Remaining strings are scrubbed of e-mail addresses and bearer
    tokens, which tend to leak through error messages.
    """

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        return cast(EventDict, self._scrub(event_dict))

    def _scrub(self, value: Any) -> Any:
        if isinstance(value, str):
            for pattern, replacement in _VALUE_PATTERNS:
                value = pattern.sub(replacement, value)
            return value
        if isinstance(value, dict):
            return {
                key: REDACTED if str(key).lower() in SENSITIVE_KEYS else self._scrub(item)
                for key, item in value.items()
            }
        if isinstance(value, list | tuple):
            return [self._scrub(item) for item in value]
        return value


def _build_processors(format: str, redact_pii: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if redact_pii:
        processors.append(PIIRedactor())

    if format == "json":
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    return processors


def setup_logging(
    level: str = "INFO",
    format: str = "json",
    redact_pii: bool = True,
) -> None:
    """Configure structlog for the process.

    Args:
        level: Minimum log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: "json" for production, "console" for development
        redact_pii: Mask credentials and PII before rendering
    """
    level_num = logging.getLevelName(level.upper())
    if not isinstance(level_num, int):
        level_num = logging.INFO

    structlog.configure(
        processors=_build_processors(format, redact_pii),
        wrapper_class=structlog.make_filtering_bound_logger(level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger named after the calling module."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
