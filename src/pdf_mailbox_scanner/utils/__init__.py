"""Utility functions for PDF Mailbox Scanner."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator, Sequence
from typing import Any, TypeVar

import structlog

from pdf_mailbox_scanner.config import Settings

T = TypeVar("T")

SECRET_KEYS = frozenset({"password", "pass", "secret", "token", "credentials", "authorization"})
REDACTED = "***"


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of ``items`` holding at most ``size`` elements."""
    if size < 1:
        raise ValueError("size must be at least 1")
    for start in range(0, len(items), size):
        yield items[start : start + size]


def backoff_delays(attempts: int, delay: float = 1.0, backoff: float = 2.0) -> Iterator[float]:
    """Yield the wait before each retry of an operation tried ``attempts`` times.

    With the defaults and three attempts this yields 1.0 and 2.0: there is no
    wait before the first attempt and none after the last.
    """
    current = delay
    for _ in range(max(attempts - 1, 0)):
        yield current
        current *= backoff


def redact_secrets(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor masking values logged under secret-looking keys."""
    for key in event_dict:
        if key.lower() in SECRET_KEYS:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(settings: Settings) -> None:
    """Configure structlog for the CLI.

    Logs go to stderr so stdout carries only command output.
    """
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)
    if settings.log_json:
        renderers = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=False)]
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_secrets,
            *renderers,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
