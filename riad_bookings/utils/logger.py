"""Structured logging configuration using structlog."""

import logging
import sys
from typing import Any, Literal

import structlog
from structlog.typing import EventDict, Processor

# Event keys whose values never reach the log output unmasked
SECRET_KEYS = frozenset({
    "api_key",
    "access_token",
    "refresh_token",
    "client_secret",
    "authorization",
})

# Libraries that log every request URL at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """structlog processor masking credential-like keys."""
    for key in SECRET_KEYS.intersection(event_dict):
        value = event_dict[key]
        if value:
            event_dict[key] = mask_sensitive(str(value))
    return event_dict


def setup_logging(
    level: str = "INFO",
    format_type: Literal["json", "console"] = "console",
) -> None:
    """
    Configure structured logging for the webhook service.

    Events carry any contextvars bound for the request (``booking_id``
    during a submission) and have credential fields masked.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format_type: 'json' for the production log drain, 'console' for development
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if format_type == "json":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.rich_traceback,
            ),
        ]

    log_level = getattr(logging, level.upper())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # uvicorn logs through the standard library
    logging.basicConfig(format="%(message)s", level=log_level, stream=sys.stdout)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger, usually named after the calling module."""
    return structlog.get_logger(name)


def mask_sensitive(value: str, visible_chars: int = 4) -> str:
    """
    Mask a credential for logging, keeping the last few characters.

    "re_1234567890" becomes "*********7890".
    """
    if len(value) <= visible_chars:
        return "*" * len(value)
    return "*" * (len(value) - visible_chars) + value[-visible_chars:]


def mask_email(address: str) -> str:
    """
    Mask the local part of an email address for logging.

    "ana.lopez@example.com" becomes "a********@example.com".
    """
    if not address or "@" not in address:
        return "*" * len(address or "")
    local, _, domain = address.partition("@")
    return f"{local[:1]}{'*' * max(len(local) - 1, 0)}@{domain}"
