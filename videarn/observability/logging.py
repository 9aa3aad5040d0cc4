"""
Structured Logging with Structlog.

JSON logs carrying the service, the business timezone and the request id.
Payout account numbers are masked before rendering.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from videarn.config import settings

# Event keys holding a wallet or bank account number
PAYOUT_ACCOUNT_KEYS = frozenset({"account_number", "payout_account"})


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application-level context to all log entries."""
    event_dict["service"] = settings.service_name
    event_dict["version"] = settings.api_version
    event_dict["business_timezone"] = settings.business_timezone
    return event_dict


def mask_payout_account(value: Any) -> str:
    """Keep only the last four characters of a payout account number."""
    text = str(value)
    if len(text) <= 4:
        return "*" * len(text)
    return "*" * (len(text) - 4) + text[-4:]


def mask_payout_details(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for key in PAYOUT_ACCOUNT_KEYS & event_dict.keys():
        if event_dict[key] is not None:
            event_dict[key] = mask_payout_account(event_dict[key])
    return event_dict


def setup_logging() -> None:
    """
    Configure structured logging with structlog.

    A withdrawal request renders as:
    {
        "event": "withdrawal_requested",
        "level": "info",
        "timestamp": "2024-01-17T12:00:00.123456Z",
        "logger": "videarn.services.withdrawals",
        "service": "videarn-ledger-api",
        "business_timezone": "Asia/Karachi",
        "request_id": "req-123",
        "payment_method": "JazzCash",
        "account_number": "*******4567",
        ...
    }
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        mask_payout_details,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.log_level.upper() == "DEBUG":
        processors.append(structlog.processors.ExceptionRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)  # type: ignore[no-any-return]


class log_context:
    """
    Bind the request id (and anything else passed) for the duration of a request.

    The HTTP middleware wraps every request in one, so ledger events logged
    by services can be joined to the request that caused them.
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs

    def __enter__(self) -> None:
        structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())
