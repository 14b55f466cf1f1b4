"""
Logging — structlog loggers bound per component.

    from cashier._log import get_logger

    log = get_logger("ledger")
    log.info("transaction_created", transaction_id=tx.id.value)
"""

from __future__ import annotations

import logging
from typing import Any

import structlog


def configure_logging(level: int = logging.INFO, *, json: bool = True) -> None:
    """
    Install a process-wide structlog configuration.

    Optional: without it structlog's defaults apply (pretty console output).
    """
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str) -> Any:
    """
    Lazy logger carrying the component name.

    Note: resolved against the current configuration on every call, so
    module-level loggers pick up configure_logging() made after import.
    """
    return structlog.get_logger("cashier", component=component)


__all__ = ("configure_logging", "get_logger")
