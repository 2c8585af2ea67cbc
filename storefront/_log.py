"""
Logging — structlog setup.

    from storefront._log import configure, get_logger

    configure(level="INFO", json=True)
    log = get_logger(__name__)
    log.info("order_created", order_id=order.id, method="stripe")
"""

from __future__ import annotations

import logging

import structlog


def configure(level: str = "INFO", *, json: bool = False) -> None:
    """Configure structlog once per process. Events are snake_case names."""
    processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    return structlog.get_logger(name)


__all__ = ("configure", "get_logger")
