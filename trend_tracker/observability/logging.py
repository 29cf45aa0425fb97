"""
Structured logging for the batch jobs, using structlog.

Modules log through plain ``logging.getLogger(__name__)``; those records are
rendered by structlog's ProcessorFormatter, so they come out as JSON in
production and as colored console lines otherwise. Fields bound with
``bind_context`` (e.g. the pipeline run) are attached to every record.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from trend_tracker.config.settings import get_settings

# Drivers that are chatty at DEBUG
_QUIET_LOGGERS = ("asyncio", "asyncpg")


def setup_logging(level: str | None = None) -> None:
    """
    Configure structlog and route the root logger through it.

    Args:
        level: Log level override (default: LOG_LEVEL from settings)

    Usage:
        setup_logging()
        logger = logging.getLogger(__name__)
        logger.info("Generated DAILY ranking for period 12: 40 entries")
    """
    settings = get_settings()

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: Processor
    if settings.is_production:
        pre_chain.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level or settings.log_level))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs) -> None:
    """Attach fields to every subsequent log record in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
