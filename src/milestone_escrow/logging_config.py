"""Structured logging for the escrow engine, built on structlog.

Events are named ``<area>.<what_happened>`` and carry the ids involved as
key/value pairs::

    escrow.funds_locked       milestone_id=... amount=40.00 job_status=IN_PROGRESS
    escrow.milestone_released milestone_id=... released=100.00 fee=5.00 job_completed=True
    wallet.provisioned        user_id=...
    ledger.audit_violation    violation="..."

Money and ids are rendered as plain strings (``"40.00"``, not
``Decimal('40.00')``), so JSON lines in staging and production can be
summed and joined against the ledger directly. Every entry emitted while a
request is being served also carries the request_id bound by the API
middleware.

A balance update that would have left a wallet negative is logged at
CRITICAL; ledger audit violations are logged at ERROR.
"""

from __future__ import annotations

import logging
import sys
import uuid
from decimal import Decimal
from typing import Any

import structlog


def stringify_money_and_ids(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Render Decimal and UUID values as their plain string form."""
    for key, value in event_dict.items():
        if isinstance(value, (Decimal, uuid.UUID)):
            event_dict[key] = str(value)
    return event_dict


def setup_logging(log_level: str = "DEBUG", json_logs: bool = False) -> None:
    """Configure structlog over the stdlib root logger.

    Args:
        log_level: Standard Python log level string (DEBUG, INFO, WARNING, etc.)
        json_logs: JSON lines when True; colored console output otherwise.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        stringify_money_and_ids,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.DEBUG))

    # SQL echo is controlled by DB_ECHO_SQL, not the root level.
    for noisy_logger in ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "asyncio"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, usually as ``get_logger(__name__)``."""
    return structlog.get_logger(name)
