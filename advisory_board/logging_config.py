"""Centralised structured logging setup for the advisory pipeline.

Configures *structlog* with a JSON (or pretty console) pipeline bridged to
the stdlib ``logging`` module so library and application logs share one
format.  Other modules should call :pyfunc:`structlog.get_logger()` directly
and avoid re-configuring the library.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, Optional

import structlog

__all__ = [
    "configure_logging",
    "bind_request_context",
    "clear_request_context",
]


def configure_logging(force: bool = False) -> None:  # noqa: D401
    """Setup structlog + stdlib bridging exactly once.

    Args:
        force: When True, reconfigure even if previously configured. Use only
               inside isolated scripts/tests that need a different renderer.
    """

    configured = getattr(structlog, "_advisory_configured", False)  # type: ignore[attr-defined]
    if configured and not force:
        return

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    # JSON by default, pretty console when LOG_PRETTY=1
    dev_mode = os.getenv("LOG_PRETTY", "0").lower() in {"1", "true", "yes"}
    if dev_mode:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    formatter = structlog.stdlib.ProcessorFormatter(
        # stdlib records (openai, httpx) get the same fields as structlog events
        foreign_pre_chain=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    # Remove existing handlers (avoid duplicates in tests / scripts)
    root_logger = logging.getLogger()
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    setattr(structlog, "_advisory_configured", True)  # type: ignore[attr-defined]


def bind_request_context(
    request_id: Optional[str] = None,
    batch_id: Optional[str] = None,
) -> None:
    """Bind request/batch identifiers into structlog contextvars.

    Safe to call multiple times; only provided keys are updated.
    """
    payload: Dict[str, str] = {}
    if request_id:
        payload["request_id"] = request_id
    if batch_id:
        payload["batch_id"] = batch_id
    if payload:
        try:
            structlog.contextvars.bind_contextvars(**payload)
        except (TypeError, ValueError, AttributeError) as e:
            logging.getLogger(__name__).debug(
                "Failed to bind context: %s", e, exc_info=True
            )


def clear_request_context() -> None:
    structlog.contextvars.unbind_contextvars("request_id", "batch_id")
