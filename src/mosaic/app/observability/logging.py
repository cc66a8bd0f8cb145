"""Structured logging configuration for the portal.

Configures structlog for JSON-formatted, request-ID-correlated logging.
Application modules keep using ``logging.getLogger(__name__)``; their
records (including ``extra=`` context) are rendered by structlog's
ProcessorFormatter on the root handler.

Usage::

    from mosaic.app.observability.logging import configure_logging

    configure_logging()  # Call once at app startup
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar

import structlog

# Context variable for request-scoped correlation ID.
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

# Context fields passed via ``extra=`` that should appear in rendered output.
EXTRA_FIELDS = ("table_id", "dashboard_uid", "template_id")

_configured = False


def _add_request_id(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> dict:
    """Inject the current request_id from context into every log entry."""
    rid = request_id_ctx.get()
    if rid is not None:
        event_dict["request_id"] = rid
    return event_dict


def _add_record_extras(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> dict:
    """Copy known ``extra=`` attributes from foreign stdlib records."""
    record = event_dict.get("_record")
    if record is not None:
        for name in EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                event_dict.setdefault(name, value)
    return event_dict


def configure_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
    force: bool = False,
) -> None:
    """Configure structlog and stdlib logging.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
            Defaults to LOG_LEVEL env var or INFO.
        json_output: If True, emit JSON lines. If False, emit
            human-readable console output. Defaults to LOG_FORMAT
            env var == "json".
        force: Reconfigure even if already configured.
    """
    global _configured
    if _configured and not force:
        return
    _configured = True

    level = level or os.environ.get("LOG_LEVEL", "INFO")
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "json") == "json"

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        _add_request_id,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

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
        foreign_pre_chain=[*shared_processors, _add_record_extras],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Quiet noisy libraries.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

