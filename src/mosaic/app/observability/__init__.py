"""Observability helpers (structured logging)."""

from .logging import configure_logging, request_id_ctx

__all__ = ["configure_logging", "request_id_ctx"]
