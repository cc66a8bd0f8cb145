"""Mosaic portal FastAPI application."""

from .main import create_app
from .settings import PortalSettings

__all__ = ["create_app", "PortalSettings"]
