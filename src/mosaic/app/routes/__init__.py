"""Portal HTTP routes."""

from .templates import create_templates_router

__all__ = ['create_templates_router']
