"""Requester identity helpers."""

from .identity import RequesterIdentity, get_requester, require_admin

__all__ = ['RequesterIdentity', 'get_requester', 'require_admin']
