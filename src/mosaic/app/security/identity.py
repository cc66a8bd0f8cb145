"""Requester identity for portal routes.

Sessions are terminated by the portal's session layer, which forwards the
authenticated user as trusted headers. This module only reads them; it
never validates credentials itself.

Headers:
  - ``X-Portal-User-Id``: authenticated user id (required).
  - ``X-Portal-User-Role``: ``admin`` or ``member`` (default ``member``).
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from ..errors import ApiError

USER_ID_HEADER = 'x-portal-user-id'
USER_ROLE_HEADER = 'x-portal-user-role'

ROLE_ADMIN = 'admin'
ROLE_MEMBER = 'member'


@dataclass(frozen=True, slots=True)
class RequesterIdentity:
    user_id: str
    role: str = ROLE_MEMBER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def get_requester(request: Request) -> RequesterIdentity:
    """FastAPI dependency: resolve the requester or reject with 401."""
    user_id = request.headers.get(USER_ID_HEADER, '').strip()
    if not user_id:
        raise ApiError(
            401,
            'AUTH_REQUIRED',
            'Authentication required',
            headers={'WWW-Authenticate': 'Bearer realm="mosaic-portal"'},
        )
    role = request.headers.get(USER_ROLE_HEADER, ROLE_MEMBER).strip().lower()
    return RequesterIdentity(user_id=user_id, role=role or ROLE_MEMBER)


def require_admin(identity: RequesterIdentity) -> None:
    if not identity.is_admin:
        raise ApiError(403, 'FORBIDDEN', 'Admin role required')
