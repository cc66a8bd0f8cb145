"""HTTP error envelope shared by portal routes.

Every error response has the shape ``{"code", "message", "request_id"}``
plus optional extra fields.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    """Raised by routes and dependencies; rendered by ``api_error_handler``."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        *,
        headers: dict[str, str] | None = None,
        **extra: Any,
    ) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        self.headers = headers
        self.extra = extra
        super().__init__(f'{code}: {message}')


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            'code': exc.code,
            'message': exc.message,
            'request_id': getattr(request.state, 'request_id', None),
            **exc.extra,
        },
        headers=exc.headers,
    )
