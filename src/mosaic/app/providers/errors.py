"""Error hierarchy shared by the NocoDB and Grafana clients.

Errors carry the service name, HTTP status and a short message only, so they
can be logged and surfaced without leaking httpx.Response objects or tokens.
"""

from __future__ import annotations

from typing import Any


class RemoteServiceError(Exception):
    """Transport failure or non-2xx response from an external service.

    ``status_code`` is 0 when no response was received.
    """

    def __init__(
        self,
        service: str,
        status_code: int,
        message: str = "",
        *,
        response_body: str = "",
    ) -> None:
        self.service = service
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        super().__init__(f"{service} error {status_code}: {message}")


class RemoteNotFoundError(RemoteServiceError):
    """The external resource does not exist (404)."""

    def __init__(self, service: str, message: str = "not found", **kwargs: Any) -> None:
        super().__init__(service, 404, message, **kwargs)


class ConsistencyTimeoutError(Exception):
    """A created table never became visible in the NocoDB meta catalog.

    The table exists remotely; ``table_id`` identifies it for later cleanup.
    """

    def __init__(self, table_id: str, attempts: int) -> None:
        self.table_id = table_id
        self.attempts = attempts
        super().__init__(
            f"table {table_id!r} not queryable after {attempts} attempts"
        )
