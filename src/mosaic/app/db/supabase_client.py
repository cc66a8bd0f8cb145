"""Async PostgREST client wrapper for the portal database.

This is the single point of HTTP interaction for portal repositories. Tables
in the ``portal`` schema are addressed as ``portal.<table>`` and routed via
the Accept-Profile/Content-Profile headers.
"""

from __future__ import annotations

from typing import Any, Mapping

import httpx

from .errors import (
    SupabaseAuthError,
    SupabaseConflictError,
    SupabaseError,
    SupabaseNotFoundError,
)

Filters = Mapping[str, tuple[str, Any] | Any]

# Module-level shared client for connection pooling in app runtimes/tests.
_shared_async_client: httpx.AsyncClient | None = None


def _get_shared_async_client() -> httpx.AsyncClient:
    global _shared_async_client
    if _shared_async_client is None:
        _shared_async_client = httpx.AsyncClient()
    return _shared_async_client


def _reset_shared_async_client_for_tests() -> None:
    """Test helper: clear shared client cache (does not close the instance)."""
    global _shared_async_client
    _shared_async_client = None


def _split_schema_table(table: str, default_schema: str) -> tuple[str, str]:
    if "." in table:
        schema, name = table.split(".", 1)
        return schema.strip(), name.strip()
    return default_schema, table.strip()


def _filters_to_params(filters: Filters | None) -> dict[str, str]:
    """Encode ``{"col": ("op", value)}`` (or ``{"col": value}`` for eq)."""
    params: dict[str, str] = {}
    for col, spec in (filters or {}).items():
        if isinstance(spec, tuple) and len(spec) == 2:
            op, val = spec
        else:
            op, val = "eq", spec
        if val is None:
            params[str(col)] = "is.null"
        elif isinstance(val, bool):
            params[str(col)] = f"{op}.{'true' if val else 'false'}"
        else:
            params[str(col)] = f"{op}.{val}"
    return params


class SupabaseClient:
    """Minimal async PostgREST client (service role)."""

    def __init__(
        self,
        *,
        supabase_url: str,
        service_role_key: str,
        default_schema: str = "public",
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not supabase_url:
            raise ValueError("supabase_url is required")
        if not service_role_key:
            raise ValueError("service_role_key is required")

        self._supabase_url = supabase_url.rstrip("/")
        self._service_role_key = service_role_key
        self._default_schema = default_schema or "public"
        self._timeout_seconds = float(timeout_seconds)
        self._client = http_client or _get_shared_async_client()

    @property
    def base_rest_url(self) -> str:
        return f"{self._supabase_url}/rest/v1"

    def _headers(self, schema: str, method: str) -> dict[str, str]:
        # Never log these headers.
        headers = {
            "apikey": self._service_role_key,
            "Authorization": f"Bearer {self._service_role_key}",
            "Accept-Profile": schema,
        }
        if method in ("POST", "PATCH", "DELETE"):
            headers["Content-Profile"] = schema
            headers["Prefer"] = "return=representation"
        return headers

    def _raise_for_error(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return

        message = resp.text
        code = details = None
        try:
            payload = resp.json()
            if isinstance(payload, dict):
                message = payload.get("message") or message
                code = payload.get("code")
                details = payload.get("details")
        except ValueError:
            pass

        err_cls: type[SupabaseError]
        if resp.status_code in (401, 403):
            err_cls = SupabaseAuthError
        elif resp.status_code == 404:
            err_cls = SupabaseNotFoundError
        elif resp.status_code == 409:
            err_cls = SupabaseConflictError
        else:
            err_cls = SupabaseError

        raise err_cls(
            status_code=resp.status_code,
            message=message,
            code=code,
            details=details,
        )

    async def _send(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any | None = None,
    ) -> list[dict[str, Any]]:
        schema, table_name = _split_schema_table(table, self._default_schema)
        try:
            resp = await self._client.request(
                method,
                f"{self.base_rest_url}/{table_name}",
                params=params,
                json=json,
                headers=self._headers(schema, method),
                timeout=self._timeout_seconds,
            )
        except httpx.HTTPError as e:
            raise SupabaseError(status_code=0, message=f"{method} {table}: {e}") from e

        self._raise_for_error(resp)
        payload = resp.json()
        if not isinstance(payload, list):
            raise SupabaseError(
                status_code=500,
                message=f"expected list response from {method} {table}",
            )
        return payload

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        *,
        columns: str = "*",
        limit: int | None = None,
        order: str | None = None,
    ) -> list[dict[str, Any]]:
        params = _filters_to_params(filters)
        params["select"] = columns
        if limit is not None:
            params["limit"] = str(int(limit))
        if order:
            params["order"] = order
        return await self._send("GET", table, params=params)

    async def insert(self, table: str, data: Mapping[str, Any]) -> list[dict[str, Any]]:
        return await self._send("POST", table, json=dict(data))

    async def delete(self, table: str, filters: Filters) -> list[dict[str, Any]]:
        if not filters:
            raise ValueError("delete requires at least one filter")
        return await self._send("DELETE", table, params=_filters_to_params(filters))
