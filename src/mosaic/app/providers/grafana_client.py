"""Async HTTP client for the Grafana dashboard API.

Dashboards are submitted as one document with one time-series panel per
numeric field, so no partially built dashboard ever exists in Grafana.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

import httpx

from ..models import FieldDefinition
from .errors import RemoteNotFoundError, RemoteServiceError

logger = logging.getLogger(__name__)

SERVICE = "grafana"

# Reserved field name used as the panel time axis when present.
TIMESTAMP_FIELD = "measured_at"
CREATED_AT_COLUMN = "created_at"

PANEL_HEIGHT = 8
PANEL_WIDTH = 24
DASHBOARD_TAG = "mosaic-generated"


@dataclass(frozen=True, slots=True)
class CreatedDashboard:
    uid: str
    url: str
    """Dashboard path, e.g. ``/d/{uid}/{slug}``."""


def time_expression(fields: Sequence[FieldDefinition]) -> str:
    if any(f.name == TIMESTAMP_FIELD for f in fields):
        return f"COALESCE({TIMESTAMP_FIELD}, {CREATED_AT_COLUMN})"
    return CREATED_AT_COLUMN


def panel_query(time_expr: str, column: str, table_name: str) -> str:
    return (
        f"SELECT\n  {time_expr} AS time,\n  {column}\n"
        f"FROM {table_name}\n"
        f"WHERE $__timeFilter({time_expr})\n"
        f"ORDER BY time"
    )


def build_panels(
    table_name: str,
    fields: Sequence[FieldDefinition],
    *,
    datasource_uid: str,
) -> list[dict[str, Any]]:
    """Build one time-series panel per numeric field, stacked vertically."""
    time_expr = time_expression(fields)
    datasource = {"type": "postgres", "uid": datasource_uid}
    numeric = [f for f in fields if f.is_numeric]

    panels: list[dict[str, Any]] = []
    for index, field in enumerate(numeric):
        title = f"{field.name} ({field.unit})" if field.unit else field.name
        panels.append(
            {
                "id": index + 1,
                "type": "timeseries",
                "title": title,
                "datasource": datasource,
                "targets": [
                    {
                        "rawSql": panel_query(time_expr, field.name, table_name),
                        "rawQuery": True,
                        "format": "time_series",
                        "refId": "A",
                        "datasource": datasource,
                    }
                ],
                "fieldConfig": {
                    "defaults": {"custom": {"lineWidth": 2}},
                    "overrides": [],
                },
                "options": {},
                "gridPos": {
                    "x": 0,
                    "y": index * PANEL_HEIGHT,
                    "w": PANEL_WIDTH,
                    "h": PANEL_HEIGHT,
                },
            }
        )
    return panels


# ── Module-level shared client ───────────────────────────────────

_shared_async_client: httpx.AsyncClient | None = None


def _get_shared_async_client() -> httpx.AsyncClient:
    global _shared_async_client
    if _shared_async_client is None:
        _shared_async_client = httpx.AsyncClient()
    return _shared_async_client


def _reset_shared_async_client_for_tests() -> None:
    global _shared_async_client
    _shared_async_client = None


# ── Client ───────────────────────────────────────────────────────


class GrafanaClient:
    """Async client for Grafana dashboard create/delete.

    Authenticates with a service-account bearer token. Panels query the
    Postgres datasource identified by ``datasource_uid``.
    """

    def __init__(
        self,
        *,
        base_url: str,
        token: str,
        datasource_uid: str = "nocodb-pg",
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        if not token:
            raise ValueError("token is required")

        self._base_url = base_url.rstrip("/")
        self._token = token
        self._datasource_uid = datasource_uid
        self._client = http_client or _get_shared_async_client()
        self._timeout = float(timeout_seconds)

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    def _raise_for_status(self, resp: httpx.Response, action: str) -> None:
        if resp.is_success:
            return

        body = resp.text
        message = body[:200] if body else f"HTTP {resp.status_code}"
        try:
            payload = resp.json()
            if isinstance(payload, dict):
                message = payload.get("message", message)
        except ValueError:
            pass
        message = f"{action} failed: {message}"

        if resp.status_code == 404:
            raise RemoteNotFoundError(SERVICE, message, response_body=body)
        raise RemoteServiceError(
            SERVICE,
            resp.status_code,
            message,
            response_body=body,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any | None = None,
    ) -> httpx.Response:
        try:
            return await self._client.request(
                method,
                f"{self._base_url}{path}",
                headers=self._auth_headers(),
                json=json,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            raise RemoteServiceError(SERVICE, 0, f"{method} {path} timed out") from e
        except httpx.HTTPError as e:
            raise RemoteServiceError(SERVICE, 0, f"{method} {path}: {e}") from e

    def build_dashboard(
        self,
        title: str,
        table_name: str,
        fields: Sequence[FieldDefinition],
    ) -> dict[str, Any]:
        """Return the ``POST /api/dashboards/db`` request body."""
        return {
            "dashboard": {
                "uid": None,
                "title": title,
                "tags": [DASHBOARD_TAG],
                "timezone": "browser",
                "schemaVersion": 38,
                "version": 0,
                "refresh": "30s",
                "time": {"from": "now-7d", "to": "now"},
                "panels": build_panels(
                    table_name, fields, datasource_uid=self._datasource_uid,
                ),
            },
            "overwrite": False,
            "message": "Created by Mosaic orchestrator",
        }

    async def create_dashboard(
        self,
        title: str,
        table_name: str,
        fields: Sequence[FieldDefinition],
    ) -> CreatedDashboard:
        """Create the dataset dashboard in a single call."""
        resp = await self._request(
            "POST",
            "/api/dashboards/db",
            json=self.build_dashboard(title, table_name, fields),
        )
        self._raise_for_status(resp, "create_dashboard")

        try:
            payload = resp.json()
        except ValueError as e:
            raise RemoteServiceError(
                SERVICE, resp.status_code, "create_dashboard returned invalid JSON",
            ) from e
        if (
            not isinstance(payload, dict)
            or not payload.get("uid")
            or not payload.get("url")
        ):
            raise RemoteServiceError(
                SERVICE,
                resp.status_code,
                "create_dashboard response missing uid or url",
                response_body=resp.text,
            )

        created = CreatedDashboard(uid=str(payload["uid"]), url=str(payload["url"]))
        logger.info(
            "Grafana dashboard created: uid=%s url=%s",
            created.uid,
            created.url,
            extra={"dashboard_uid": created.uid},
        )
        return created

    async def delete_dashboard(self, uid: str) -> None:
        """Delete a dashboard by uid.

        Raises RemoteNotFoundError if the dashboard doesn't exist.
        """
        resp = await self._request("DELETE", f"/api/dashboards/uid/{uid}")
        self._raise_for_status(resp, "delete_dashboard")
        logger.info(
            "Grafana dashboard deleted: uid=%s",
            uid,
            extra={"dashboard_uid": uid},
        )
