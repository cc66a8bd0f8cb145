"""Async HTTP client for the NocoDB v2 meta API.

Creates the dataset table (all columns in one request), shared data-entry
forms, and deletes tables during compensation/deprovisioning.

NocoDB's meta catalog is not immediately consistent after a table is created
against an externally-connected Postgres, so ``create_table`` polls the
table's views endpoint before reporting success. That poll is the only retry
loop in this client; every other non-2xx status is a hard error.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Sequence

import httpx

from ..models import FieldDefinition
from .errors import ConsistencyTimeoutError, RemoteNotFoundError, RemoteServiceError

logger = logging.getLogger(__name__)

SERVICE = "nocodb"

# Portal field type -> NocoDB UI data type.
COLUMN_TYPES: Mapping[str, str] = MappingProxyType(
    {
        "number": "Number",
        "date": "Date",
        "select": "SingleSelect",
    }
)
DEFAULT_COLUMN_TYPE = "SingleLineText"

_DEFAULT_WAIT_ATTEMPTS = 10
_DEFAULT_WAIT_DELAY = 0.5  # seconds

# NocoDB view type code for forms.
_FORM_VIEW_TYPE = 1


@dataclass(frozen=True, slots=True)
class CreatedTable:
    id: str
    table_name: str
    """Physical Postgres table name (``nc_xxx_<title>``)."""


@dataclass(frozen=True, slots=True)
class SharedForm:
    view_id: str
    share_uuid: str
    """Public uuid, embeddable via ``/nc/form/{uuid}``."""


def column_type_for(field_type: str) -> str:
    return COLUMN_TYPES.get(field_type, DEFAULT_COLUMN_TYPE)


def build_columns(fields: Sequence[FieldDefinition]) -> list[dict[str, str]]:
    """One column spec per field, in field order."""
    return [
        {"title": field.name, "uidt": column_type_for(field.field_type)}
        for field in fields
    ]


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


class NocodbClient:
    """Async client for NocoDB table and form-view provisioning.

    All calls authenticate with the ``xc-token`` API token header.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_token: str,
        base_id: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
        table_wait_attempts: int = _DEFAULT_WAIT_ATTEMPTS,
        table_wait_delay: float = _DEFAULT_WAIT_DELAY,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        if not api_token:
            raise ValueError("api_token is required")
        if table_wait_attempts < 1:
            raise ValueError("table_wait_attempts must be >= 1")

        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._base_id = base_id or None
        self._client = http_client or _get_shared_async_client()
        self._timeout = float(timeout_seconds)
        self._wait_attempts = table_wait_attempts
        self._wait_delay = max(float(table_wait_delay), 0.0)

    def _auth_headers(self) -> dict[str, str]:
        # Never log these headers.
        return {"xc-token": self._api_token}

    def _raise_for_status(self, resp: httpx.Response, action: str) -> None:
        if resp.is_success:
            return

        body = resp.text
        message = body[:200] if body else f"HTTP {resp.status_code}"
        try:
            payload = resp.json()
            if isinstance(payload, dict):
                message = payload.get("msg", payload.get("message", message))
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
        """Send one request; transport failures become ``RemoteServiceError``."""
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

    @staticmethod
    def _json_object(resp: httpx.Response, action: str) -> dict[str, Any]:
        try:
            payload = resp.json()
        except ValueError as e:
            raise RemoteServiceError(
                SERVICE, resp.status_code, f"{action} returned invalid JSON",
            ) from e
        if not isinstance(payload, dict):
            raise RemoteServiceError(
                SERVICE,
                resp.status_code,
                f"{action} expected an object, got {type(payload).__name__}",
            )
        return payload

    # ── Bases ────────────────────────────────────────────────────

    async def resolve_base_id(self) -> str:
        """Return the configured base id, or discover the first NocoDB base."""
        if self._base_id:
            return self._base_id

        resp = await self._request("GET", "/api/v2/meta/bases")
        self._raise_for_status(resp, "list_bases")
        bases = self._json_object(resp, "list_bases").get("list") or []
        if not bases or not bases[0].get("id"):
            raise RemoteServiceError(
                SERVICE, resp.status_code, "NocoDB has no bases; initialize NocoDB first",
            )
        return str(bases[0]["id"])

    # ── Tables ───────────────────────────────────────────────────

    async def create_table(
        self,
        base_id: str,
        title: str,
        fields: Sequence[FieldDefinition],
    ) -> CreatedTable:
        """Create a table with all columns in a single request.

        Returns only once the table is visible in the meta catalog.

        Raises:
            RemoteServiceError: the create request failed.
            ConsistencyTimeoutError: the table was created but never became
                visible within the poll window.
        """
        resp = await self._request(
            "POST",
            f"/api/v2/meta/bases/{base_id}/tables",
            json={"title": title, "columns": build_columns(fields)},
        )
        self._raise_for_status(resp, "create_table")

        payload = self._json_object(resp, "create_table")
        table_id = payload.get("id")
        table_name = payload.get("table_name")
        if not table_id or not table_name:
            raise RemoteServiceError(
                SERVICE,
                resp.status_code,
                "create_table response missing id or table_name",
                response_body=resp.text,
            )

        created = CreatedTable(id=str(table_id), table_name=str(table_name))
        logger.info(
            "NocoDB table created: id=%s table_name=%s",
            created.id,
            created.table_name,
            extra={"table_id": created.id},
        )

        await self.wait_for_table(created.id)
        return created

    async def wait_for_table(self, table_id: str) -> None:
        """Poll until the table's views are listable, or give up.

        Issues at most ``table_wait_attempts`` describe calls and sleeps
        ``table_wait_delay`` between them. Transport failures propagate
        immediately as ``RemoteServiceError``.
        """
        for attempt in range(1, self._wait_attempts + 1):
            resp = await self._request("GET", f"/api/v2/meta/tables/{table_id}/views")
            if resp.is_success:
                logger.info(
                    "Table %s ready after %d attempt(s)",
                    table_id,
                    attempt,
                    extra={"table_id": table_id},
                )
                return

            logger.warning(
                "Table %s not yet ready (attempt %d/%d, status %d)",
                table_id,
                attempt,
                self._wait_attempts,
                resp.status_code,
                extra={"table_id": table_id},
            )
            if attempt < self._wait_attempts:
                await asyncio.sleep(self._wait_delay)

        raise ConsistencyTimeoutError(table_id, self._wait_attempts)

    async def delete_table(self, table_id: str) -> None:
        """Delete a table by its NocoDB id.

        Raises RemoteNotFoundError if the table doesn't exist.
        """
        resp = await self._request("DELETE", f"/api/v2/meta/tables/{table_id}")
        self._raise_for_status(resp, "delete_table")
        logger.info(
            "NocoDB table deleted: id=%s",
            table_id,
            extra={"table_id": table_id},
        )

    # ── Form views ───────────────────────────────────────────────

    async def create_shared_form(self, table_id: str, title: str) -> SharedForm:
        """Create a form view on the table and enable public sharing.

        Both calls must succeed. If sharing fails the view is left in place
        and its id is not returned.
        """
        resp = await self._request(
            "POST",
            f"/api/v2/meta/tables/{table_id}/forms",
            json={"title": title, "type": _FORM_VIEW_TYPE},
        )
        self._raise_for_status(resp, "create_form")
        view_id = self._json_object(resp, "create_form").get("id")
        if not view_id:
            raise RemoteServiceError(
                SERVICE, resp.status_code, "create_form response missing id",
            )
        logger.info(
            "NocoDB form view created: title=%s id=%s",
            title,
            view_id,
            extra={"table_id": table_id},
        )

        resp = await self._request(
            "POST",
            f"/api/v2/meta/views/{view_id}/share",
            json={},
        )
        self._raise_for_status(resp, "share_view")
        share_uuid = self._json_object(resp, "share_view").get("uuid")
        if not share_uuid:
            raise RemoteServiceError(
                SERVICE, resp.status_code, "share_view response missing uuid",
            )
        logger.info(
            "NocoDB form view shared: id=%s uuid=%s",
            view_id,
            share_uuid,
            extra={"table_id": table_id},
        )
        return SharedForm(view_id=str(view_id), share_uuid=str(share_uuid))
