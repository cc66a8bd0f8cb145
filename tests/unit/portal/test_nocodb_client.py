"""Tests for NocodbClient: table creation, consistency wait, shared forms.

Uses httpx.MockTransport so no real NocoDB is needed.
"""
from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from mosaic.app.models import FieldDefinition
from mosaic.app.providers.errors import (
    ConsistencyTimeoutError,
    RemoteNotFoundError,
    RemoteServiceError,
)
from mosaic.app.providers.nocodb_client import (
    DEFAULT_COLUMN_TYPE,
    NocodbClient,
    build_columns,
    column_type_for,
)

BASE_URL = "http://nocodb:8080"

FIELDS = (
    FieldDefinition("weight", "number", "kg"),
    FieldDefinition("mood", "text"),
    FieldDefinition("measured_at", "date"),
    FieldDefinition("category", "select"),
)


# ─────────────────────── helpers ───────────────────────


def _make_client(handler, **overrides) -> NocodbClient:
    transport = httpx.MockTransport(handler)
    defaults: dict[str, Any] = {
        "base_url": BASE_URL,
        "api_token": "nc-token",
        "http_client": httpx.AsyncClient(transport=transport),
        "table_wait_attempts": 3,
        "table_wait_delay": 0.5,
    }
    defaults.update(overrides)
    return NocodbClient(**defaults)


def _router(routes: dict[tuple[str, str], Any], seen: list[httpx.Request]):
    """Dispatch on (method, path); values are responses or callables."""

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        route = routes[(request.method, request.url.path)]
        return route(request) if callable(route) else route

    return handler


# ─────────────────────── Column mapping ───────────────────────


class TestColumnMapping:
    def test_known_types(self):
        assert column_type_for("number") == "Number"
        assert column_type_for("date") == "Date"
        assert column_type_for("select") == "SingleSelect"

    def test_text_and_unknown_fall_back(self):
        assert column_type_for("text") == DEFAULT_COLUMN_TYPE
        assert column_type_for("geo") == "SingleLineText"

    def test_build_columns_preserves_order(self):
        assert build_columns(FIELDS) == [
            {"title": "weight", "uidt": "Number"},
            {"title": "mood", "uidt": "SingleLineText"},
            {"title": "measured_at", "uidt": "Date"},
            {"title": "category", "uidt": "SingleSelect"},
        ]


# ─────────────────────── Construction ───────────────────────


class TestConstruction:
    def test_requires_base_url(self):
        with pytest.raises(ValueError, match="base_url"):
            NocodbClient(base_url="", api_token="t")

    def test_requires_token(self):
        with pytest.raises(ValueError, match="api_token"):
            NocodbClient(base_url=BASE_URL, api_token="")

    def test_rejects_zero_wait_attempts(self):
        with pytest.raises(ValueError, match="table_wait_attempts"):
            NocodbClient(base_url=BASE_URL, api_token="t", table_wait_attempts=0)


# ─────────────────────── Bases ───────────────────────


class TestResolveBaseId:
    @pytest.mark.asyncio
    async def test_configured_base_id_skips_lookup(self):
        seen: list[httpx.Request] = []
        client = _make_client(_router({}, seen), base_id="p_configured")

        assert await client.resolve_base_id() == "p_configured"
        assert seen == []

    @pytest.mark.asyncio
    async def test_discovers_first_base(self):
        seen: list[httpx.Request] = []
        routes = {
            ("GET", "/api/v2/meta/bases"): httpx.Response(
                200, json={"list": [{"id": "p_first"}, {"id": "p_second"}]},
            ),
        }
        client = _make_client(_router(routes, seen))

        assert await client.resolve_base_id() == "p_first"
        assert seen[0].headers["xc-token"] == "nc-token"

    @pytest.mark.asyncio
    async def test_no_bases_is_an_error(self):
        routes = {("GET", "/api/v2/meta/bases"): httpx.Response(200, json={"list": []})}
        client = _make_client(_router(routes, []))

        with pytest.raises(RemoteServiceError, match="no bases"):
            await client.resolve_base_id()


# ─────────────────────── Tables ───────────────────────


class TestCreateTable:
    @pytest.mark.asyncio
    async def test_creates_table_with_all_columns_in_one_request(self):
        seen: list[httpx.Request] = []
        routes = {
            ("POST", "/api/v2/meta/bases/p1/tables"): httpx.Response(
                200, json={"id": "md_t1", "table_name": "nc_ab12_weight_log"},
            ),
            ("GET", "/api/v2/meta/tables/md_t1/views"): httpx.Response(
                200, json={"list": []},
            ),
        }
        client = _make_client(_router(routes, seen))

        created = await client.create_table("p1", "Weight Log", FIELDS)

        assert created.id == "md_t1"
        assert created.table_name == "nc_ab12_weight_log"
        posts = [r for r in seen if r.method == "POST"]
        assert len(posts) == 1
        body = json.loads(posts[0].content)
        assert body["title"] == "Weight Log"
        assert [c["title"] for c in body["columns"]] == [
            "weight", "mood", "measured_at", "category",
        ]

    @pytest.mark.asyncio
    async def test_create_failure_raises_with_status(self):
        routes = {
            ("POST", "/api/v2/meta/bases/p1/tables"): httpx.Response(
                400, json={"msg": "Duplicate table name"},
            ),
        }
        client = _make_client(_router(routes, []))

        with pytest.raises(RemoteServiceError) as exc_info:
            await client.create_table("p1", "Weight Log", FIELDS)

        assert exc_info.value.status_code == 400
        assert "Duplicate table name" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_table_name_in_response(self):
        routes = {
            ("POST", "/api/v2/meta/bases/p1/tables"): httpx.Response(
                200, json={"id": "md_t1"},
            ),
        }
        client = _make_client(_router(routes, []))

        with pytest.raises(RemoteServiceError, match="table_name"):
            await client.create_table("p1", "Weight Log", FIELDS)

    @pytest.mark.asyncio
    async def test_transport_error_has_status_zero(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _make_client(handler)

        with pytest.raises(RemoteServiceError) as exc_info:
            await client.create_table("p1", "Weight Log", FIELDS)

        assert exc_info.value.status_code == 0


class TestWaitForTable:
    @pytest.mark.asyncio
    @patch("mosaic.app.providers.nocodb_client.asyncio.sleep", new_callable=AsyncMock)
    async def test_ready_after_retries(self, mock_sleep):
        responses = iter([
            httpx.Response(404, json={"msg": "Table not found"}),
            httpx.Response(404, json={"msg": "Table not found"}),
            httpx.Response(200, json={"list": []}),
        ])
        seen: list[httpx.Request] = []
        routes = {("GET", "/api/v2/meta/tables/md_t1/views"): lambda _: next(responses)}
        client = _make_client(_router(routes, seen))

        await client.wait_for_table("md_t1")

        assert len(seen) == 3
        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(0.5)

    @pytest.mark.asyncio
    @patch("mosaic.app.providers.nocodb_client.asyncio.sleep", new_callable=AsyncMock)
    async def test_gives_up_after_configured_attempts(self, mock_sleep):
        seen: list[httpx.Request] = []
        routes = {
            ("GET", "/api/v2/meta/tables/md_t1/views"): httpx.Response(
                404, json={"msg": "Table not found"},
            ),
        }
        client = _make_client(_router(routes, seen), table_wait_attempts=4)

        with pytest.raises(ConsistencyTimeoutError) as exc_info:
            await client.wait_for_table("md_t1")

        assert exc_info.value.table_id == "md_t1"
        assert exc_info.value.attempts == 4
        assert len(seen) == 4
        # No sleep after the final attempt.
        assert mock_sleep.await_count == 3

    @pytest.mark.asyncio
    @patch("mosaic.app.providers.nocodb_client.asyncio.sleep", new_callable=AsyncMock)
    async def test_create_table_surfaces_timeout_with_table_id(self, mock_sleep):
        routes = {
            ("POST", "/api/v2/meta/bases/p1/tables"): httpx.Response(
                200, json={"id": "md_slow", "table_name": "nc_slow"},
            ),
            ("GET", "/api/v2/meta/tables/md_slow/views"): httpx.Response(404),
        }
        client = _make_client(_router(routes, []))

        with pytest.raises(ConsistencyTimeoutError) as exc_info:
            await client.create_table("p1", "Slow", FIELDS)

        assert exc_info.value.table_id == "md_slow"

    @pytest.mark.asyncio
    @patch("mosaic.app.providers.nocodb_client.asyncio.sleep", new_callable=AsyncMock)
    async def test_transport_error_propagates_immediately(self, mock_sleep):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ReadTimeout("timed out", request=request)

        client = _make_client(handler)

        with pytest.raises(RemoteServiceError) as exc_info:
            await client.wait_for_table("md_t1")

        assert exc_info.value.status_code == 0
        assert calls == 1
        mock_sleep.assert_not_awaited()


class TestDeleteTable:
    @pytest.mark.asyncio
    async def test_delete_success(self):
        seen: list[httpx.Request] = []
        routes = {("DELETE", "/api/v2/meta/tables/md_t1"): httpx.Response(200, json=True)}
        client = _make_client(_router(routes, seen))

        await client.delete_table("md_t1")

        assert seen[0].method == "DELETE"

    @pytest.mark.asyncio
    async def test_delete_missing_raises_not_found(self):
        routes = {("DELETE", "/api/v2/meta/tables/md_gone"): httpx.Response(404)}
        client = _make_client(_router(routes, []))

        with pytest.raises(RemoteNotFoundError):
            await client.delete_table("md_gone")


# ─────────────────────── Forms ───────────────────────


class TestCreateSharedForm:
    @pytest.mark.asyncio
    async def test_creates_form_then_shares_it(self):
        seen: list[httpx.Request] = []
        routes = {
            ("POST", "/api/v2/meta/tables/md_t1/forms"): httpx.Response(
                200, json={"id": "vw_f1"},
            ),
            ("POST", "/api/v2/meta/views/vw_f1/share"): httpx.Response(
                200, json={"uuid": "share-uuid-1"},
            ),
        }
        client = _make_client(_router(routes, seen))

        form = await client.create_shared_form("md_t1", "Weight Log - Entry Form")

        assert form.view_id == "vw_f1"
        assert form.share_uuid == "share-uuid-1"
        assert [r.url.path for r in seen] == [
            "/api/v2/meta/tables/md_t1/forms",
            "/api/v2/meta/views/vw_f1/share",
        ]
        body = json.loads(seen[0].content)
        assert body == {"title": "Weight Log - Entry Form", "type": 1}

    @pytest.mark.asyncio
    async def test_share_failure_raises(self):
        routes = {
            ("POST", "/api/v2/meta/tables/md_t1/forms"): httpx.Response(
                200, json={"id": "vw_f1"},
            ),
            ("POST", "/api/v2/meta/views/vw_f1/share"): httpx.Response(
                500, json={"msg": "internal"},
            ),
        }
        client = _make_client(_router(routes, []))

        with pytest.raises(RemoteServiceError) as exc_info:
            await client.create_shared_form("md_t1", "Form")

        assert exc_info.value.status_code == 500
        assert exc_info.value.service == "nocodb"
