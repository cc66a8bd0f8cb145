"""Supabase-backed portal dashboard/panel repository.

Only the create operations are needed here: provisioning generates one
portal dashboard per template. Layout editing lives elsewhere.
"""

from __future__ import annotations

import re
from typing import Any

from .supabase_client import SupabaseClient

DASHBOARDS_TABLE = "portal.dashboards"
PANELS_TABLE = "portal.panels"

DEFAULT_PANEL_WIDTH = 6
DEFAULT_PANEL_HEIGHT = 4

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """URL-friendly ASCII slug: ``"Body Weight (kg)"`` -> ``"body-weight-kg"``."""
    return _NON_SLUG_CHARS.sub("-", text.lower()).strip("-")


def dashboard_row(owner_id: str, data: dict[str, Any]) -> dict[str, Any]:
    title = data["title"]
    return {
        "owner_id": owner_id,
        "title": title,
        "slug": data.get("slug") or slugify(title),
        "icon": data.get("icon"),
        "sort_order": data.get("sort_order") or 0,
        "is_shared": bool(data.get("is_shared", False)),
    }


def panel_row(dashboard_id: str, data: dict[str, Any]) -> dict[str, Any]:
    return {
        "dashboard_id": dashboard_id,
        "title": data.get("title"),
        "panel_type": data["panel_type"],
        "source_url": data.get("source_url"),
        "config": data.get("config") or {},
        "grid_x": data.get("grid_x", 0),
        "grid_y": data.get("grid_y", 0),
        "grid_w": data.get("grid_w") or DEFAULT_PANEL_WIDTH,
        "grid_h": data.get("grid_h") or DEFAULT_PANEL_HEIGHT,
    }


class SupabasePortalDashboardRepository:
    """Satisfies the ``PortalDashboardRepository`` protocol."""

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    async def create_dashboard(self, owner_id: str, data: dict[str, Any]) -> dict[str, Any]:
        rows = await self._client.insert(DASHBOARDS_TABLE, dashboard_row(owner_id, data))
        return rows[0]

    async def create_panel(self, dashboard_id: str, data: dict[str, Any]) -> dict[str, Any]:
        rows = await self._client.insert(PANELS_TABLE, panel_row(dashboard_id, data))
        return rows[0]
