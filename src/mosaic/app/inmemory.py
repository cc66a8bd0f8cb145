"""In-memory implementations for local development and tests.

These are used when ENVIRONMENT=local and NocoDB/Grafana/Supabase are not
configured. They satisfy the protocol interfaces but store everything in
dicts (no persistence across restarts). The external-service fakes record
every call and can be told to fail at a given step.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Sequence

from .db.dashboard_repo import dashboard_row, panel_row
from .models import FieldDefinition, NewTemplate, ProvisionedTemplate
from .providers.errors import RemoteNotFoundError, RemoteServiceError
from .providers.grafana_client import CreatedDashboard, build_panels
from .providers.nocodb_client import CreatedTable, SharedForm, build_columns


class InMemoryTemplateRepository:
    def __init__(self, *, create_fails: bool = False) -> None:
        self.create_fails = create_fails
        self._templates: dict[str, ProvisionedTemplate] = {}

    async def create(self, template: NewTemplate) -> ProvisionedTemplate:
        if self.create_fails:
            raise RuntimeError("template insert failed")
        now = datetime.now(timezone.utc)
        record = ProvisionedTemplate.from_row(
            {
                "id": str(uuid.uuid4()),
                **template.to_row(),
                "created_at": now,
                "updated_at": now,
            }
        )
        self._templates[record.id] = record
        return record

    async def get(self, template_id: str) -> ProvisionedTemplate | None:
        return self._templates.get(template_id)

    async def list(self) -> list[ProvisionedTemplate]:
        return sorted(
            self._templates.values(), key=lambda t: t.created_at, reverse=True,
        )

    async def delete(self, template_id: str) -> bool:
        return self._templates.pop(template_id, None) is not None


class InMemoryPortalDashboardRepository:
    def __init__(self, *, create_fails: bool = False) -> None:
        self.create_fails = create_fails
        self.dashboards: dict[str, dict[str, Any]] = {}
        self.panels: dict[str, list[dict[str, Any]]] = {}

    async def create_dashboard(self, owner_id: str, data: dict[str, Any]) -> dict[str, Any]:
        if self.create_fails:
            raise RuntimeError("portal dashboard insert failed")
        dashboard_id = str(uuid.uuid4())
        dashboard = {"id": dashboard_id, **dashboard_row(owner_id, data)}
        self.dashboards[dashboard_id] = dashboard
        self.panels[dashboard_id] = []
        return dashboard

    async def create_panel(self, dashboard_id: str, data: dict[str, Any]) -> dict[str, Any]:
        panel = {"id": str(uuid.uuid4()), **panel_row(dashboard_id, data)}
        self.panels.setdefault(dashboard_id, []).append(panel)
        return panel


class InMemoryTableService:
    """NocoDB stand-in that tracks calls."""

    def __init__(
        self,
        *,
        create_table_fails: bool = False,
        create_form_fails: bool = False,
        delete_fails: bool = False,
    ) -> None:
        self.create_table_fails = create_table_fails
        self.create_form_fails = create_form_fails
        self.delete_fails = delete_fails
        self.calls: list[tuple[str, str]] = []
        self.tables: dict[str, dict[str, Any]] = {}
        self.forms: dict[str, str] = {}

    async def resolve_base_id(self) -> str:
        self.calls.append(("resolve_base_id", ""))
        return "base_local"

    async def create_table(
        self, base_id: str, title: str, fields: Sequence[FieldDefinition],
    ) -> CreatedTable:
        self.calls.append(("create_table", title))
        if self.create_table_fails:
            raise RemoteServiceError("nocodb", 500, "create_table failed")
        table_id = f"md_{uuid.uuid4().hex[:12]}"
        table_name = f"nc_{uuid.uuid4().hex[:4]}_{title.lower().replace(' ', '_')}"
        self.tables[table_id] = {
            "base_id": base_id,
            "title": title,
            "table_name": table_name,
            "columns": build_columns(fields),
        }
        return CreatedTable(id=table_id, table_name=table_name)

    async def delete_table(self, table_id: str) -> None:
        self.calls.append(("delete_table", table_id))
        if self.delete_fails:
            raise RemoteServiceError("nocodb", 500, "delete_table failed")
        if self.tables.pop(table_id, None) is None:
            raise RemoteNotFoundError("nocodb", f"table {table_id} not found")

    async def create_shared_form(self, table_id: str, title: str) -> SharedForm:
        self.calls.append(("create_shared_form", table_id))
        if self.create_form_fails:
            raise RemoteServiceError("nocodb", 0, "connection reset")
        view_id = f"vw_{uuid.uuid4().hex[:12]}"
        share_uuid = str(uuid.uuid4())
        self.forms[view_id] = share_uuid
        return SharedForm(view_id=view_id, share_uuid=share_uuid)


class InMemoryDashboardService:
    """Grafana stand-in that tracks calls and keeps the built panels."""

    def __init__(
        self,
        *,
        create_fails: bool = False,
        delete_fails: bool = False,
        datasource_uid: str = "nocodb-pg",
    ) -> None:
        self.create_fails = create_fails
        self.delete_fails = delete_fails
        self.datasource_uid = datasource_uid
        self.calls: list[tuple[str, str]] = []
        self.dashboards: dict[str, dict[str, Any]] = {}

    async def create_dashboard(
        self, title: str, table_name: str, fields: Sequence[FieldDefinition],
    ) -> CreatedDashboard:
        self.calls.append(("create_dashboard", title))
        if self.create_fails:
            raise RemoteServiceError("grafana", 500, "create_dashboard failed")
        uid = uuid.uuid4().hex[:14]
        self.dashboards[uid] = {
            "title": title,
            "table_name": table_name,
            "panels": build_panels(
                table_name, fields, datasource_uid=self.datasource_uid,
            ),
        }
        slug = "-".join(title.lower().split()) or "dashboard"
        return CreatedDashboard(uid=uid, url=f"/d/{uid}/{slug}")

    async def delete_dashboard(self, uid: str) -> None:
        self.calls.append(("delete_dashboard", uid))
        if self.delete_fails:
            raise RemoteServiceError("grafana", 500, "delete_dashboard failed")
        if self.dashboards.pop(uid, None) is None:
            raise RemoteNotFoundError("grafana", f"dashboard {uid} not found")
