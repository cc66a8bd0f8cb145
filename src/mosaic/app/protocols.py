"""Repository and provider protocol interfaces for dependency injection.

These protocols define the contracts that concrete implementations (InMemory
for local dev and tests, Supabase/NocoDB/Grafana otherwise) must satisfy.
The app factory and the provisioning orchestrator accept any implementation
that matches them.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

from .models import FieldDefinition, NewTemplate, ProvisionedTemplate
from .providers.grafana_client import CreatedDashboard
from .providers.nocodb_client import CreatedTable, SharedForm


@runtime_checkable
class TableService(Protocol):
    """Tabular data store: tables and shared entry forms."""

    async def resolve_base_id(self) -> str: ...
    async def create_table(
        self, base_id: str, title: str, fields: Sequence[FieldDefinition],
    ) -> CreatedTable: ...
    async def delete_table(self, table_id: str) -> None: ...
    async def create_shared_form(self, table_id: str, title: str) -> SharedForm: ...


@runtime_checkable
class DashboardService(Protocol):
    """Dashboarding service: one dashboard per dataset."""

    async def create_dashboard(
        self, title: str, table_name: str, fields: Sequence[FieldDefinition],
    ) -> CreatedDashboard: ...
    async def delete_dashboard(self, uid: str) -> None: ...


@runtime_checkable
class TemplateRepository(Protocol):
    """Provisioned template persistence."""

    async def create(self, template: NewTemplate) -> ProvisionedTemplate: ...
    async def get(self, template_id: str) -> ProvisionedTemplate | None: ...
    async def list(self) -> list[ProvisionedTemplate]: ...
    async def delete(self, template_id: str) -> bool: ...


@runtime_checkable
class PortalDashboardRepository(Protocol):
    """Portal dashboard pages and their panels."""

    async def create_dashboard(self, owner_id: str, data: dict[str, Any]) -> dict[str, Any]: ...
    async def create_panel(self, dashboard_id: str, data: dict[str, Any]) -> dict[str, Any]: ...
