"""Supabase-backed provisioned template repository.

Implements the TemplateRepository protocol against the portal.templates
table. Rows are written once, after all external resources exist, and are
never updated; deletion is the only other mutation.
"""

from __future__ import annotations

from ..models import NewTemplate, ProvisionedTemplate
from .supabase_client import SupabaseClient

TABLE = "portal.templates"


class SupabaseTemplateRepository:
    """Template CRUD backed by PostgREST.

    Satisfies the ``TemplateRepository`` protocol from ``protocols.py``.
    """

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    async def create(self, template: NewTemplate) -> ProvisionedTemplate:
        """Insert one template row (single-row insert, no retry)."""
        rows = await self._client.insert(TABLE, template.to_row())
        return ProvisionedTemplate.from_row(rows[0])

    async def get(self, template_id: str) -> ProvisionedTemplate | None:
        rows = await self._client.select(
            TABLE,
            filters={"id": ("eq", template_id)},
            limit=1,
        )
        return ProvisionedTemplate.from_row(rows[0]) if rows else None

    async def list(self) -> list[ProvisionedTemplate]:
        """All templates, newest first."""
        rows = await self._client.select(TABLE, order="created_at.desc")
        return [ProvisionedTemplate.from_row(r) for r in rows]

    async def delete(self, template_id: str) -> bool:
        rows = await self._client.delete(TABLE, {"id": ("eq", template_id)})
        return bool(rows)
