"""Provisioning orchestrator: drives the pipeline and compensates failures.

Orchestrates the dataset provisioning saga:
  NocoDB table -> shared form -> Grafana dashboard -> template record
  -> portal dashboard (best effort)

Compensation policy:
  - table stage fails: nothing to clean up.
  - form or dashboard stage fails: delete the table only. A form view or
    dashboard created by a failed stage is left in place.
  - register fails: nothing is deleted; the orphaned external ids are logged
    at ERROR level for manual reconciliation.

Compensating deletes, deprovisioning and the portal dashboard step are
fire-and-log: their failures never change what the caller sees.
"""

from __future__ import annotations

import logging

from ..models import DatasetDefinition, ProvisionedTemplate
from ..protocols import (
    DashboardService,
    PortalDashboardRepository,
    TableService,
    TemplateRepository,
)
from ..providers.errors import ConsistencyTimeoutError, RemoteNotFoundError
from .pipeline import Pipeline, StageError
from .visualization import build_portal_dashboard, build_portal_panels

logger = logging.getLogger(__name__)


class ProvisioningOrchestrator:
    """The only legitimate way to create or tear down a provisioned template."""

    def __init__(
        self,
        *,
        tables: TableService,
        dashboards: DashboardService,
        templates: TemplateRepository,
        portal_dashboards: PortalDashboardRepository,
    ) -> None:
        self._tables = tables
        self._dashboards = dashboards
        self._templates = templates
        self._portal = portal_dashboards

    async def provision(
        self,
        definition: DatasetDefinition,
        requester_id: str,
    ) -> ProvisionedTemplate:
        """Run the full provisioning saga for a validated definition.

        Raises:
            StageError: a stage failed; compensation has already run.
        """
        pipeline = Pipeline.start(definition, requester_id)

        # Step 1: table + columns
        try:
            tables = await pipeline.create_table(self._tables)
        except StageError as exc:
            if isinstance(exc.cause, ConsistencyTimeoutError):
                logger.warning(
                    'Table %s created but never became visible; left in place',
                    exc.cause.table_id,
                    extra={'table_id': exc.cause.table_id},
                )
            raise

        # Step 2: shared form (delete table on failure)
        try:
            forms = await tables.create_form(self._tables)
        except StageError as exc:
            await self._compensate(exc)
            raise

        # Step 3: Grafana dashboard (delete table on failure)
        try:
            ready = await forms.create_dashboard(self._dashboards)
        except StageError as exc:
            await self._compensate(exc)
            raise

        state = ready.state

        # Step 4: persist
        try:
            template = await ready.register(self._templates)
        except StageError as exc:
            logger.error(
                'Template registration failed; orphaned resources: '
                'table=%s form_view=%s form_share=%s dashboard=%s: %s',
                state.table_id,
                state.form_view_id,
                state.form_share_uuid,
                state.dashboard_uid,
                exc.cause,
                extra={
                    'table_id': state.table_id,
                    'dashboard_uid': state.dashboard_uid,
                },
            )
            raise

        logger.info(
            'Dataset provisioned: template=%s table=%s dashboard=%s',
            template.id,
            state.table_id,
            state.dashboard_uid,
            extra={'template_id': template.id},
        )

        # Step 5: portal dashboard (best effort)
        try:
            await self.auto_visualize(
                template,
                requester_id,
                dashboard_uid=state.dashboard_uid,
                dashboard_url=state.dashboard_url,
                form_share_uuid=state.form_share_uuid,
            )
        except Exception as exc:
            logger.warning(
                'Portal dashboard creation failed (non-fatal) for template %s: %s',
                template.id,
                exc,
                extra={'template_id': template.id},
            )

        return template

    async def deprovision(self, template: ProvisionedTemplate) -> None:
        """Best-effort removal of the template's external resources.

        Never raises. The form share uuid is not deleted separately; it goes
        away with the table.
        """
        if template.nocodb_table_id:
            await self._delete_quietly(
                'table',
                template.nocodb_table_id,
                self._tables.delete_table,
            )
        if template.grafana_dashboard_uid:
            await self._delete_quietly(
                'dashboard',
                template.grafana_dashboard_uid,
                self._dashboards.delete_dashboard,
            )

    async def auto_visualize(
        self,
        template: ProvisionedTemplate,
        requester_id: str,
        *,
        dashboard_uid: str,
        dashboard_url: str,
        form_share_uuid: str,
    ) -> dict:
        """Create a portal dashboard with one Grafana panel per numeric field.

        No form panel is generated; ``form_share_uuid`` is only logged so the
        dashboard can be traced back to its entry form.
        """
        dashboard = await self._portal.create_dashboard(
            requester_id, build_portal_dashboard(template),
        )
        panels = build_portal_panels(
            template, dashboard_uid=dashboard_uid, dashboard_url=dashboard_url,
        )
        for panel in panels:
            await self._portal.create_panel(dashboard['id'], panel)

        logger.info(
            'Portal dashboard %s created with %d panel(s) (form %s)',
            dashboard['id'],
            len(panels),
            form_share_uuid,
            extra={'template_id': template.id},
        )
        return dashboard

    # ── Internals ────────────────────────────────────────────────────

    async def _compensate(self, exc: StageError) -> None:
        """Delete the table created by stage 1 after a later stage failed."""
        table_id = exc.previous.state.table_id
        logger.warning(
            'Stage %s failed; cleaning up table %s: %s',
            exc.stage,
            table_id,
            exc.cause,
            extra={'table_id': table_id},
        )
        await self._delete_quietly('table', table_id, self._tables.delete_table)

    async def _delete_quietly(self, kind: str, resource_id: str, delete) -> None:
        try:
            await delete(resource_id)
        except RemoteNotFoundError:
            logger.info('%s %s already gone', kind.capitalize(), resource_id)
        except Exception as exc:
            logger.warning(
                'Failed to delete %s %s: %s',
                kind,
                resource_id,
                exc,
            )
