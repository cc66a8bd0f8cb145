"""Portal FastAPI application factory.

The create_app() factory is the single entry point for building the portal
ASGI application. It wires middleware (request-ID, CORS), the template
routes, and injects repository/client implementations via dependency
injection.

Usage:
    # Local development (in-memory stores, fake NocoDB/Grafana unless configured)
    from mosaic.app import create_app, PortalSettings
    app = create_app(PortalSettings())

    # Non-local (Supabase stores, real NocoDB/Grafana clients)
    app = create_app(PortalSettings.from_env())

    # Testing (full DI control)
    app = create_app(settings, template_repo=repo, nocodb=fake_tables, ...)
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from .errors import ApiError, api_error_handler
from .observability.logging import configure_logging, request_id_ctx
from .protocols import (
    DashboardService,
    PortalDashboardRepository,
    TableService,
    TemplateRepository,
)
from .provisioning.orchestrator import ProvisioningOrchestrator
from .settings import PortalSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppDependencies:
    """Container for all injected repository/client instances.

    Stored on ``app.state.deps`` so route handlers can access them.
    """

    template_repo: TemplateRepository
    portal_dashboard_repo: PortalDashboardRepository
    nocodb: TableService
    grafana: DashboardService
    orchestrator: ProvisioningOrchestrator


def _build_clients(settings: PortalSettings) -> tuple[TableService, DashboardService]:
    """Real NocoDB/Grafana clients when configured, in-memory fakes otherwise."""
    from .inmemory import InMemoryDashboardService, InMemoryTableService
    from .providers.grafana_client import GrafanaClient
    from .providers.nocodb_client import NocodbClient

    nocodb: TableService
    grafana: DashboardService
    if settings.has_nocodb:
        nocodb = NocodbClient(
            base_url=settings.nocodb_url,
            api_token=settings.nocodb_api_token,
            base_id=settings.nocodb_base_id or None,
            timeout_seconds=settings.http_timeout_seconds,
            table_wait_attempts=settings.table_wait_attempts,
            table_wait_delay=settings.table_wait_delay_seconds,
        )
    else:
        nocodb = InMemoryTableService()

    if settings.has_grafana:
        grafana = GrafanaClient(
            base_url=settings.grafana_url,
            token=settings.grafana_token,
            datasource_uid=settings.grafana_datasource_uid,
            timeout_seconds=settings.http_timeout_seconds,
        )
    else:
        grafana = InMemoryDashboardService(
            datasource_uid=settings.grafana_datasource_uid,
        )
    return nocodb, grafana


def _build_stores(
    settings: PortalSettings,
) -> tuple[TemplateRepository, PortalDashboardRepository]:
    """Supabase-backed stores when configured, in-memory otherwise."""
    if settings.has_supabase:
        from .db import (
            SupabaseClient,
            SupabasePortalDashboardRepository,
            SupabaseTemplateRepository,
        )

        client = SupabaseClient(
            supabase_url=settings.supabase_url,
            service_role_key=settings.supabase_service_role_key,
            timeout_seconds=settings.http_timeout_seconds,
        )
        return (
            SupabaseTemplateRepository(client),
            SupabasePortalDashboardRepository(client),
        )

    from .inmemory import InMemoryPortalDashboardRepository, InMemoryTemplateRepository

    return InMemoryTemplateRepository(), InMemoryPortalDashboardRepository()


# ── Middleware ──────────────────────────────────────────────────────


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Generate or propagate X-Request-ID on every request."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response


# ── Factory ─────────────────────────────────────────────────────────


def create_app(
    settings: PortalSettings | None = None,
    *,
    template_repo: TemplateRepository | None = None,
    portal_dashboard_repo: PortalDashboardRepository | None = None,
    nocodb: TableService | None = None,
    grafana: DashboardService | None = None,
) -> FastAPI:
    """Create a configured portal FastAPI application.

    Args:
        settings: Application settings. Defaults to local-dev settings.
        template_repo..grafana: Store/client overrides. When None they are
            built from settings (in-memory for anything unconfigured in
            local mode).

    Returns:
        Configured FastAPI application ready for uvicorn.run().

    Raises:
        ValueError: If settings validation fails.
    """
    if settings is None:
        settings = PortalSettings()

    errors = settings.validate()
    if errors:
        raise ValueError(
            "Portal settings validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    default_templates, default_portal = _build_stores(settings)
    default_nocodb, default_grafana = _build_clients(settings)

    templates = template_repo or default_templates
    portal = portal_dashboard_repo or default_portal
    tables = nocodb or default_nocodb
    dashboards = grafana or default_grafana

    deps = AppDependencies(
        template_repo=templates,
        portal_dashboard_repo=portal,
        nocodb=tables,
        grafana=dashboards,
        orchestrator=ProvisioningOrchestrator(
            tables=tables,
            dashboards=dashboards,
            templates=templates,
            portal_dashboards=portal,
        ),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        logger.info("Portal startup (environment=%s)", settings.environment)
        yield
        logger.info("Portal shutdown")

    app = FastAPI(
        title="Mosaic Portal",
        description="Dataset provisioning API (NocoDB tables, forms, Grafana dashboards)",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.deps = deps
    app.state.settings = settings

    app.add_exception_handler(ApiError, api_error_handler)  # type: ignore[arg-type]

    # ── Middleware stack (applied in reverse order) ──────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    # ── Routes ──────────────────────────────────────────────────

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "environment": settings.environment,
        }

    from .routes.templates import create_templates_router
    app.include_router(create_templates_router(templates, deps.orchestrator))

    return app


# For uvicorn, use --factory flag:
#   uvicorn mosaic.app.main:create_app --factory
# This avoids executing create_app() at import time.
