"""Unit tests for the portal app factory.

Tests:
  1. create_app() with local settings returns a working ASGI app
  2. In-memory services selected when nothing is configured locally
  3. Real clients selected when NocoDB/Grafana/Supabase are configured
  4. Non-local settings without services are rejected
  5. Request-ID generation and propagation
"""

import pytest
from fastapi.testclient import TestClient

from mosaic.app.db import SupabasePortalDashboardRepository, SupabaseTemplateRepository
from mosaic.app.inmemory import (
    InMemoryDashboardService,
    InMemoryPortalDashboardRepository,
    InMemoryTableService,
    InMemoryTemplateRepository,
)
from mosaic.app.main import AppDependencies, create_app
from mosaic.app.providers import GrafanaClient, NocodbClient
from mosaic.app.settings import PortalSettings


def _staging_settings(**overrides) -> PortalSettings:
    defaults = {
        "environment": "staging",
        "nocodb_url": "http://nocodb:8080",
        "nocodb_api_token": "nc-token",
        "grafana_url": "http://grafana:3000",
        "grafana_token": "glsa",
        "supabase_url": "https://test.supabase.co",
        "supabase_service_role_key": "test-key-not-real",
    }
    defaults.update(overrides)
    return PortalSettings(**defaults)


def test_health():
    client = TestClient(create_app())

    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "environment": "local"}


def test_local_uses_inmemory_services():
    app = create_app(PortalSettings())
    deps: AppDependencies = app.state.deps

    assert isinstance(deps.template_repo, InMemoryTemplateRepository)
    assert isinstance(deps.portal_dashboard_repo, InMemoryPortalDashboardRepository)
    assert isinstance(deps.nocodb, InMemoryTableService)
    assert isinstance(deps.grafana, InMemoryDashboardService)


def test_configured_services_use_real_clients():
    app = create_app(_staging_settings())
    deps: AppDependencies = app.state.deps

    assert isinstance(deps.template_repo, SupabaseTemplateRepository)
    assert isinstance(deps.portal_dashboard_repo, SupabasePortalDashboardRepository)
    assert isinstance(deps.nocodb, NocodbClient)
    assert isinstance(deps.grafana, GrafanaClient)


def test_overrides_win_over_settings():
    tables = InMemoryTableService()
    app = create_app(_staging_settings(), nocodb=tables)

    assert app.state.deps.nocodb is tables


def test_non_local_without_services_fails():
    with pytest.raises(ValueError, match="validation failed"):
        create_app(PortalSettings(environment="production"))


def test_request_id_generated():
    client = TestClient(create_app())

    resp = client.get("/health")

    assert resp.headers["x-request-id"]


def test_request_id_propagated():
    client = TestClient(create_app())

    resp = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert resp.headers["x-request-id"] == "req-123"


def test_error_body_carries_request_id():
    client = TestClient(create_app())

    resp = client.get("/api/templates", headers={"X-Request-ID": "req-456"})

    assert resp.status_code == 401
    assert resp.json()["request_id"] == "req-456"
