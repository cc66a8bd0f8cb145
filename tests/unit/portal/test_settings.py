"""PortalSettings validation and env loading."""

from __future__ import annotations

import pytest

from mosaic.app.settings import PortalSettings


def _staging_env(**overrides) -> dict[str, str]:
    env = {
        "ENVIRONMENT": "staging",
        "NOCODB_INTERNAL_URL": "http://nocodb:8080",
        "NOCODB_API_TOKEN": "nc-token",
        "GRAFANA_INTERNAL_URL": "http://grafana:3000",
        "GRAFANA_SERVICE_ACCOUNT_TOKEN": "glsa",
        "SUPABASE_URL": "https://test.supabase.co",
        "SUPABASE_SERVICE_ROLE_KEY": "svc-key",
    }
    env.update(overrides)
    return env


class TestDefaults:
    def test_local_defaults_are_valid(self):
        settings = PortalSettings()
        assert settings.is_local
        assert settings.validate() == []
        assert settings.table_wait_attempts == 10
        assert settings.table_wait_delay_seconds == 0.5
        assert settings.grafana_datasource_uid == "nocodb-pg"
        assert "http://localhost:5173" in settings.cors_origins


class TestValidate:
    def test_non_local_requires_services(self):
        errors = PortalSettings(environment="production").validate()
        assert len(errors) == 3
        assert any("nocodb_url" in e for e in errors)
        assert any("grafana_url" in e for e in errors)
        assert any("supabase_url" in e for e in errors)

    def test_wait_attempts_must_be_positive(self):
        errors = PortalSettings(table_wait_attempts=0).validate()
        assert errors == ["table_wait_attempts must be >= 1"]

    def test_negative_delay_rejected(self):
        errors = PortalSettings(table_wait_delay_seconds=-1).validate()
        assert errors == ["table_wait_delay_seconds must be >= 0"]


class TestFromEnv:
    def test_reads_all_service_settings(self):
        settings = PortalSettings.from_env(
            _staging_env(
                NOCODB_BASE_ID="p_main",
                TABLE_WAIT_ATTEMPTS="5",
                TABLE_WAIT_DELAY_SECONDS="0.25",
                HTTP_TIMEOUT_SECONDS="12",
                CORS_ORIGINS="https://portal.example.com, https://admin.example.com",
            )
        )

        assert settings.validate() == []
        assert settings.environment == "staging"
        assert settings.nocodb_base_id == "p_main"
        assert settings.table_wait_attempts == 5
        assert settings.table_wait_delay_seconds == 0.25
        assert settings.http_timeout_seconds == 12.0
        assert settings.cors_origins == (
            "https://portal.example.com",
            "https://admin.example.com",
        )

    def test_empty_env_is_local(self):
        settings = PortalSettings.from_env({})
        assert settings == PortalSettings()

    def test_blank_datasource_uid_uses_default(self):
        settings = PortalSettings.from_env({"GRAFANA_DATASOURCE_UID": ""})
        assert settings.grafana_datasource_uid == "nocodb-pg"

    def test_settings_are_frozen(self):
        with pytest.raises(AttributeError):
            PortalSettings().environment = "production"  # type: ignore[misc]
