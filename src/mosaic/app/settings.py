"""Portal configuration settings.

PortalSettings is the single configuration object accepted by create_app().
It is intentionally a plain dataclass (not env-coupled) so tests can inject
config without touching os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

_DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "http://localhost:3000",
)


@dataclass(frozen=True, slots=True)
class PortalSettings:
    """Configuration for the portal FastAPI application.

    All fields have sensible defaults for local development. Non-local
    environments must supply real NocoDB, Grafana and Supabase settings.
    """

    # ── Environment ────────────────────────────────────────────────
    environment: str = "local"
    """One of: local, dev, staging, production."""

    # ── NocoDB ─────────────────────────────────────────────────────
    nocodb_url: str = ""
    """Internal NocoDB base URL (e.g. http://nocodb:8080)."""

    nocodb_api_token: str = ""
    """NocoDB API token sent as ``xc-token``. Never log this."""

    nocodb_base_id: str = ""
    """Base that receives dataset tables. Empty means the first base."""

    # ── Grafana ────────────────────────────────────────────────────
    grafana_url: str = ""
    grafana_token: str = ""
    """Grafana service-account token. Never log this."""

    grafana_datasource_uid: str = "nocodb-pg"
    """Postgres datasource that reads NocoDB's physical tables."""

    # ── Supabase (portal records) ──────────────────────────────────
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # ── Provisioning ───────────────────────────────────────────────
    table_wait_attempts: int = 10
    """Max describe calls while waiting for a new table to become visible."""

    table_wait_delay_seconds: float = 0.5
    http_timeout_seconds: float = 30.0

    # ── CORS ───────────────────────────────────────────────────────
    cors_origins: tuple[str, ...] = _DEFAULT_CORS_ORIGINS

    @property
    def is_local(self) -> bool:
        return self.environment == "local"

    @property
    def has_nocodb(self) -> bool:
        return bool(self.nocodb_url and self.nocodb_api_token)

    @property
    def has_grafana(self) -> bool:
        return bool(self.grafana_url and self.grafana_token)

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if self.table_wait_attempts < 1:
            errors.append("table_wait_attempts must be >= 1")
        if self.table_wait_delay_seconds < 0:
            errors.append("table_wait_delay_seconds must be >= 0")
        if not self.is_local:
            if not self.has_nocodb:
                errors.append(
                    f"{self.environment}: nocodb_url and nocodb_api_token are required"
                )
            if not self.has_grafana:
                errors.append(
                    f"{self.environment}: grafana_url and grafana_token are required"
                )
            if not self.has_supabase:
                errors.append(
                    f"{self.environment}: supabase_url and "
                    "supabase_service_role_key are required"
                )
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> PortalSettings:
        """Build settings from environment variables.

        This is a convenience factory for production use. Tests should
        construct PortalSettings directly.
        """
        if env is None:
            env = dict(os.environ)

        cors_raw = env.get("CORS_ORIGINS", "")
        cors = (
            tuple(o.strip() for o in cors_raw.split(",") if o.strip())
            if cors_raw
            else _DEFAULT_CORS_ORIGINS
        )

        return cls(
            environment=env.get("ENVIRONMENT", "local"),
            nocodb_url=env.get("NOCODB_INTERNAL_URL", ""),
            nocodb_api_token=env.get("NOCODB_API_TOKEN", ""),
            nocodb_base_id=env.get("NOCODB_BASE_ID", ""),
            grafana_url=env.get("GRAFANA_INTERNAL_URL", ""),
            grafana_token=env.get("GRAFANA_SERVICE_ACCOUNT_TOKEN", ""),
            grafana_datasource_uid=env.get("GRAFANA_DATASOURCE_UID") or "nocodb-pg",
            supabase_url=env.get("SUPABASE_URL", ""),
            supabase_service_role_key=env.get("SUPABASE_SERVICE_ROLE_KEY", ""),
            table_wait_attempts=int(env.get("TABLE_WAIT_ATTEMPTS", "10")),
            table_wait_delay_seconds=float(env.get("TABLE_WAIT_DELAY_SECONDS", "0.5")),
            http_timeout_seconds=float(env.get("HTTP_TIMEOUT_SECONDS", "30")),
            cors_origins=cors,
        )
