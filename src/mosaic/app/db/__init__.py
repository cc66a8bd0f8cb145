"""DB helpers for portal repositories (Supabase PostgREST)."""

from .dashboard_repo import SupabasePortalDashboardRepository, slugify
from .errors import (
    SupabaseAuthError,
    SupabaseConflictError,
    SupabaseError,
    SupabaseNotFoundError,
)
from .supabase_client import SupabaseClient
from .template_repo import SupabaseTemplateRepository

__all__ = [
    "SupabaseAuthError",
    "SupabaseClient",
    "SupabaseConflictError",
    "SupabaseError",
    "SupabaseNotFoundError",
    "SupabasePortalDashboardRepository",
    "SupabaseTemplateRepository",
    "slugify",
]
