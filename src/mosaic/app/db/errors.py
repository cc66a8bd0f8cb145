"""PostgREST (Supabase) error hierarchy for portal repositories.

Kept small and dependency-free so repositories never leak httpx.Response
objects (or service keys) to callers.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SupabaseError(Exception):
    """Base error for PostgREST requests."""

    status_code: int
    message: str
    code: str | None = None
    details: str | None = None

    def __str__(self) -> str:
        bits: list[str] = [f"SupabaseError(status={self.status_code})", self.message]
        if self.code:
            bits.append(f"code={self.code}")
        if self.details:
            bits.append(f"details={self.details}")
        return " ".join(bits)


class SupabaseAuthError(SupabaseError):
    """401/403 errors (bad service key, RLS)."""


class SupabaseNotFoundError(SupabaseError):
    """404 errors (missing table/route)."""


class SupabaseConflictError(SupabaseError):
    """409 conflicts (unique violations, etc.)."""
