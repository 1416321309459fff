"""HTTP client wrappers for the Supabase collaborator."""

from .client import SupabaseClient, UnconfiguredSupabase, build_supabase

__all__ = [
    "SupabaseClient",
    "UnconfiguredSupabase",
    "build_supabase",
]
