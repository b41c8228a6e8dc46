"""Supabase residency backend (PostgREST + GoTrue)."""

from residency_docs.backends.supabase.client import SupabaseBackend
from residency_docs.backends.supabase.postgrest import PostgrestClient, TableQuery

__all__ = [
    "SupabaseBackend",
    "PostgrestClient",
    "TableQuery",
]
