"""Shared utilities for talking to Supabase/PostgREST."""

from __future__ import annotations

from typing import Dict, Optional

from postgrest import APIError as PostgrestAPIError
from postgrest import SyncPostgrestClient

from restaurant_intel.config.supabase_client import SUPABASE_SERVICE_ROLE_KEY, SUPABASE_URL
from restaurant_intel.services.toast_errors import ConfigurationError


def create_postgrest_client(
    access_token: Optional[str] = None,
    *,
    prefer: Optional[str] = None,
    api_key: Optional[str] = None,
) -> SyncPostgrestClient:
    """Instantiate a PostgREST client, authenticated with the service role by default."""

    resolved_api_key = api_key or SUPABASE_SERVICE_ROLE_KEY
    if not SUPABASE_URL or not resolved_api_key:
        raise ConfigurationError("Supabase is not configured (SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY).")

    headers: Dict[str, str] = {
        "apikey": resolved_api_key,
        "Accept": "application/json",
    }
    if prefer:
        headers["Prefer"] = prefer

    client = SyncPostgrestClient(f"{SUPABASE_URL.rstrip('/')}/rest/v1", headers=headers)
    client.auth(access_token or resolved_api_key)
    return client


def postgrest_status(exc: PostgrestAPIError) -> int:
    """Best effort extraction of an HTTP status code from the API error."""

    try:
        return int(exc.code) if exc.code else 502
    except (TypeError, ValueError):
        return 502


__all__ = [
    "create_postgrest_client",
    "postgrest_status",
]
