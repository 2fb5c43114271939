"""Supabase (PostgREST) settings used by the persistence adapter."""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")


def persistence_enabled() -> bool:
    """True when both the project URL and the service role key are configured."""
    return bool(SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY)


__all__ = [
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "persistence_enabled",
]
