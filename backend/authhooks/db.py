"""
Supabase client configuration.

The identity provider is Supabase Auth. The admin client (service key)
is used for the hook-secret RPC; a fresh anon-key client is created per
OAuth callback so the code exchange never shares session state between
requests.

Clients are created lazily so that importing the app does not require a
reachable Supabase project (tests patch these functions).
"""

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from supabase import Client, create_client

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")


def _require_url_and_key() -> tuple[str, str]:
    if not SUPABASE_URL or not SUPABASE_KEY:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")
    return SUPABASE_URL, SUPABASE_KEY


@lru_cache(maxsize=1)
def get_supabase_admin() -> Optional[Client]:
    """
    Admin client for service-level operations (bypasses RLS).

    Returns None when SUPABASE_SERVICE_KEY is not configured so callers can
    degrade to environment-based configuration.
    """
    if not SUPABASE_URL or not SUPABASE_SERVICE_KEY:
        return None
    return create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)


def create_session_client() -> Client:
    """Return a new anon-key client scoped to a single OAuth callback."""
    url, key = _require_url_and_key()
    return create_client(url, key)
