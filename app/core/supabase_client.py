# app/core/supabase_client.py
from functools import lru_cache
from supabase import create_client, Client

from app.core.config import get_settings


@lru_cache
def supabase_admin() -> Client:
    """
    Supabase client with the service role key.

    Only used to provision accounts (auth.admin.create_user) for
    merchants, drivers and admins. Tokens are verified locally in
    app.core.auth, so no client is needed on the request path.

    Raises:
        RuntimeError: if SUPABASE_SERVICE_ROLE_KEY is not set.
    """
    settings = get_settings()
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("Missing SUPABASE_SERVICE_ROLE_KEY in .env")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
