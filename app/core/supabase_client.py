# app/core/supabase_client.py
from functools import lru_cache
from supabase import create_client, Client

from app.core.config import get_settings

settings = get_settings()


@lru_cache
def supabase_admin() -> Client:
    """
    Service-role Supabase client, used only for Storage.

    Rows live in Postgres and go through SQLModel (app.database); auth is
    verified locally from the JWT. The service role key must never reach
    the frontend.

    Raises:
        RuntimeError: if SUPABASE_SERVICE_ROLE_KEY is not set.
    """
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("Missing SUPABASE_SERVICE_ROLE_KEY in .env")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


def documents_bucket():
    """Private bucket holding provider documents and payment receipts."""
    return supabase_admin().storage.from_(settings.DOCUMENTS_BUCKET)
