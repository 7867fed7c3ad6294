"""Supabase client for item, session and turn storage."""

from functools import lru_cache

from supabase import Client, ClientOptions, create_client

from spark_engine.core.config import get_settings


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Shared service-role client. Every query in spark_engine.db goes through it.

    Raises:
        RuntimeError: If the client can't be created (bad URL or key)
    """
    settings = get_settings()
    options = ClientOptions(postgrest_client_timeout=settings.SUPABASE_TIMEOUT)
    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY, options=options)
    except Exception as e:
        raise RuntimeError(f"Supabase client init failed for {settings.SUPABASE_URL}: {e}") from e
