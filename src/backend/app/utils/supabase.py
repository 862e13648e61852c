from supabase import create_client, Client
from app.config import settings


def get_supabase_client() -> Client:
    """
    Create a Supabase client for the order store.
    Uses the service role key: sync writes orders and inventory for any account.
    """
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
        raise RuntimeError("Supabase is not configured (SUPABASE_URL / SUPABASE_SERVICE_KEY)")

    return create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_KEY
    )
