"""
Managed backend connection management.
Creates Supabase async clients for anonymous and per-session use and probes connectivity.
"""

from typing import Optional
import logging

from supabase import AsyncClient, acreate_client

from roomfinder.config import settings

logger = logging.getLogger(__name__)

# Shared client for anonymous reads (browse, listing detail)
_public_client: Optional[AsyncClient] = None


async def create_backend_client() -> AsyncClient:
    """
    Create a fresh backend client.

    Each signed-in session owns its own client because the SDK keeps the
    auth session on the client instance.

    Returns:
        New Supabase async client
    """
    return await acreate_client(settings.supabase_url, settings.supabase_key)


async def init_backend() -> AsyncClient:
    """
    Initialize the shared anonymous client.
    Called once during application startup.
    """
    global _public_client
    if _public_client is None:
        _public_client = await create_backend_client()
        logger.info(f"Backend client created for {settings.supabase_url}")
    return _public_client


async def get_backend() -> AsyncClient:
    """
    Dependency to get the shared anonymous backend client.

    Returns:
        Shared Supabase async client
    """
    return await init_backend()


async def test_backend_connection(client: Optional[AsyncClient] = None) -> bool:
    """
    Test backend connectivity with a minimal read on the users relation.
    Returns True if the probe succeeds, False otherwise.
    """
    try:
        client = client or await init_backend()
        await client.table("users").select("id").limit(1).execute()
        logger.info("Backend connection successful")
        return True
    except Exception as e:
        logger.warning(f"Backend connection test warning: {e}")
        return False


async def close_backend() -> None:
    """
    Drop the shared client.
    This should be called during application shutdown.
    """
    global _public_client
    if _public_client is not None:
        try:
            await _public_client.remove_all_channels()
        except Exception as e:
            logger.warning(f"Failed to close realtime channels: {e}")
    _public_client = None
    logger.info("Backend client closed")
