"""
Dependency Injection
Provides reusable dependencies for FastAPI routes

DEPENDENCIES:
- Supabase client (account store + sync job tracking)
"""
import logging
from typing import Optional

from supabase import Client, create_client

from crmsync.core.config import settings

logger = logging.getLogger(__name__)

# ============================================================================
# GLOBAL CLIENTS (initialized once, reused across requests)
# ============================================================================

_supabase_client: Optional[Client] = None


async def initialize_clients():
    """
    Initialize global clients on app startup.

    Called from main.py lifespan event.
    """
    global _supabase_client

    logger.info("Initializing global clients...")

    if settings.supabase_url and settings.supabase_service_key:
        try:
            _supabase_client = create_client(settings.supabase_url, settings.supabase_service_key)
            logger.info("✅ Supabase client initialized")
        except Exception as e:
            logger.error(f"❌ Failed to initialize Supabase: {e}")
            raise
    else:
        logger.warning("⚠️  Supabase not configured - sync job tracking disabled")


async def shutdown_clients():
    """Drop global clients on app shutdown."""
    global _supabase_client
    _supabase_client = None
    logger.info("✅ All clients shutdown complete")


def get_supabase_optional() -> Optional[Client]:
    """Supabase client if configured; routes degrade to untracked jobs otherwise."""
    return _supabase_client
