"""
Health Check Routes
"""
import logging
from fastapi import APIRouter

from crmsync.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Health check endpoint with configuration status."""
    return {
        "status": "healthy",
        "environment": settings.environment,
        "hubspot_oauth": bool(settings.hubspot_client_id and settings.hubspot_client_secret),
        "account_store": bool(settings.supabase_url),
        "sink": bool(settings.sink_url),
        "job_queue": bool(settings.redis_url),
    }
