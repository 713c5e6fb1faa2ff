"""
Dramatiq Background Tasks
Runs HubSpot sync passes outside the API process
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import dramatiq
import httpx
from supabase import Client, create_client

from crmsync.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def get_sync_dependencies():
    """
    Create fresh instances of dependencies for background tasks.
    Dramatiq workers run in separate processes, so we can't share global clients.
    """
    from crmsync.core.config import settings

    if not settings.supabase_url or not settings.supabase_service_key:
        raise ConfigurationError("SUPABASE_URL / SUPABASE_SERVICE_KEY not set, account store unreachable")

    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        limits=httpx.Limits(max_keepalive_connections=5, max_connections=10)
    )
    supabase = create_client(settings.supabase_url, settings.supabase_service_key)

    return http_client, supabase


async def _run_hubspot_sync_with_cleanup(
    http_client: httpx.AsyncClient,
    supabase: Client,
    account_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Async wrapper that runs the sync and closes the HTTP client in the same event loop.
    """
    from crmsync.services.sync import SupabaseAccountStore, SyncOrchestrator

    try:
        orchestrator = SyncOrchestrator(http_client, SupabaseAccountStore(supabase))
        result = await orchestrator.run(account_id=account_id)
        return result.model_dump(mode="json")
    finally:
        await http_client.aclose()


def _update_job(supabase: Client, job_id: Optional[str], fields: Dict[str, Any]) -> None:
    if not job_id:
        return
    try:
        supabase.table("sync_jobs").update(fields).eq("id", job_id).execute()
    except Exception as e:
        logger.warning(f"Could not update sync job {job_id}: {e}")


@dramatiq.actor(max_retries=3, throws=(ConfigurationError,))
def sync_hubspot_task(account_id: Optional[str] = None, job_id: Optional[str] = None):
    """
    Background job for HubSpot sync.

    Args:
        account_id: HubSpot portal id (all accounts if omitted)
        job_id: Sync job ID for status tracking
    """
    logger.info(f"🚀 Starting HubSpot sync job {job_id} (account: {account_id or 'all'})")

    http_client, supabase = get_sync_dependencies()

    try:
        _update_job(supabase, job_id, {"status": "running", "started_at": "now()"})

        result = asyncio.run(_run_hubspot_sync_with_cleanup(http_client, supabase, account_id))

        _update_job(supabase, job_id, {"status": "completed", "completed_at": "now()", "result": result})

        logger.info(f"✅ HubSpot sync job {job_id} complete: {result.get('status')}")
        return result

    except Exception as e:
        logger.error(f"❌ HubSpot sync job {job_id} failed: {e}")

        _update_job(supabase, job_id, {"status": "failed", "completed_at": "now()", "error_message": str(e)})

        raise  # Re-raise for Dramatiq retry logic
