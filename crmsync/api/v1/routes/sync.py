"""
Sync Routes
Enqueue HubSpot sync runs on the background worker
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from supabase import Client

from crmsync.core.dependencies import get_supabase_optional
from crmsync.core.security import verify_api_key
from crmsync.models.schemas import SyncJobResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("/hubspot", response_model=SyncJobResponse, status_code=202)
async def trigger_hubspot_sync(
    account_id: Optional[str] = Query(default=None, description="HubSpot portal id (all accounts if omitted)"),
    _: bool = Depends(verify_api_key),
    supabase: Optional[Client] = Depends(get_supabase_optional)
):
    """
    Queue an incremental HubSpot sync.

    The run itself happens on the Dramatiq worker; poll the `sync_jobs`
    table (when Supabase is configured) for its result.
    """
    from crmsync.services.jobs.tasks import sync_hubspot_task

    job_id = str(uuid.uuid4())
    tracked = False

    if supabase is not None:
        try:
            supabase.table("sync_jobs").insert({
                "id": job_id,
                "provider": "hubspot",
                "account_id": account_id,
                "status": "queued",
            }).execute()
            tracked = True
        except Exception as e:
            logger.warning(f"Could not record sync job {job_id}: {e}")

    message = sync_hubspot_task.send(account_id=account_id, job_id=job_id if tracked else None)
    logger.info(f"📨 Queued HubSpot sync job {job_id} (account: {account_id or 'all'}, message: {message.message_id})")

    return SyncJobResponse(job_id=job_id, status="queued", account_id=account_id, tracked=tracked)
