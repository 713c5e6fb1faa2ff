"""
API key authentication for the sync trigger endpoint
"""
import hmac
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

from crmsync.core.config import settings

logger = logging.getLogger(__name__)

api_key_scheme = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: Optional[str] = Depends(api_key_scheme)) -> bool:
    """
    Verify the X-API-Key header against SYNC_API_KEY.

    Raises:
        HTTPException 503: If no key is configured (endpoint disabled)
        HTTPException 401: If the key is missing or wrong
    """
    if not settings.sync_api_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sync trigger disabled (SYNC_API_KEY not configured)"
        )

    if not api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")

    if not hmac.compare_digest(api_key, settings.sync_api_key):
        logger.warning(f"Invalid API key attempt: {api_key[:4]}...")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    return True
