"""
HubSpot CRM v3 API client
Search, batch association read and batch property read

Every call authenticates with the CredentialManager's current token and
translates transport/HTTP failures into TransientFetchError.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from crmsync.core.config import settings
from crmsync.core.exceptions import TransientFetchError
from crmsync.services.sync.oauth import CredentialManager

logger = logging.getLogger(__name__)


class HubSpotClient:
    """Thin async wrapper over the HubSpot endpoints the sync needs."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        credentials: CredentialManager,
        api_base: Optional[str] = None
    ):
        self.http_client = http_client
        self.credentials = credentials
        self.api_base = (api_base or settings.hubspot_api_base).rstrip("/")

    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.api_base}{path}"
        try:
            response = await self.http_client.post(url, json=body, headers=self.credentials.auth_headers())
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"HubSpot API error on {path}: {e.response.status_code} - {e.response.text[:500]}")
            raise TransientFetchError(
                f"HubSpot API error on {path}: {e.response.status_code}",
                status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"HubSpot request failed on {path}: {e}")
            raise TransientFetchError(f"HubSpot request failed on {path}: {e}") from e
        except ValueError as e:
            raise TransientFetchError(f"Invalid JSON from HubSpot on {path}: {e}") from e

    # ========================================================================
    # SEARCH
    # ========================================================================

    async def search(self, object_type: str, search_body: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST /crm/v3/objects/{object_type}/search

        Returns:
            Raw response: {"results": [...], "paging": {"next": {"after": "..."}}}
        """
        return await self._post(f"/crm/v3/objects/{object_type}/search", search_body)

    # ========================================================================
    # BATCH ENDPOINTS
    # ========================================================================

    async def read_associations(self, from_type: str, to_type: str, ids: List[str]) -> List[Dict[str, Any]]:
        """
        POST /crm/v3/associations/{FROM}/{TO}/batch/read

        Returns:
            List of {"from": {"id"}, "to": [{"id"}, ...]}
        """
        data = await self._post(
            f"/crm/v3/associations/{from_type.upper()}/{to_type.upper()}/batch/read",
            {"inputs": [{"id": object_id} for object_id in ids]}
        )
        return data.get("results") or []

    async def batch_read(self, object_type: str, ids: List[str], properties: List[str]) -> List[Dict[str, Any]]:
        """
        POST /crm/v3/objects/{object_type}/batch/read

        Returns:
            List of {"id", "properties"}
        """
        data = await self._post(
            f"/crm/v3/objects/{object_type}/batch/read",
            {"inputs": [{"id": object_id} for object_id in ids], "properties": properties}
        )
        return data.get("results") or []
