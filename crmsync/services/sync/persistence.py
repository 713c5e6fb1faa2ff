"""
Action persistence
Delivers action batches to the analytics sink, with optional JSONL debug output
"""
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from crmsync.core.config import settings
from crmsync.core.exceptions import SinkDeliveryError
from crmsync.models.schemas import OutputAction

logger = logging.getLogger(__name__)


# ============================================================================
# JSONL DEBUGGING
# ============================================================================

async def append_jsonl(payloads: List[Dict[str, Any]], path: Optional[str] = None):
    """
    Append delivered actions to a JSONL file for debugging.

    Args:
        payloads: Serialized actions
        path: Output file (defaults to settings.jsonl_path)
    """
    if not settings.save_jsonl:
        return

    try:
        with open(path or settings.jsonl_path, "a") as f:
            for payload in payloads:
                f.write(json.dumps(payload) + "\n")
    except OSError as e:
        logger.error(f"Error writing to JSONL: {e}")


# ============================================================================
# ANALYTICS SINK
# ============================================================================

class HttpActionSink:
    """
    Posts action batches to the analytics ingestion endpoint.

    The sink contract is fire-and-forget: nothing is returned, and the
    ActionBuffer decides whether a delivery is awaited. Every batch that is
    not accepted, including one with no endpoint configured, raises
    SinkDeliveryError.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        account_api_key: Optional[str] = None
    ):
        self.http_client = http_client
        self.url = url or settings.sink_url
        self.api_key = api_key or settings.sink_api_key
        self.account_api_key = account_api_key

    async def deliver(self, actions: List[OutputAction]) -> None:
        if not actions:
            return

        payloads = [action.to_payload() for action in actions]
        await append_jsonl(payloads)

        if not self.url:
            raise SinkDeliveryError(
                f"Sink not configured (SINK_URL not set), {len(actions)} actions not delivered",
                batch_size=len(actions)
            )

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        body = {"apiKey": self.account_api_key, "actions": payloads}

        try:
            response = await self.http_client.post(self.url, json=body, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SinkDeliveryError(
                f"Sink rejected batch: {e.response.status_code} - {e.response.text[:200]}",
                batch_size=len(actions)
            ) from e
        except httpx.HTTPError as e:
            raise SinkDeliveryError(f"Sink delivery failed: {e}", batch_size=len(actions)) from e

        logger.info(f"📤 Delivered {len(actions)} actions to sink")
