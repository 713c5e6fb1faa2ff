"""
Paged HubSpot search
Resumable traversal of one modified-since window, with retry and window narrowing

The search API's `after` cursor stops working past a fixed depth. When a
page's next cursor reaches that depth, the cursor restarts from the
beginning and the window start moves up to the last modified time seen,
so result sets of any size stay reachable.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from crmsync.core.config import settings
from crmsync.core.exceptions import FatalPassError
from crmsync.core.retry import fetch_with_retry
from crmsync.models.schemas import RemoteRecord, SyncCursor, parse_timestamp, to_epoch_ms
from crmsync.services.sync.oauth import CredentialManager

logger = logging.getLogger(__name__)

SearchFn = Callable[[str, Dict[str, Any]], Awaitable[Dict[str, Any]]]


@dataclass
class SearchPage:
    """One page of search results plus the cursor state that produced it."""
    records: List[RemoteRecord]
    after: Optional[str]
    window_start: Optional[datetime]
    window_reset: bool = False
    next_after: Optional[str] = None


def build_search_body(
    cursor: SyncCursor,
    properties: List[str],
    modified_property: str,
    limit: int
) -> Dict[str, Any]:
    """
    Search request for the cursor's window: modified >= window_start and <= window_end,
    ascending by modified time.
    """
    filters = []
    if cursor.window_start is not None:
        filters.append({"propertyName": modified_property, "operator": "GTE", "value": str(to_epoch_ms(cursor.window_start))})
    filters.append({"propertyName": modified_property, "operator": "LTE", "value": str(to_epoch_ms(cursor.window_end))})

    body: Dict[str, Any] = {
        "filterGroups": [{"filters": filters}],
        "sorts": [{"propertyName": modified_property, "direction": "ASCENDING"}],
        "properties": properties,
        "limit": limit,
    }
    if cursor.after is not None:
        body["after"] = cursor.after
    return body


def record_modified_at(record: RemoteRecord, modified_property: str) -> Optional[datetime]:
    """Last-modified time of a record: the filter property if returned, else updatedAt."""
    value = parse_timestamp(record.prop(modified_property))
    return value or record.updated_at


class PagedSearchClient:
    """
    Runs one logical paginated search per pass.

    The search function is injected (HubSpotClient.search in production),
    so the same retry and narrowing policy covers every object type.
    """

    def __init__(
        self,
        search: SearchFn,
        credentials: Optional[CredentialManager] = None,
        page_limit: Optional[int] = None,
        cursor_depth_limit: Optional[int] = None,
        max_retries: Optional[int] = None,
        backoff_base_ms: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.search = search
        self.credentials = credentials
        self.page_limit = page_limit or settings.search_page_limit
        self.cursor_depth_limit = cursor_depth_limit or settings.cursor_depth_limit
        self.max_retries = max_retries if max_retries is not None else settings.fetch_max_retries
        self.backoff_base_ms = backoff_base_ms if backoff_base_ms is not None else settings.fetch_backoff_base_ms
        self.sleep = sleep

    async def _refresh_if_expired(self) -> None:
        if self.credentials is not None and self.credentials.is_expired():
            logger.info("Token past expiry, refreshing before retry")
            await self.credentials.refresh()

    def _cursor_exhausted(self, next_after: str) -> bool:
        try:
            return int(next_after) >= self.cursor_depth_limit
        except (TypeError, ValueError):
            return False

    async def fetch_page(self, object_type: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """One search request under the shared retry policy."""
        return await fetch_with_retry(
            lambda: self.search(object_type, body),
            description=f"{object_type} page (after={body.get('after')})",
            max_retries=self.max_retries,
            base_delay_ms=self.backoff_base_ms,
            before_retry=self._refresh_if_expired,
            sleep=self.sleep,
        )

    async def iter_pages(
        self,
        object_type: str,
        window_start: Optional[datetime],
        now: datetime,
        properties: List[str],
        modified_property: str
    ) -> AsyncIterator[SearchPage]:
        """
        Yield every page of records modified in [window_start, now].

        Args:
            object_type: HubSpot object type ("companies", "contacts", "meetings")
            window_start: Lower bound (the account watermark), None for a full sync
            now: Upper bound, captured once by the caller at pass start
            properties: Properties to request
            modified_property: Last-modified property used for filter and sort

        Raises:
            FatalPassError: Retries exhausted, or the window cannot be narrowed
        """
        cursor = SyncCursor(window_start=window_start, window_end=now)

        while True:
            body = build_search_body(cursor, properties, modified_property, self.page_limit)
            data = await self.fetch_page(object_type, body)

            raw_results = data.get("results") or []
            records = [RemoteRecord.model_validate(item) for item in raw_results]
            next_after = ((data.get("paging") or {}).get("next") or {}).get("after")

            page = SearchPage(
                records=records,
                after=cursor.after,
                window_start=cursor.window_start,
                next_after=str(next_after) if next_after else None,
            )
            logger.info(f"Fetched {object_type} batch: {len(records)} (after={cursor.after})")

            if not next_after:
                yield page
                return

            if self._cursor_exhausted(str(next_after)):
                last_modified = record_modified_at(records[-1], modified_property) if records else None
                if last_modified is None or not cursor.narrow(last_modified):
                    raise FatalPassError(
                        f"Cannot narrow {object_type} window past {cursor.window_start}: "
                        f"cursor depth {self.cursor_depth_limit} reached without newer records",
                        kind=object_type
                    )
                page.window_reset = True
                logger.info(f"↪️  {object_type} cursor depth reached, window now starts at {cursor.window_start.isoformat()}")
            else:
                cursor.after = str(next_after)

            yield page
