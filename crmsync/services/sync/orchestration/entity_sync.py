"""
Entity sync jobs
One incremental pass per HubSpot object type

Each pass:
1. Captures `now` and the account's watermark
2. Pages through records modified in [watermark, now]
3. Resolves associations for the page
4. Normalizes records into actions and pushes them onto the buffer
5. Commits `now` as the new watermark (only if every page succeeded)
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

from crmsync.core.exceptions import FatalPassError
from crmsync.models.schemas import (
    Account,
    EntityKind,
    OutputAction,
    PassResult,
    PassState,
    RemoteRecord,
    utc_now,
)
from crmsync.services.sync.actions import (
    COMPANY_PROPERTIES,
    CONTACT_PROPERTIES,
    MEETING_PROPERTIES,
    normalize_company,
    normalize_contact,
    normalize_meeting,
)
from crmsync.services.sync.associations import AssociationResolver
from crmsync.services.sync.buffer import ActionBuffer
from crmsync.services.sync.database import SupabaseAccountStore
from crmsync.services.sync.pagination import PagedSearchClient

logger = logging.getLogger(__name__)


class EntitySyncJob:
    """Base pass: subclasses pick the object type, properties, lookups and transform."""

    kind: EntityKind
    properties: List[str] = []
    modified_property: str = "hs_lastmodifieddate"

    def __init__(
        self,
        pager: PagedSearchClient,
        resolver: AssociationResolver,
        buffer: ActionBuffer,
        store: Optional[SupabaseAccountStore] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.pager = pager
        self.resolver = resolver
        self.buffer = buffer
        self.store = store
        self.clock = clock
        self.state = PassState.PENDING

    async def resolve(self, records: List[RemoteRecord]) -> Dict[str, Any]:
        """Association lookups for one page. Default: none."""
        return {}

    def transform(
        self,
        record: RemoteRecord,
        watermark: Optional[datetime],
        associations: Dict[str, Any]
    ) -> List[OutputAction]:
        raise NotImplementedError

    async def run(self, account: Account) -> PassResult:
        """
        Run one pass for `account`.

        Returns:
            PassResult with status DONE, or FAILED when fetching gave up
            (in which case the watermark is left untouched)
        """
        now = self.clock()
        watermark = account.watermark(self.kind)
        result = PassResult(kind=self.kind, status=PassState.PENDING)
        # a window reset starts at GTE the last modified time, so boundary records come back
        seen_ids: Set[str] = set()

        logger.info(
            f"🚀 Starting {self.kind.value} pass for account {account.external_id} "
            f"(since {watermark.isoformat() if watermark else 'beginning'})"
        )

        try:
            self.state = PassState.FETCHING
            async for page in self.pager.iter_pages(
                self.kind.value,
                window_start=watermark,
                now=now,
                properties=self.properties,
                modified_property=self.modified_property
            ):
                result.pages += 1
                result.records_fetched += len(page.records)
                if page.window_reset:
                    result.window_resets += 1

                records = [record for record in page.records if record.id not in seen_ids]
                result.records_repeated += len(page.records) - len(records)
                seen_ids.update(record.id for record in records)

                self.state = PassState.RESOLVING
                associations = await self.resolve(records)

                self.state = PassState.TRANSFORMING
                for record in records:
                    actions = self.transform(record, watermark, associations)
                    if not actions:
                        result.records_skipped += 1
                        continue
                    for action in actions:
                        self.buffer.push(action)
                        result.actions_emitted += 1

                self.state = PassState.FETCHING

        except FatalPassError as e:
            self.state = PassState.FAILED
            result.status = PassState.FAILED
            result.error = str(e)
            logger.error(f"❌ {self.kind.value} pass failed for account {account.external_id}: {e}")
            return result
        except Exception:
            self.state = PassState.FAILED
            raise

        self.state = PassState.COMMITTING
        account.commit_watermark(self.kind, now)
        result.watermark = now

        if self.store is not None:
            try:
                await self.store.save(account)
            except Exception as e:
                logger.warning(f"Could not save {self.kind.value} watermark for account {account.external_id} yet: {e}")

        self.state = PassState.DONE
        result.status = PassState.DONE

        logger.info(
            f"✅ {self.kind.value} pass complete for account {account.external_id}: "
            f"{result.records_fetched} fetched, {result.actions_emitted} actions, "
            f"{result.records_skipped} skipped, {result.pages} pages"
        )
        return result


# ============================================================================
# COMPANIES
# ============================================================================

class CompanySyncJob(EntitySyncJob):
    kind = EntityKind.COMPANIES
    properties = COMPANY_PROPERTIES
    modified_property = "hs_lastmodifieddate"

    def transform(self, record, watermark, associations):
        action = normalize_company(record, watermark)
        return [action] if action else []


# ============================================================================
# CONTACTS
# ============================================================================

class ContactSyncJob(EntitySyncJob):
    kind = EntityKind.CONTACTS
    properties = CONTACT_PROPERTIES
    modified_property = "lastmodifieddate"

    async def resolve(self, records):
        return await self.resolver.resolve_companies_for_contacts([record.id for record in records])

    def transform(self, record, watermark, associations):
        action = normalize_contact(record, watermark, company_id=associations.get(record.id))
        return [action] if action else []


# ============================================================================
# MEETINGS
# ============================================================================

class MeetingSyncJob(EntitySyncJob):
    kind = EntityKind.MEETINGS
    properties = MEETING_PROPERTIES
    modified_property = "hs_lastmodifieddate"

    async def resolve(self, records):
        return await self.resolver.resolve_meeting_attendees([record.id for record in records])

    def transform(self, record, watermark, associations):
        return normalize_meeting(record, watermark, associations.get(record.id, []))


def build_entity_jobs(
    pager: PagedSearchClient,
    resolver: AssociationResolver,
    buffer: ActionBuffer,
    store: Optional[SupabaseAccountStore] = None,
    clock: Callable[[], datetime] = utc_now
) -> List[EntitySyncJob]:
    """Jobs in run order: contacts, companies, meetings."""
    return [
        job_class(pager, resolver, buffer, store=store, clock=clock)
        for job_class in (ContactSyncJob, CompanySyncJob, MeetingSyncJob)
    ]
