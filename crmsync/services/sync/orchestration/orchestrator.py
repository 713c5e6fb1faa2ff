"""
HubSpot sync orchestration engine
Runs every entity pass for every configured account

Per account, sequentially:
1. Refresh credentials
2. Contacts → companies → meetings passes
3. Drain the action buffer (final flush is awaited)
4. Persist the account (tokens + watermarks)

A failing step is logged and recorded; later steps and accounts still run.
"""
import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

import httpx

from crmsync.core.config import settings
from crmsync.core.exceptions import ConfigurationError
from crmsync.models.schemas import (
    Account,
    AccountSyncResult,
    PassResult,
    PassState,
    SyncRunResult,
    utc_now,
)
from crmsync.services.sync.associations import AssociationResolver
from crmsync.services.sync.buffer import ActionBuffer, ActionSink
from crmsync.services.sync.database import SupabaseAccountStore
from crmsync.services.sync.oauth import CredentialManager
from crmsync.services.sync.orchestration.entity_sync import build_entity_jobs
from crmsync.services.sync.pagination import PagedSearchClient
from crmsync.services.sync.persistence import HttpActionSink
from crmsync.services.sync.providers.hubspot import HubSpotClient

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Top-level driver for one sync run."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        store: SupabaseAccountStore,
        sink: Optional[ActionSink] = None,
        api_base: Optional[str] = None,
        flush_threshold: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now
    ):
        self.http_client = http_client
        self.store = store
        self.sink = sink
        self.api_base = api_base or settings.hubspot_api_base
        self.flush_threshold = flush_threshold or settings.action_flush_threshold
        self.sleep = sleep
        self.clock = clock

    def _sink_for(self, account: Account) -> ActionSink:
        if self.sink is not None:
            return self.sink
        return HttpActionSink(self.http_client, account_api_key=account.api_key)

    async def _load_accounts(self, account_id: Optional[str]) -> List[Account]:
        if account_id:
            account = await self.store.find(account_id)
            return [account] if account else []
        return await self.store.list_accounts()

    async def run(self, account_id: Optional[str] = None) -> SyncRunResult:
        """
        Sync every configured account (or just `account_id`).

        Raises:
            ConfigurationError: If no account is configured
            Exception: If the account store is unreachable
        """
        logger.info("Starting data pull from HubSpot...")

        accounts = await self._load_accounts(account_id)
        if not accounts:
            raise ConfigurationError(
                f"No HubSpot account found{f' for hub {account_id}' if account_id else ''}. Exiting..."
            )

        results = []
        for account in accounts:
            results.append(await self.run_account(account))

        statuses = {result.status for result in results}
        if statuses == {"success"}:
            status = "success"
        elif statuses == {"error"}:
            status = "error"
        else:
            status = "partial_success"

        logger.info("=" * 80)
        logger.info(f"✅ All accounts processed ({len(results)}): {status}")
        logger.info("=" * 80)

        return SyncRunResult(
            status=status,
            accounts=results,
            errors=[error for result in results for error in result.errors],
        )

    async def run_account(self, account: Account) -> AccountSyncResult:
        """Run all passes for one account, then drain and persist."""
        logger.info(f"Processing HubSpot account: {account.external_id}")
        errors: List[str] = []
        passes: List[PassResult] = []

        credentials = CredentialManager(
            self.http_client, account, api_base=self.api_base, clock=self.clock, store=self.store
        )
        if not await credentials.ensure_valid(force=True):
            logger.warning(f"Token refresh failed or incomplete: {account.external_id}")
            errors.append(f"Token refresh failed for account {account.external_id}")

        client = HubSpotClient(self.http_client, credentials, api_base=self.api_base)
        pager = PagedSearchClient(client.search, credentials=credentials, sleep=self.sleep)
        resolver = AssociationResolver(client)
        buffer = ActionBuffer(self._sink_for(account), threshold=self.flush_threshold, label=account.external_id)

        for job in build_entity_jobs(pager, resolver, buffer, store=self.store, clock=self.clock):
            try:
                result = await job.run(account)
            except Exception as e:
                logger.error(f"Error processing {job.kind.value}: {e}", exc_info=True)
                errors.append(f"{job.kind.value}: {e}")
                passes.append(PassResult(kind=job.kind, status=PassState.FAILED, error=str(e)))
                continue

            passes.append(result)
            if result.status == PassState.FAILED:
                errors.append(f"{job.kind.value}: {result.error}")
            else:
                logger.info(f"{job.kind.value.capitalize()} processed.")

        try:
            await buffer.drain()
            logger.info(f"Queue drained for account: {account.external_id}")
        except Exception as e:
            logger.error(f"Error draining queue: {e}")
            errors.append(f"drain: {e}")

        if buffer.delivery_failures:
            errors.append(f"{buffer.delivery_failures} background sink deliveries failed")

        try:
            await self.store.save(account)
        except Exception as e:
            logger.error(f"Error saving account {account.external_id}: {e}")
            errors.append(f"save: {e}")

        succeeded = [p for p in passes if p.status == PassState.DONE]
        if not errors:
            status = "success"
        elif succeeded:
            status = "partial_success"
        else:
            status = "error"

        logger.info(f"Finished processing account: {account.external_id} ({status})")

        return AccountSyncResult(
            status=status,
            account_id=account.external_id,
            passes=passes,
            actions_flushed=buffer.flushed_count,
            actions_dropped=buffer.dropped_count,
            errors=errors,
        )
