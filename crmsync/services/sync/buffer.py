"""
Action buffer
Bounded in-memory batching of output actions in front of the analytics sink

Mid-run flushes are fire-and-forget background tasks. The final flush in
drain() is awaited, and drain() also waits for any background deliveries
still in flight, so the last batch of a run is not lost to process exit.
"""
import asyncio
import logging
from functools import partial
from typing import List, Optional, Protocol, Set

from crmsync.core.config import settings
from crmsync.models.schemas import OutputAction

logger = logging.getLogger(__name__)


class ActionSink(Protocol):
    async def deliver(self, actions: List[OutputAction]) -> None: ...


class ActionBuffer:
    """
    Accumulates OutputActions and hands them to the sink in batches.

    Once `pending` grows past `threshold`, the whole list is snapshotted,
    cleared, and delivered in the background without waiting or retrying.

    `flushed_count` only counts actions the sink accepted; actions in a
    rejected batch are counted in `dropped_count`.
    """

    def __init__(self, sink: ActionSink, threshold: Optional[int] = None, label: Optional[str] = None):
        self.sink = sink
        self.threshold = threshold or settings.action_flush_threshold
        self.label = label
        self.pending: List[OutputAction] = []

        self.flushed_count = 0
        self.dropped_count = 0
        self.batches_flushed = 0
        self.delivery_failures = 0
        self._inflight: Set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self.pending)

    def push(self, action: OutputAction) -> None:
        self.pending.append(action)

        if len(self.pending) > self.threshold:
            self._flush_in_background()

    def _take_pending(self) -> List[OutputAction]:
        snapshot = list(self.pending)
        self.pending.clear()
        self.batches_flushed += 1
        return snapshot

    def _record_delivery(self, count: int, error: Optional[BaseException]) -> None:
        if error is None:
            self.flushed_count += count
        else:
            self.dropped_count += count

    def _flush_in_background(self) -> None:
        snapshot = self._take_pending()
        logger.info(f"Flushing actions to sink: account={self.label} count={len(snapshot)}")

        task = asyncio.get_running_loop().create_task(self.sink.deliver(snapshot))
        self._inflight.add(task)
        task.add_done_callback(partial(self._on_delivery_done, len(snapshot)))

    def _on_delivery_done(self, count: int, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        error = asyncio.CancelledError() if task.cancelled() else task.exception()
        self._record_delivery(count, error)
        if error is not None:
            self.delivery_failures += 1
            logger.error(f"❌ Background sink delivery failed for account {self.label}: {error}")

    async def drain(self) -> int:
        """
        Flush whatever is pending, regardless of threshold, and wait for
        background deliveries to settle.

        Returns:
            Number of actions handed to the sink by the final flush

        Raises:
            Whatever the sink raises for the final batch
        """
        final_count = 0
        try:
            if self.pending:
                snapshot = self._take_pending()
                final_count = len(snapshot)
                logger.info(f"Flushing remaining actions to sink: account={self.label} count={final_count}")
                try:
                    await self.sink.deliver(snapshot)
                except Exception as e:
                    self._record_delivery(final_count, e)
                    raise
                self._record_delivery(final_count, None)
        finally:
            if self._inflight:
                await asyncio.gather(*list(self._inflight), return_exceptions=True)

        return final_count
