"""Tests for the ActionBuffer."""

import asyncio

import pytest

from crmsync.models.schemas import OutputAction
from crmsync.services.sync.buffer import ActionBuffer
from tests.conftest import T0, RecordingSink


def action(n):
    return OutputAction(action_name="Contact Updated", action_date=T0, identity=f"user{n}@example.com")


class SlowSink(RecordingSink):
    """Sink whose deliveries only complete after a few loop iterations."""

    async def deliver(self, actions):
        for _ in range(3):
            await asyncio.sleep(0)
        await super().deliver(actions)


class TestPush:
    """Tests for threshold-triggered flushing."""

    @pytest.mark.asyncio
    async def test_no_flush_at_threshold(self, recording_sink):
        buffer = ActionBuffer(recording_sink, threshold=3)
        for n in range(3):
            buffer.push(action(n))

        assert len(buffer) == 3
        assert buffer.batches_flushed == 0

    @pytest.mark.asyncio
    async def test_flushes_once_threshold_is_exceeded(self, recording_sink):
        buffer = ActionBuffer(recording_sink, threshold=3)
        for n in range(4):
            buffer.push(action(n))

        assert len(buffer) == 0
        assert buffer.batches_flushed == 1

        await buffer.drain()
        assert [len(batch) for batch in recording_sink.batches] == [4]

    @pytest.mark.asyncio
    async def test_pending_never_exceeds_threshold_plus_one(self, recording_sink):
        buffer = ActionBuffer(recording_sink, threshold=5)
        peak = 0
        for n in range(23):
            buffer.push(action(n))
            peak = max(peak, len(buffer))
        await buffer.drain()

        assert peak <= 5
        assert len(recording_sink.actions) == 23


class TestDrain:
    """Tests for ActionBuffer.drain."""

    @pytest.mark.asyncio
    async def test_every_action_delivered_exactly_once(self):
        sink = SlowSink()
        buffer = ActionBuffer(sink, threshold=10)
        for n in range(47):
            buffer.push(action(n))

        final = await buffer.drain()

        identities = [a.identity for a in sink.actions]
        assert sorted(identities) == sorted(f"user{n}@example.com" for n in range(47))
        assert len(set(identities)) == 47
        assert final == 47 - 44
        assert buffer.flushed_count == 47

    @pytest.mark.asyncio
    async def test_drain_on_empty_buffer_delivers_nothing(self, recording_sink):
        buffer = ActionBuffer(recording_sink, threshold=10)

        assert await buffer.drain() == 0
        assert recording_sink.batches == []

    @pytest.mark.asyncio
    async def test_background_failure_is_counted_not_raised(self):
        sink = RecordingSink(fail=True)
        buffer = ActionBuffer(sink, threshold=1)
        buffer.push(action(1))
        buffer.push(action(2))

        await buffer.drain()

        assert buffer.delivery_failures == 1
        assert buffer.flushed_count == 0
        assert buffer.dropped_count == 2

    @pytest.mark.asyncio
    async def test_final_flush_failure_propagates(self):
        buffer = ActionBuffer(RecordingSink(fail=True), threshold=10)
        buffer.push(action(1))

        with pytest.raises(RuntimeError):
            await buffer.drain()

        assert buffer.flushed_count == 0
        assert buffer.dropped_count == 1
        assert buffer.delivery_failures == 0

    @pytest.mark.asyncio
    async def test_counts_only_accepted_batches_as_flushed(self):
        class RejectsLargeBatches(RecordingSink):
            async def deliver(self, actions):
                if len(actions) > 2:
                    raise RuntimeError("payload too large")
                await super().deliver(actions)

        sink = RejectsLargeBatches()
        buffer = ActionBuffer(sink, threshold=2)
        for n in range(5):
            buffer.push(action(n))

        await buffer.drain()

        assert buffer.dropped_count == 3
        assert buffer.flushed_count == 2
        assert buffer.flushed_count == len(sink.actions)
