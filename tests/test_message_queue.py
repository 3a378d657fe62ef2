"""Tests for MessageQueue: FIFO single-flight processing with backoff retry."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, call, patch

import pytest

from orderbot.handler.message_queue import MessageQueue
from orderbot.handler.messages import InboundMessage


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def queue():
    return MessageQueue(max_retries=3, base_delay=1.0)


@pytest.fixture
def no_sleep():
    with patch("orderbot.handler.message_queue.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


def _make_inbound(message_id: str, text: str = "hello") -> InboundMessage:
    return InboundMessage(message_id=message_id, sender_id="61400000001", content=text)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestProcessing:
    @pytest.mark.asyncio
    async def test_enqueue_starts_processing_immediately(self, queue):
        processor = AsyncMock()

        queue.enqueue(_make_inbound("m1"), processor)

        assert queue.is_queue_processing() is True
        assert queue.get_queue_length() == 1
        await queue.join()
        processor.assert_awaited_once()
        assert queue.is_queue_processing() is False
        assert queue.get_queue_length() == 0

    @pytest.mark.asyncio
    async def test_each_message_processed_once_in_fifo_order(self, queue):
        seen: list[str] = []

        async def processor(msg: InboundMessage) -> None:
            seen.append(msg.message_id)

        for mid in ("m1", "m2", "m3"):
            queue.enqueue(_make_inbound(mid), processor)
        await queue.join()

        assert seen == ["m1", "m2", "m3"]

    @pytest.mark.asyncio
    async def test_enqueue_never_raises_for_processor_errors(self, queue, no_sleep):
        processor = AsyncMock(side_effect=ValueError("boom"))

        queue.enqueue(_make_inbound("m1"), processor)
        await queue.join()

        assert queue.get_queue_length() == 0

    @pytest.mark.asyncio
    async def test_enqueue_after_drain_restarts_loop(self, queue):
        processor = AsyncMock()

        queue.enqueue(_make_inbound("m1"), processor)
        await queue.join()
        queue.enqueue(_make_inbound("m2"), processor)
        await queue.join()

        assert processor.await_count == 2


class TestRetry:
    @pytest.mark.asyncio
    async def test_always_failing_processor_called_one_plus_max_retries(self, queue, no_sleep):
        processor = AsyncMock(side_effect=RuntimeError("down"))

        queue.enqueue(_make_inbound("m1"), processor)
        await queue.join()

        assert processor.await_count == 4
        assert queue.get_queue_length() == 0

    @pytest.mark.asyncio
    async def test_backoff_delays_double(self, queue, no_sleep):
        processor = AsyncMock(side_effect=RuntimeError("down"))

        queue.enqueue(_make_inbound("m1"), processor)
        await queue.join()

        assert no_sleep.await_args_list == [call(1.0), call(2.0), call(4.0)]

    def test_calculate_retry_delay(self):
        q = MessageQueue(base_delay=0.5)
        assert [q.calculate_retry_delay(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]

    @pytest.mark.asyncio
    async def test_failing_head_blocks_followers_until_it_succeeds(self, queue, no_sleep):
        seen: list[str] = []
        failures = {"m1": 2}

        async def processor(msg: InboundMessage) -> None:
            seen.append(msg.message_id)
            if failures.get(msg.message_id, 0) > 0:
                failures[msg.message_id] -= 1
                raise RuntimeError("transient")

        queue.enqueue(_make_inbound("m1"), processor)
        queue.enqueue(_make_inbound("m2"), processor)
        await queue.join()

        assert seen == ["m1", "m1", "m1", "m2"]

    @pytest.mark.asyncio
    async def test_dropped_message_reported_and_next_processed(self, no_sleep):
        on_drop = MagicMock()
        q = MessageQueue(max_retries=1, base_delay=1.0, on_drop=on_drop)
        ok = AsyncMock()
        bad = AsyncMock(side_effect=RuntimeError("down"))

        q.enqueue(_make_inbound("m1"), bad)
        q.enqueue(_make_inbound("m2"), ok)
        await q.join()

        assert bad.await_count == 2
        on_drop.assert_called_once()
        assert on_drop.call_args.args[0].message_id == "m1"
        ok.assert_awaited_once()


class TestClear:
    @pytest.mark.asyncio
    async def test_clear_queue_drops_items_and_resets_flag(self, queue):
        release = asyncio.Event()

        async def slow(msg: InboundMessage) -> None:
            await release.wait()

        queue.enqueue(_make_inbound("m1"), slow)
        queue.enqueue(_make_inbound("m2"), slow)
        await asyncio.sleep(0)

        queue.clear_queue()

        assert queue.get_queue_length() == 0
        assert queue.is_queue_processing() is False

    @pytest.mark.asyncio
    async def test_queue_usable_after_clear(self, queue):
        release = asyncio.Event()

        async def slow(msg: InboundMessage) -> None:
            await release.wait()

        queue.enqueue(_make_inbound("m1"), slow)
        await asyncio.sleep(0)
        queue.clear_queue()

        processor = AsyncMock()
        queue.enqueue(_make_inbound("m2"), processor)
        await queue.join()

        processor.assert_awaited_once()
