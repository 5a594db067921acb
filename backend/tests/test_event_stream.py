"""Tests for the bounded progress event stream."""

import asyncio

import pytest

from scrapbtc.exceptions import ConfigurationError, StreamClosedError
from scrapbtc.models import ProgressEvent, ProgressStatus
from scrapbtc.processor import EventStream


def event(height: int, status: ProgressStatus = ProgressStatus.PROCESSING) -> ProgressEvent:
    return ProgressEvent(status=status, height=height)


class TestEventStream:

    def test_capacity_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            EventStream(capacity=0)

    @pytest.mark.asyncio
    async def test_events_arrive_in_emit_order(self):
        stream = EventStream(capacity=4)
        for h in range(3):
            await stream.emit(event(h))
        stream.close()

        received = [e.height async for e in stream]
        assert received == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_emit_blocks_when_full(self):
        stream = EventStream(capacity=2)
        await stream.emit(event(1))
        await stream.emit(event(2))

        blocked = asyncio.create_task(stream.emit(event(3)))
        await asyncio.sleep(0.01)
        assert not blocked.done()
        assert len(stream) == 2

        assert (await stream.receive()).height == 1
        await asyncio.wait_for(blocked, timeout=1)
        assert len(stream) == 2

    @pytest.mark.asyncio
    async def test_close_never_blocks_on_full_stream(self):
        stream = EventStream(capacity=1)
        await stream.emit(event(1))
        stream.close()

        assert stream.closed
        assert len(stream) == 1
        assert (await stream.receive()).height == 1
        assert await stream.receive() is None
        assert await stream.receive() is None

    @pytest.mark.asyncio
    async def test_emit_after_close_raises(self):
        stream = EventStream(capacity=2)
        stream.close()
        with pytest.raises(StreamClosedError):
            await stream.emit(event(1))

    def test_close_twice_raises(self):
        stream = EventStream(capacity=2)
        stream.close()
        with pytest.raises(StreamClosedError):
            stream.close()

    @pytest.mark.asyncio
    async def test_receive_timeout(self):
        stream = EventStream(capacity=2)
        with pytest.raises(asyncio.TimeoutError):
            await stream.receive(timeout=0.01)

        # A timed-out receive does not lose later events
        await stream.emit(event(5))
        assert (await stream.receive(timeout=0.5)).height == 5

    @pytest.mark.asyncio
    async def test_many_producers_one_consumer(self):
        stream = EventStream(capacity=3)

        async def produce(worker: int):
            for i in range(20):
                await stream.emit(event(worker * 100 + i))

        async def consume():
            return [e.height async for e in stream]

        consumer = asyncio.create_task(consume())
        await asyncio.gather(*(produce(w) for w in range(4)))
        stream.close()
        heights = await consumer

        assert sorted(heights) == sorted(w * 100 + i for w in range(4) for i in range(20))
        # Per-producer order is preserved
        for w in range(4):
            mine = [h for h in heights if h // 100 == w]
            assert mine == sorted(mine)
