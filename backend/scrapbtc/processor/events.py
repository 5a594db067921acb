"""Bounded progress event stream.

Many workers emit, one observer receives. Emitting blocks while the
stream holds ``capacity`` unread events, so a slow observer slows the
workers down instead of letting events pile up in memory.
"""

from __future__ import annotations

import asyncio

from scrapbtc.exceptions import ConfigurationError, StreamClosedError
from scrapbtc.models import ProgressEvent

_CLOSED = object()


class EventStream:
    """Multi-producer / single-consumer stream of ProgressEvents.

    Closing is non-blocking and happens exactly once; after the close
    marker has been received, ``receive`` keeps returning None.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ConfigurationError(f"event stream capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        # Unbounded queue + semaphore so the close marker never waits for room
        self._queue: asyncio.Queue = asyncio.Queue()
        self._slots = asyncio.Semaphore(capacity)
        self._closed = False
        self._drained = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        """Number of unread events."""
        return self._queue.qsize() - (1 if self._closed and not self._drained else 0)

    async def emit(self, event: ProgressEvent) -> None:
        """Send an event, waiting while the stream is full."""
        if self._closed:
            raise StreamClosedError(f"progress stream closed, dropped {event.status.value} event")
        await self._slots.acquire()
        if self._closed:
            self._slots.release()
            raise StreamClosedError(f"progress stream closed, dropped {event.status.value} event")
        self._queue.put_nowait(event)

    def close(self) -> None:
        """Mark the end of the run."""
        if self._closed:
            raise StreamClosedError("progress stream already closed")
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def receive(self, timeout: float | None = None) -> ProgressEvent | None:
        """Next event, or None once the stream is closed and drained.

        Raises:
            asyncio.TimeoutError: if no event arrives within ``timeout`` seconds
        """
        if self._drained:
            return None
        if timeout is None:
            item = await self._queue.get()
        else:
            item = await asyncio.wait_for(self._queue.get(), timeout)

        if item is _CLOSED:
            self._drained = True
            return None
        self._slots.release()
        return item

    def __aiter__(self) -> EventStream:
        return self

    async def __anext__(self) -> ProgressEvent:
        event = await self.receive()
        if event is None:
            raise StopAsyncIteration
        return event
