"""
Bounded hand-off from a blocking worker thread to an asyncio consumer.

The clone worker reads git's stderr on a thread; the asyncio side turns
the decoded events into notifications. The channel never holds more
than `capacity` undelivered items. When it is full, send() blocks the
worker, which stops reading stderr until the consumer catches up, and
git in turn blocks on its pipe. Nothing is dropped or reordered.

A consumer that stops listening calls close(); a blocked send() notices
within `poll_interval` seconds and returns False.
"""

import asyncio
import threading
from typing import Any, AsyncIterator, Generic, TypeVar

T = TypeVar("T")

_END = object()


class ChannelClosed(Exception):
    """Raised by receive() after the end-of-stream marker."""


class ProgressChannel(Generic[T]):
    """
    Single-producer, single-consumer channel.

    Example:
        channel = ProgressChannel(asyncio.get_running_loop(), capacity=64)
        worker = loop.run_in_executor(pool, produce, channel)
        async for event in channel:
            handle(event)
        await worker
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        capacity: int = 64,
        poll_interval: float = 0.25,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue()
        self._slots = threading.BoundedSemaphore(capacity)
        self._closed = threading.Event()
        self._finished = False
        self.capacity = capacity
        self.poll_interval = poll_interval

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send(self, item: T) -> bool:
        """
        Deliver an item from the worker thread, waiting for a free slot.

        Returns:
            True once queued, False if the consumer closed the channel
        """
        while not self._closed.is_set():
            if self._slots.acquire(timeout=self.poll_interval):
                if self._closed.is_set():
                    self._slots.release()
                    return False
                self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
                return True
        return False

    def finish(self) -> None:
        """Post the end-of-stream marker. Safe to call more than once."""
        if self._finished:
            return
        self._finished = True
        self._loop.call_soon_threadsafe(self._queue.put_nowait, _END)

    def close(self) -> None:
        """Stop accepting items; wakes a blocked sender."""
        self._closed.set()

    async def receive(self) -> T:
        """
        Wait for the next item.

        Raises:
            ChannelClosed: the producer has finished
        """
        item: Any = await self._queue.get()
        if item is _END:
            raise ChannelClosed()
        self._slots.release()
        return item

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            try:
                yield await self.receive()
            except ChannelClosed:
                return
