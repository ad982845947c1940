"""Single-producer broadcast stream with per-subscriber queues."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator
from types import TracebackType

logger = logging.getLogger("codeoba.broadcast")


class EventStream[T]:
    """Fan out published items to every current subscriber.

    Delivery is at-most-once and never replayed: a subscriber only sees
    items published after it subscribed. Each subscriber owns a bounded
    FIFO queue; when it is full the oldest item is dropped.

    Example::

        stream: EventStream[str] = EventStream("events")
        sub = stream.subscribe()
        stream.publish("hello")
        assert await sub.get() == "hello"
    """

    def __init__(self, name: str = "events", max_queue_size: int = 256) -> None:
        self._name = name
        self._max_queue_size = max_queue_size
        self._subscriptions: list[Subscription[T]] = []
        self._closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, max_queue_size: int | None = None) -> Subscription[T]:
        """Register a new subscriber that receives items published from now on."""
        sub = Subscription(self, max_queue_size or self._max_queue_size)
        if self._closed:
            sub._finish()
        else:
            self._subscriptions.append(sub)
        return sub

    def publish(self, item: T) -> int:
        """Deliver *item* to all current subscribers.

        Returns:
            The number of subscribers the item was queued for.
        """
        if self._closed:
            return 0
        for sub in self._subscriptions:
            sub._enqueue(item)
        return len(self._subscriptions)

    def close(self) -> None:
        """End the stream; subscribers drain what is queued and then stop."""
        self._closed = True
        for sub in self._subscriptions:
            sub._finish()
        self._subscriptions.clear()

    def _remove(self, sub: Subscription[T]) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)


class Subscription[T]:
    """A subscriber's view of an :class:`EventStream`.

    Iterate with ``async for`` or pull items with :meth:`get`. Closing the
    subscription (or using it as a context manager) detaches it from the
    stream.
    """

    def __init__(self, stream: EventStream[T], max_queue_size: int) -> None:
        self._stream = stream
        self._queue: deque[T] = deque()
        self._max_queue_size = max_queue_size
        self._ready = asyncio.Event()
        self._finished = False
        self.dropped = 0

    def _enqueue(self, item: T) -> None:
        if self._finished:
            return
        while len(self._queue) >= self._max_queue_size:
            self._queue.popleft()
            self.dropped += 1
            logger.warning(
                "Subscriber queue full on stream %s, dropped oldest item",
                self._stream.name,
            )
        self._queue.append(item)
        self._ready.set()

    def _finish(self) -> None:
        self._finished = True
        self._ready.set()

    @property
    def closed(self) -> bool:
        return self._finished

    def __len__(self) -> int:
        return len(self._queue)

    async def get(self, timeout: float | None = None) -> T:
        """Wait for the next item.

        Raises:
            StopAsyncIteration: If the subscription is closed and empty.
            TimeoutError: If *timeout* elapses first.
        """
        while not self._queue:
            if self._finished:
                raise StopAsyncIteration
            self._ready.clear()
            await asyncio.wait_for(self._ready.wait(), timeout=timeout)
        return self._queue.popleft()

    def get_nowait(self) -> T | None:
        """Return the next queued item, or ``None`` when nothing is queued."""
        if self._queue:
            return self._queue.popleft()
        return None

    def drain(self) -> list[T]:
        """Return and remove every queued item."""
        items = list(self._queue)
        self._queue.clear()
        return items

    def close(self) -> None:
        self._stream._remove(self)
        self._finish()

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        return await self.get()

    def __enter__(self) -> Subscription[T]:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
