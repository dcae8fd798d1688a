from __future__ import annotations

import asyncio
from typing import Callable, Generic, List, Optional, TypeVar

from pagestreamer.utils.logger import logger

T = TypeVar("T")

_END = object()


class Subscription(Generic[T]):
    """
    One subscriber's ordered view of a :class:`BroadcastChannel`.

    Notes:
    - Items are buffered from the moment of subscription, so nothing published
      between `subscribe()` and the first `get()` is lost.
    - When `until(item)` is true the item is still delivered, then the
      subscription ends.
    """

    def __init__(
        self,
        channel: "BroadcastChannel[T]",
        *,
        until: Optional[Callable[[T], bool]] = None,
    ) -> None:
        self._channel = channel
        self._until = until
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _push(self, item: T) -> None:
        if self._closed:
            return
        self._queue.put_nowait(item)
        if self._until is not None:
            try:
                finished = bool(self._until(item))
            except Exception as exc:
                logger.warning("Subscription predicate failed: %s", exc)
                finished = False
            if finished:
                self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_END)
        self._channel._detach(self)

    async def get(self, *, timeout_s: Optional[float] = None) -> T:
        """Return the next item; raise `StopAsyncIteration` once the stream ended."""
        if timeout_s is None:
            item = await self._queue.get()
        else:
            item = await asyncio.wait_for(self._queue.get(), timeout=timeout_s)
        if item is _END:
            # keep the marker so later readers also stop
            self._queue.put_nowait(_END)
            raise StopAsyncIteration
        return item

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        return await self.get()

    @property
    def pending(self) -> int:
        return self._queue.qsize()


class BroadcastChannel(Generic[T]):
    """Multi-subscriber, read-only view over items published by a single owner."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._subscribers: List[Subscription[T]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(
        self, *, until: Optional[Callable[[T], bool]] = None
    ) -> Subscription[T]:
        sub: Subscription[T] = Subscription(self, until=until)
        if self._closed:
            sub.close()
            return sub
        self._subscribers.append(sub)
        return sub

    def publish(self, item: T) -> None:
        if self._closed:
            logger.debug("Dropping item published on closed channel %s", self.name)
            return
        for sub in list(self._subscribers):
            sub._push(item)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for sub in list(self._subscribers):
            sub.close()
        self._subscribers.clear()

    def _detach(self, sub: Subscription[T]) -> None:
        try:
            self._subscribers.remove(sub)
        except ValueError:
            pass
