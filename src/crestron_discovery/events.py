"""
In-process event fan-out for discovered devices and activity ticks.

Subscribers register a callback (sync or async) or iterate over
``listen()``. Delivery order is the publish order; callers that need
serialized delivery across tasks hold their own lock around publish().
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import AsyncIterator, Awaitable, Callable, Generic, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")

Subscriber = Callable[[T], Union[None, Awaitable[None]]]


class EventChannel(Generic[T]):
    """Publish/subscribe channel for one kind of event."""

    def __init__(self, name: str):
        self.name = name
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback. Returns a function that removes it."""
        self._subscribers.append(callback)
        logger.debug(f"Subscribed {callback!r} to {self.name}")

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event: T) -> None:
        """Deliver an event to every subscriber, one after the other."""
        for callback in list(self._subscribers):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"{self.name} subscriber {callback!r} failed: {e}")

    async def listen(self) -> AsyncIterator[T]:
        """
        Iterate over events as they are published.

        The subscription lasts until the iterator is closed.
        """
        queue: asyncio.Queue[T] = asyncio.Queue()
        unsubscribe = self.subscribe(queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            unsubscribe()
