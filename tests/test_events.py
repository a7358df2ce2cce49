"""Tests for event channels."""

import asyncio

import pytest

from crestron_discovery.events import EventChannel


class TestEventChannel:
    """Tests for EventChannel publish/subscribe."""

    @pytest.mark.asyncio
    async def test_sync_and_async_subscribers(self):
        """Both plain and coroutine callbacks receive events in order."""
        channel = EventChannel("test")
        received = []

        def on_sync(event):
            received.append(("sync", event))

        async def on_async(event):
            received.append(("async", event))

        channel.subscribe(on_sync)
        channel.subscribe(on_async)

        await channel.publish(1)
        await channel.publish(2)

        assert received == [("sync", 1), ("async", 1), ("sync", 2), ("async", 2)]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        channel = EventChannel("test")
        received = []

        unsubscribe = channel.subscribe(received.append)
        assert channel.subscriber_count == 1

        unsubscribe()
        unsubscribe()
        await channel.publish("ignored")

        assert channel.subscriber_count == 0
        assert received == []

    @pytest.mark.asyncio
    async def test_failing_subscriber_isolated(self):
        """A subscriber that raises does not stop delivery to the others."""
        channel = EventChannel("test")
        received = []

        def broken(event):
            raise RuntimeError("boom")

        channel.subscribe(broken)
        channel.subscribe(received.append)

        await channel.publish("event")

        assert received == ["event"]

    @pytest.mark.asyncio
    async def test_listen(self):
        """listen() yields published events until closed."""
        channel = EventChannel("test")
        received = []

        async def consume():
            async for event in channel.listen():
                received.append(event)
                if len(received) == 2:
                    break

        consumer = asyncio.create_task(consume())
        while channel.subscriber_count == 0:
            await asyncio.sleep(0)

        await channel.publish("a")
        await channel.publish("b")
        await asyncio.wait_for(consumer, timeout=1)

        assert received == ["a", "b"]
