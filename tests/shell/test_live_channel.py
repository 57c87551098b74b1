"""Tests for the in-process live channel hub."""

import asyncio
import threading

from src.shell.live_channel import LiveChannelHub


class TestPush:
    """Tests for LiveChannelHub.push()."""

    def test_push_without_connection(self):
        hub = LiveChannelHub()
        assert hub.push("bob", {"n": 1}) is False

    def test_push_to_subscriber_in_order(self):
        async def scenario():
            hub = LiveChannelHub()
            async with hub.subscribe("bob") as queue:
                assert hub.is_connected("bob")
                for i in range(3):
                    assert hub.push("bob", {"n": i}) is True
                return [queue.get_nowait() for _ in range(3)]

        assert asyncio.run(scenario()) == [{"n": 0}, {"n": 1}, {"n": 2}]

    def test_unsubscribed_after_block(self):
        async def scenario():
            hub = LiveChannelHub()
            async with hub.subscribe("bob"):
                pass
            return hub

        hub = asyncio.run(scenario())
        assert hub.is_connected("bob") is False
        assert hub.connection_count("bob") == 0

    def test_every_connection_receives(self):
        async def scenario():
            hub = LiveChannelHub()
            async with hub.subscribe("bob") as first, hub.subscribe("bob") as second:
                assert hub.connection_count("bob") == 2
                hub.push("bob", {"n": 1})
                return first.get_nowait(), second.get_nowait()

        assert asyncio.run(scenario()) == ({"n": 1}, {"n": 1})

    def test_full_queue_drops_push(self):
        async def scenario():
            hub = LiveChannelHub(queue_size=1)
            async with hub.subscribe("bob") as queue:
                assert hub.push("bob", {"n": 1}) is True
                assert hub.push("bob", {"n": 2}) is False
                return queue.qsize()

        assert asyncio.run(scenario()) == 1

    def test_push_from_worker_thread(self):
        async def scenario():
            hub = LiveChannelHub()
            async with hub.subscribe("bob") as queue:
                result = {}
                worker = threading.Thread(target=lambda: result.update(ok=hub.push("bob", {"n": 7})))
                worker.start()
                await asyncio.to_thread(worker.join)
                payload = await asyncio.wait_for(queue.get(), timeout=1)
                return result["ok"], payload

        assert asyncio.run(scenario()) == (True, {"n": 7})


class TestRelay:
    """Tests for LiveChannelHub.relay()."""

    def test_relays_until_closed(self):
        async def scenario():
            hub = LiveChannelHub()
            sent = []
            closed = asyncio.Event()

            async def send(payload):
                sent.append(payload)
                if len(sent) == 2:
                    closed.set()

            relay = asyncio.create_task(hub.relay("bob", send, closed.wait))
            while not hub.is_connected("bob"):
                await asyncio.sleep(0)
            hub.push("bob", {"n": 1})
            hub.push("bob", {"n": 2})
            await asyncio.wait_for(relay, timeout=1)
            return sent, hub.is_connected("bob")

        sent, connected = asyncio.run(scenario())
        assert sent == [{"n": 1}, {"n": 2}]
        assert connected is False

    def test_send_failure_does_not_raise(self):
        async def scenario():
            hub = LiveChannelHub()
            closed = asyncio.Event()

            async def send(payload):
                closed.set()
                raise ConnectionError("socket closed")

            relay = asyncio.create_task(hub.relay("bob", send, closed.wait))
            while not hub.is_connected("bob"):
                await asyncio.sleep(0)
            hub.push("bob", {"n": 1})
            await asyncio.wait_for(relay, timeout=1)
            return hub.is_connected("bob")

        assert asyncio.run(scenario()) is False
