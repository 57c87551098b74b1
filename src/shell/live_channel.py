"""Live Channel Hub - Imperative Shell.

In-process registry of connected recipients. Each connection owns one
bounded asyncio.Queue; pushing never waits, so a slow recipient cannot
hold up delivery to anyone else, and one recipient's events arrive in
the order they were pushed.

push() may be called from worker threads (sync API routes run in a
thread pool); the queue is then fed through its event loop with
call_soon_threadsafe.
"""

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any


logger = logging.getLogger(__name__)


DEFAULT_QUEUE_SIZE = 100


@dataclass(eq=False)
class _Subscription:
    queue: asyncio.Queue
    loop: asyncio.AbstractEventLoop


def _offer(recipient_id: str, queue: asyncio.Queue, payload: dict[str, Any]) -> bool:
    try:
        queue.put_nowait(payload)
        return True
    except asyncio.QueueFull:
        logger.warning("Live queue full for %s, dropping push", recipient_id)
        return False


def _on_loop(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


class LiveChannelHub:
    """Connected recipients and their pending live events."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._subscriptions: dict[str, list[_Subscription]] = {}
        self._lock = threading.Lock()

    def is_connected(self, recipient_id: str) -> bool:
        with self._lock:
            return bool(self._subscriptions.get(recipient_id))

    def connection_count(self, recipient_id: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(recipient_id, ()))

    def push(self, recipient_id: str, payload: dict[str, Any]) -> bool:
        """Queue a payload on every connection the recipient has open.

        Args:
            recipient_id: User to deliver to
            payload: JSON-serializable event

        Returns:
            True if at least one connection accepted the payload
        """
        with self._lock:
            subscriptions = list(self._subscriptions.get(recipient_id, ()))

        if not subscriptions:
            return False

        accepted = False
        for subscription in subscriptions:
            if _on_loop(subscription.loop):
                accepted = _offer(recipient_id, subscription.queue, payload) or accepted
                continue
            try:
                subscription.loop.call_soon_threadsafe(
                    _offer, recipient_id, subscription.queue, payload,
                )
                accepted = True
            except RuntimeError as e:
                logger.warning("Live connection for %s is gone: %s", recipient_id, str(e))

        return accepted

    @asynccontextmanager
    async def subscribe(self, recipient_id: str) -> AsyncIterator[asyncio.Queue]:
        """Register a connection for the lifetime of the block.

        Yields:
            The queue this connection receives payloads on
        """
        subscription = _Subscription(
            queue=asyncio.Queue(maxsize=self.queue_size),
            loop=asyncio.get_running_loop(),
        )

        with self._lock:
            self._subscriptions.setdefault(recipient_id, []).append(subscription)
        logger.info("Live channel opened for %s", recipient_id)

        try:
            yield subscription.queue
        finally:
            with self._lock:
                remaining = [
                    s for s in self._subscriptions.get(recipient_id, ()) if s is not subscription
                ]
                if remaining:
                    self._subscriptions[recipient_id] = remaining
                else:
                    self._subscriptions.pop(recipient_id, None)
            logger.info("Live channel closed for %s", recipient_id)

    async def relay(
        self,
        recipient_id: str,
        send: Callable[[dict[str, Any]], Awaitable[None]],
        wait_closed: Callable[[], Awaitable[None]],
    ) -> None:
        """Forward queued payloads to send until wait_closed returns.

        The forwarding task and the subscription both belong to this
        call and are gone when it returns.

        Args:
            recipient_id: User the connection belongs to
            send: Delivers one payload to the client
            wait_closed: Returns once the client has gone away
        """
        async with self.subscribe(recipient_id) as queue:
            async with asyncio.TaskGroup() as tg:
                forwarder = tg.create_task(self._forward(recipient_id, queue, send))
                await wait_closed()
                forwarder.cancel()

    @staticmethod
    async def _forward(
        recipient_id: str,
        queue: asyncio.Queue,
        send: Callable[[dict[str, Any]], Awaitable[None]],
    ) -> None:
        while True:
            payload = await queue.get()
            try:
                await send(payload)
            except Exception as e:
                logger.warning("Live push to %s failed: %s", recipient_id, str(e))
                return
