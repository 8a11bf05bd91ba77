"""
Throttled outbound message delivery.

Services only call enqueue(); a single consumer task drains the queue in
FIFO order with a fixed delay between sends, so per-recipient order is
preserved. The queue lives in memory: anything still queued when the
process dies is lost.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field

import httpx

from chowk.config import settings

logger = logging.getLogger("chowk.notifications")


@dataclass
class OutboundMessage:
    phone: str
    text: str
    added_at: float = field(default_factory=time.time)


class LoggingTransport:
    """Transport used when no chat gateway is configured."""

    async def send(self, phone: str, text: str) -> None:
        logger.info("outbound message to %s: %s", phone, text[:100])

    async def close(self) -> None:
        pass


class HttpGatewayTransport:
    """Hands messages to the chat gateway that owns the WhatsApp session."""

    def __init__(self, url: str, token: str | None = None, timeout: float = 15.0, transport=None):
        headers = {"X-Gateway-Token": token} if token else {}
        self.url = url
        self._client = httpx.AsyncClient(timeout=timeout, headers=headers, transport=transport)

    async def send(self, phone: str, text: str) -> None:
        response = await self._client.post(self.url, json={"to": phone, "text": text})
        response.raise_for_status()

    async def close(self) -> None:
        await self._client.aclose()


class NotificationDispatcher:
    def __init__(self, transport=None, delay_seconds: float | None = None, maxsize: int | None = None):
        self.transport = transport or LoggingTransport()
        self.delay_seconds = settings.message_delay_seconds if delay_seconds is None else delay_seconds
        self._queue: asyncio.Queue[OutboundMessage] = asyncio.Queue(
            maxsize=settings.notification_queue_size if maxsize is None else maxsize
        )
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self.is_processing = False
        self.sent_count = 0
        self.failed_count = 0
        self.dropped_count = 0

    def enqueue(self, phone: str, text: str) -> bool:
        """Queue a message; never blocks. Returns False if the queue is full."""
        item = OutboundMessage(phone=phone, text=text)
        if self._loop is not None and self._loop.is_running() and not self._on_loop_thread():
            self._loop.call_soon_threadsafe(self._put, item)
            return True
        return self._put(item)

    def status(self) -> dict:
        return {
            "queue_length": self._queue.qsize(),
            "is_processing": self.is_processing,
            "sent": self.sent_count,
            "failed": self.failed_count,
            "dropped": self.dropped_count,
        }

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._loop = asyncio.get_running_loop()
            self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self.transport.close()

    async def run(self) -> None:
        while True:
            item = await self._queue.get()
            self.is_processing = True
            try:
                await self.transport.send(item.phone, item.text)
                self.sent_count += 1
            except Exception:
                # Delivery retries belong to the gateway; one failed send must
                # not stall the rest of the queue.
                self.failed_count += 1
                logger.exception("failed to deliver message to %s", item.phone)
            finally:
                self._queue.task_done()
                self.is_processing = not self._queue.empty()
            if not self._queue.empty():
                await asyncio.sleep(self.delay_seconds)

    def _put(self, item: OutboundMessage) -> bool:
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            self.dropped_count += 1
            logger.warning("notification queue full, dropping message to %s", item.phone)
            return False
        logger.debug("enqueued message to %s (queue length %d)", item.phone, self._queue.qsize())
        return True

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False


def build_transport():
    if settings.gateway_url:
        return HttpGatewayTransport(settings.gateway_url, settings.gateway_token)
    return LoggingTransport()


dispatcher = NotificationDispatcher()
