"""Fan-out registry pushing real-time messages to live subscribers."""

from __future__ import annotations

import asyncio
import logging
from threading import Lock
from typing import Awaitable, Protocol, Set

from app.schemas import RealtimeMessage

logger = logging.getLogger(__name__)


class SubscriberChannel(Protocol):
    """Anything that can deliver one text frame, e.g. a Starlette ``WebSocket``."""

    def send_text(self, data: str) -> Awaitable[None]: ...


class Broadcaster:
    """Best-effort publish/subscribe over a dynamically changing audience.

    Each broadcast snapshots the live set, so channels added or removed while a
    broadcast is in flight never disturb delivery to the others.
    """

    def __init__(self, send_timeout: float = 2.0) -> None:
        self.send_timeout = send_timeout
        self._channels: Set[SubscriberChannel] = set()
        self._lock = Lock()

    def register(self, channel: SubscriberChannel) -> None:
        with self._lock:
            self._channels.add(channel)
            count = len(self._channels)
        logger.info("Subscriber connected.", extra={"subscriber_count": count})

    def unregister(self, channel: SubscriberChannel) -> None:
        with self._lock:
            if channel not in self._channels:
                return
            self._channels.discard(channel)
            count = len(self._channels)
        logger.info("Subscriber removed.", extra={"subscriber_count": count})

    def count(self) -> int:
        with self._lock:
            return len(self._channels)

    async def broadcast(self, message: RealtimeMessage) -> int:
        """Send ``message`` to every registered channel; return successful sends."""
        payload = message.model_dump_json()
        with self._lock:
            targets = list(self._channels)
        if not targets:
            return 0

        results = await asyncio.gather(
            *(self._deliver(channel, payload) for channel in targets)
        )
        delivered = sum(1 for ok in results if ok)
        logger.debug(
            "Broadcast complete.",
            extra={
                "message_type": message.type.value,
                "subscriber_count": len(targets),
                "delivered": delivered,
            },
        )
        return delivered

    async def _deliver(self, channel: SubscriberChannel, payload: str) -> bool:
        try:
            await asyncio.wait_for(channel.send_text(payload), timeout=self.send_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - any transport failure drops the subscriber
            logger.warning(
                "Dropping subscriber after failed send.",
                extra={"reason": type(exc).__name__},
            )
            self.unregister(channel)
            return False
        return True
