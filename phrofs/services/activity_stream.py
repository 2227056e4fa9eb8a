"""
services/activity_stream.py
---------------------------
Fan-out broadcaster behind the admin activity stream (Server-Sent Events).

Each connected admin client gets its own asyncio.Queue; every published
event is copied into all of them. A full queue drops the event for that
slow consumer only.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from phrofs.core.logging import get_logger

logger = get_logger(__name__)

KEEPALIVE_SECONDS = 15.0


class ActivityBroadcaster:

    def __init__(self, max_queue_size: int = 100) -> None:
        self._queues: list[asyncio.Queue] = []
        self._max_queue_size = max_queue_size

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._queues.append(queue)
        logger.debug("Activity subscriber added", total=len(self._queues))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._queues:
            self._queues.remove(queue)
            logger.debug("Activity subscriber removed", total=len(self._queues))

    def publish(self, event_type: str, school: str, data: dict[str, Any]) -> int:
        """
        Copy an event to every subscriber.

        Returns:
            Number of subscribers that received it.
        """
        payload = {
            "type": event_type,
            "school": school,
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        delivered = 0
        for queue in list(self._queues):
            try:
                queue.put_nowait(payload)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Activity subscriber queue full, event dropped", type=event_type)
        return delivered


def format_sse(payload: dict[str, Any]) -> str:
    return f"event: {payload['type']}\ndata: {json.dumps(payload, default=str)}\n\n"


async def stream_events(
    broadcaster: ActivityBroadcaster,
    is_disconnected,
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """Yield SSE frames until the client disconnects."""
    queue = broadcaster.subscribe()
    try:
        yield ": connected\n\n"
        while not await is_disconnected():
            try:
                payload = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            yield format_sse(payload)
    finally:
        broadcaster.unsubscribe(queue)


activity_broadcaster = ActivityBroadcaster()


def get_broadcaster() -> ActivityBroadcaster:
    return activity_broadcaster
