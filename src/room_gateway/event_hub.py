from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable


def _now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


@dataclass(frozen=True)
class Subscription:
    queue: "asyncio.Queue[dict[str, Any]]"
    unsubscribe: Callable[[], Awaitable[None]]


class EventHub:
    """Fan-out of room events (results and soft warnings) to SSE subscribers."""

    def __init__(self, *, max_queue_size: int = 200) -> None:
        self._subscribers: set[asyncio.Queue[dict[str, Any]]] = set()
        self._max_queue_size = max_queue_size
        self._lock = asyncio.Lock()

    async def subscribe(self) -> Subscription:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._max_queue_size)
        async with self._lock:
            self._subscribers.add(queue)

        async def _unsubscribe() -> None:
            async with self._lock:
                self._subscribers.discard(queue)

        return Subscription(queue=queue, unsubscribe=_unsubscribe)

    async def publish(self, event: dict[str, Any]) -> None:
        async with self._lock:
            subscribers = list(self._subscribers)
        for queue in subscribers:
            # Slow consumers lose their oldest event.
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                pass

    async def publish_room_event(self, *, event_type: str, room_id: str, data: dict[str, Any] | None = None) -> None:
        await self.publish(
            {
                "ts": _now_iso(),
                "source": "room-gateway",
                "type": event_type,
                "room": {"id": room_id},
                "data": data or {},
            }
        )

    async def publish_warning(self, *, room_id: str, message: str) -> None:
        await self.publish_room_event(event_type="room.warning", room_id=room_id, data={"message": message})
