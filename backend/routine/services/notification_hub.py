from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class TopicHub:
    """In-process fan-out of topic payloads to websocket subscribers."""

    def __init__(self) -> None:
        self._subscribers: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        self._open = True

    async def close(self) -> None:
        self._open = False
        async with self._lock:
            sockets = [socket for sockets in self._subscribers.values() for socket in sockets]
            self._subscribers.clear()
        for websocket in sockets:
            try:
                await websocket.close(code=1001)
            except Exception:  # pragma: no cover - network/runtime dependent
                logger.debug("Websocket already closed during hub shutdown", exc_info=True)

    async def subscribe(self, topic: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._subscribers[topic].add(websocket)

    async def unsubscribe(self, topic: str, websocket: WebSocket) -> None:
        async with self._lock:
            sockets = self._subscribers.get(topic)
            if not sockets:
                return
            sockets.discard(websocket)
            if not sockets:
                self._subscribers.pop(topic, None)

    async def subscriber_count(self, topic: str) -> int:
        async with self._lock:
            return len(self._subscribers.get(topic, set()))

    async def publish(self, topic: str, payload: dict) -> int:
        async with self._lock:
            sockets = list(self._subscribers.get(topic, set()))

        if not sockets:
            return 0

        delivered = 0
        stale: list[WebSocket] = []
        for websocket in sockets:
            try:
                await websocket.send_json(payload)
                delivered += 1
            except Exception:  # pragma: no cover - network/runtime dependent
                stale.append(websocket)

        if stale:
            async with self._lock:
                active = self._subscribers.get(topic, set())
                for socket in stale:
                    active.discard(socket)
                if not active:
                    self._subscribers.pop(topic, None)
            logger.debug("Removed %d stale websocket(s) from topic %s", len(stale), topic)
        return delivered


topic_hub = TopicHub()
