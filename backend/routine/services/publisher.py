from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

import anyio
from anyio import from_thread

from routine.core.config import Settings
from routine.core.exceptions import NotificationError
from routine.services.notification_hub import TopicHub

logger = logging.getLogger(__name__)


class NotificationPublisher(ABC):
    """Client that delivers topic payloads to downstream consumers.

    Built once at startup, connected before the first request and closed on
    shutdown.
    """

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    def connect(self) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    @abstractmethod
    def publish(self, topic: str, payload: dict) -> bool:
        """Return True once the payload has been handed to the transport."""


class HubPublisher(NotificationPublisher):
    """Publishes to the in-process websocket hub from worker threads."""

    def __init__(
        self,
        hub: TopicHub,
        *,
        publish_timeout_seconds: float = 5.0,
        reconnect_attempts: int = 10,
        reconnect_delay_seconds: float = 5.0,
    ) -> None:
        self._hub = hub
        self._timeout = max(0.1, publish_timeout_seconds)
        self._reconnect_attempts = max(1, reconnect_attempts)
        self._reconnect_delay = max(0.0, reconnect_delay_seconds)
        self._connected = False

    @classmethod
    def from_settings(cls, hub: TopicHub, settings: Settings) -> "HubPublisher":
        return cls(
            hub,
            publish_timeout_seconds=settings.notification_publish_timeout_seconds,
            reconnect_attempts=settings.notification_reconnect_attempts,
            reconnect_delay_seconds=settings.notification_reconnect_delay_seconds,
        )

    @property
    def is_connected(self) -> bool:
        return self._connected and self._hub.is_open

    def connect(self) -> None:
        last_error: Exception | None = None
        for attempt in range(1, self._reconnect_attempts + 1):
            try:
                self._hub.open()
                self._connected = True
                logger.info("Notification publisher connected (attempt %d)", attempt)
                return
            except Exception as exc:  # pragma: no cover - transport dependent
                last_error = exc
                logger.warning("Notification publisher connect attempt %d failed: %s", attempt, exc)
                if attempt < self._reconnect_attempts and self._reconnect_delay > 0:
                    time.sleep(self._reconnect_delay)
        raise NotificationError(f"Unable to connect notification publisher: {last_error}")

    def close(self) -> None:
        self._connected = False
        logger.info("Notification publisher closed")

    def publish(self, topic: str, payload: dict) -> bool:
        if not self.is_connected:
            self.connect()
        try:
            delivered = from_thread.run(self._deliver, topic, payload)
        except Exception as exc:
            raise NotificationError(f"Unable to publish to topic {topic}: {exc}") from exc
        logger.debug("Published %s to %d subscriber(s) of %s", payload.get("event"), delivered, topic)
        return True

    async def _deliver(self, topic: str, payload: dict) -> int:
        with anyio.fail_after(self._timeout):
            return await self._hub.publish(topic, payload)
