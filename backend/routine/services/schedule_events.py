from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from routine.core.config import Settings
from routine.services.publisher import NotificationPublisher

logger = logging.getLogger(__name__)

SCHEDULE_CHANGED_EVENT = "teacher_routine.updated"


@dataclass(frozen=True)
class ScheduleChange:
    action: str
    teacher_ids: tuple[str, ...]
    program_code: str
    semester: int
    section: str | None = None
    day_index: int | None = None
    slot_index: int | None = None
    span_ids: tuple[str, ...] = field(default_factory=tuple)
    elective_group_id: str | None = None

    @classmethod
    def for_teachers(cls, action: str, *teacher_groups, **context) -> "ScheduleChange":
        merged: list[str] = []
        for group in teacher_groups:
            merged.extend(group or [])
        return cls(action=action, teacher_ids=tuple(dict.fromkeys(merged)), **context)

    def to_payload(self, request_id: str | None = None) -> dict:
        return {
            "event": SCHEDULE_CHANGED_EVENT,
            "action": self.action,
            "affected_teacher_ids": list(self.teacher_ids),
            "context": {
                "program_code": self.program_code,
                "semester": self.semester,
                "section": self.section,
                "day_index": self.day_index,
                "slot_index": self.slot_index,
                "span_ids": list(self.span_ids),
                "elective_group_id": self.elective_group_id,
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request_id": request_id,
        }


class ScheduleEventDispatcher:
    """Best-effort delivery of schedule changes after they are committed."""

    def __init__(
        self,
        publisher: NotificationPublisher | None,
        *,
        topic: str,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.5,
        enabled: bool = True,
    ) -> None:
        self.publisher = publisher
        self.topic = topic
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff_seconds = max(0.0, retry_backoff_seconds)
        self.enabled = enabled

    @classmethod
    def from_settings(cls, publisher: NotificationPublisher | None, settings: Settings) -> "ScheduleEventDispatcher":
        return cls(
            publisher,
            topic=settings.notification_topic,
            retry_attempts=settings.notification_retry_attempts,
            retry_backoff_seconds=settings.notification_retry_backoff_seconds,
            enabled=settings.notification_enabled,
        )

    def dispatch(self, change: ScheduleChange, request_id: str | None = None) -> bool:
        if not self.enabled or not change.teacher_ids:
            return False
        if self.publisher is None:
            logger.warning(
                "Dropped %s notification for %d teacher(s): no notification publisher is configured",
                change.action,
                len(change.teacher_ids),
            )
            return False

        payload = change.to_payload(request_id)
        last_error: str = "publisher declined the payload"
        for attempt in range(1, self.retry_attempts + 1):
            try:
                if self.publisher.publish(self.topic, payload):
                    return True
            except Exception as exc:
                last_error = str(exc)
                logger.debug("Notification attempt %d for %s failed", attempt, self.topic, exc_info=True)
            if attempt < self.retry_attempts and self.retry_backoff_seconds > 0:
                time.sleep(self.retry_backoff_seconds * attempt)

        logger.warning(
            "Dropped %s notification for %d teacher(s) after %d attempt(s): %s",
            change.action,
            len(change.teacher_ids),
            self.retry_attempts,
            last_error,
        )
        return False
