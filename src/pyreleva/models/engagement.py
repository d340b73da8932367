"""Push notification engagement events."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from enum import StrEnum
from typing import Any
from urllib.parse import urlparse

from pydantic import Field, field_validator

from pyreleva._constants import ENGAGEMENT_EVENT_MAX_AGE
from pyreleva.exceptions import RelevaMissingFieldError
from pyreleva.models._base import RelevaBaseModel, ensure_utc, format_iso8601, utcnow
from pyreleva.models.notification import NotificationData


class EngagementEventType(StrEnum):
    DELIVERED = "delivered"
    OPENED = "opened"
    CLICKED = "clicked"

    @property
    def priority(self) -> int:
        """Processing priority, higher is more important."""
        return _PRIORITIES[self]

    @property
    def is_high_priority(self) -> bool:
        """High-priority events are flushed as soon as they are tracked."""
        return self in (EngagementEventType.OPENED, EngagementEventType.CLICKED)


_PRIORITIES: dict[EngagementEventType, int] = {
    EngagementEventType.CLICKED: 3,
    EngagementEventType.OPENED: 2,
    EngagementEventType.DELIVERED: 1,
}


class EngagementEvent(RelevaBaseModel):
    """Telemetry record for one push notification lifecycle moment."""

    type: EngagementEventType
    callback_url: str
    notification_id: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @classmethod
    def from_notification_payload(
        cls,
        payload: Mapping[Any, Any],
        event_type: EngagementEventType = EngagementEventType.DELIVERED,
        *,
        timestamp: datetime | None = None,
        extra_metadata: Mapping[str, str] | None = None,
    ) -> EngagementEvent | None:
        """Build an event from a raw notification payload.

        Returns ``None`` when the payload carries no callback URL.
        """
        data = NotificationData.from_payload(payload)
        if data.callback_url is None:
            return None
        metadata = data.engagement_metadata()
        if extra_metadata:
            metadata.update(extra_metadata)
        return cls(
            type=event_type,
            callback_url=data.callback_url,
            notification_id=data.notification_id,
            timestamp=timestamp or utcnow(),
            metadata=metadata,
        )

    def ensure_deliverable(self) -> None:
        """Reject events that can never be delivered.

        Raises
        ------
        RelevaMissingFieldError
            If the callback URL is empty or is neither an absolute
            http(s) URL nor an absolute path.
        """
        url = self.callback_url.strip()
        if not url:
            raise RelevaMissingFieldError("Callback URL cannot be empty", field="callbackUrl")
        if url.startswith("/"):
            return
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise RelevaMissingFieldError(f"Invalid callback URL format: {url!r}", field="callbackUrl")

    def is_expired(self, now: datetime | None = None) -> bool:
        reference = ensure_utc(now) if now is not None else utcnow()
        return self.timestamp < reference - ENGAGEMENT_EVENT_MAX_AGE

    def age_seconds(self, now: datetime | None = None) -> float:
        reference = ensure_utc(now) if now is not None else utcnow()
        return (reference - self.timestamp).total_seconds()

    @property
    def should_send_immediately(self) -> bool:
        return self.type.is_high_priority

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type.value,
            "callbackUrl": self.callback_url,
            "timestamp": format_iso8601(self.timestamp),
        }
        if self.notification_id is not None:
            payload["notificationId"] = self.notification_id
        if self.metadata:
            payload["metadata"] = dict(self.metadata)
        return payload

    def to_storage(self) -> dict[str, Any]:
        """Lossless dictionary form used for persistence."""
        return self.model_dump(mode="json", by_alias=True)


def group_by_callback_url(events: Iterable[EngagementEvent]) -> dict[str, list[EngagementEvent]]:
    """Group events by callback URL, preserving first-seen URL order and event order."""
    grouped: dict[str, list[EngagementEvent]] = {}
    for event in events:
        grouped.setdefault(event.callback_url, []).append(event)
    return grouped


def filter_expired(events: Iterable[EngagementEvent], now: datetime | None = None) -> list[EngagementEvent]:
    return [event for event in events if not event.is_expired(now)]


def sort_by_priority(events: Iterable[EngagementEvent]) -> list[EngagementEvent]:
    """Highest priority first, then oldest first."""
    return sorted(events, key=lambda event: (-event.type.priority, event.timestamp))
