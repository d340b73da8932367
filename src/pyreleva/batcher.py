"""Engagement event batching with durable at-least-once delivery.

Events are persisted as soon as they are tracked and removed only after the
whole batch they were sent in has been accepted. A failed batch stays queued
and is retried by the next trigger (high-priority event, full batch, timer
tick, or an explicit :meth:`EngagementBatcher.flush`).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from pyreleva._api.engagement import send_engagement_events
from pyreleva._transport import RetryingTransport
from pyreleva.config import ApiCredentials, RelevaConfig
from pyreleva.exceptions import RelevaMissingFieldError
from pyreleva.models._base import utcnow
from pyreleva.models.engagement import EngagementEvent, EngagementEventType, filter_expired
from pyreleva.storage import StorageService

_logger = logging.getLogger(__name__)


class BatcherState(StrEnum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    SENDING = "sending"


@dataclass(frozen=True, slots=True)
class FlushOutcome:
    """Result of one flush attempt.

    ``skipped`` is set when another flush was already in flight.
    """

    attempted: int = 0
    removed: int = 0
    failed_urls: tuple[str, ...] = ()
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return not self.skipped and not self.failed_urls


class EngagementBatcher:
    """Queues engagement events and delivers them in batches.

    Parameters
    ----------
    credentials : ApiCredentials
        Used for request headers and relative callback URLs.
    config : RelevaConfig
        Supplies ``engagement_batch_size`` and ``engagement_batch_interval``.
    transport : RetryingTransport
        Shared retrying transport.
    storage : StorageService
        Durable queue; events older than seven days are dropped on load.
    clock : callable, optional
        Returns the current UTC time.
    sleep : callable, optional
        Awaitable used by the timer between ticks.
    """

    def __init__(
        self,
        credentials: ApiCredentials,
        config: RelevaConfig,
        transport: RetryingTransport,
        storage: StorageService,
        *,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._credentials = credentials
        self._config = config
        self._transport = transport
        self._storage = storage
        self._clock = clock
        self._sleep = sleep
        self._send_lock = asyncio.Lock()
        self._timer_task: asyncio.Task[None] | None = None
        self._sent_count = 0
        self._failed_flushes = 0
        self._dropped_count = 0

        loaded = storage.get_pending_events()
        self._events: list[EngagementEvent] = filter_expired(loaded, clock())
        expired = len(loaded) - len(self._events)
        if expired:
            _logger.debug("Dropped %d expired engagement event(s)", expired)
            self._dropped_count += expired
            storage.save_pending_events(self._events)
        elif self._events:
            _logger.debug("Loaded %d pending engagement event(s)", len(self._events))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> BatcherState:
        if self._send_lock.locked():
            return BatcherState.SENDING
        if self._events:
            return BatcherState.ACCUMULATING
        return BatcherState.IDLE

    @property
    def pending_events(self) -> list[EngagementEvent]:
        return list(self._events)

    def pending_count(self) -> int:
        return len(self._events)

    @property
    def is_running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def statistics(self) -> dict[str, Any]:
        now = self._clock()
        by_type = {event_type.value: 0 for event_type in EngagementEventType}
        for event in self._events:
            by_type[event.type.value] += 1
        return {
            "state": self.state.value,
            "pending": len(self._events),
            "pending_by_type": by_type,
            "high_priority_pending": sum(1 for event in self._events if event.type.is_high_priority),
            "oldest_event_age_s": max((event.age_seconds(now) for event in self._events), default=None),
            "sent": self._sent_count,
            "failed_flushes": self._failed_flushes,
            "dropped": self._dropped_count,
            "running": self.is_running,
        }

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    async def track(self, event: EngagementEvent) -> bool:
        """Queue *event* and flush if a trigger fires.

        Returns ``False`` if the event was rejected as undeliverable.
        """
        try:
            event.ensure_deliverable()
        except RelevaMissingFieldError as exc:
            _logger.debug("Dropping invalid engagement event: %s", exc)
            self._dropped_count += 1
            return False

        self._events.append(event)
        self._storage.save_pending_events(self._events)
        _logger.debug("Tracked %s engagement event (%d pending)", event.type.value, len(self._events))

        if event.should_send_immediately or len(self._events) >= self._config.engagement_batch_size:
            await self.flush()
        return True

    async def _track_payload(
        self,
        payload: Mapping[Any, Any],
        event_type: EngagementEventType,
        extra_metadata: Mapping[str, str] | None = None,
    ) -> bool:
        event = EngagementEvent.from_notification_payload(
            payload,
            event_type,
            timestamp=self._clock(),
            extra_metadata=extra_metadata,
        )
        if event is None:
            _logger.debug("Notification payload has no callbackUrl; %s not tracked", event_type.value)
            return False
        return await self.track(event)

    async def track_delivered(self, payload: Mapping[Any, Any]) -> bool:
        return await self._track_payload(payload, EngagementEventType.DELIVERED)

    async def track_opened(self, payload: Mapping[Any, Any]) -> bool:
        return await self._track_payload(payload, EngagementEventType.OPENED)

    async def track_clicked(self, payload: Mapping[Any, Any], action_identifier: str | None = None) -> bool:
        extra = {"action": action_identifier} if action_identifier is not None else None
        return await self._track_payload(payload, EngagementEventType.CLICKED, extra)

    def clear_pending(self) -> None:
        self._events.clear()
        self._storage.clear_pending_events()

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def flush(self) -> FlushOutcome:
        """Send up to one batch of queued events.

        At most one flush runs at a time; a concurrent call returns a
        skipped outcome immediately.
        """
        if self._send_lock.locked():
            return FlushOutcome(skipped=True)
        if not self._events:
            return FlushOutcome()

        async with self._send_lock:
            batch = self._events[: self._config.engagement_batch_size]
            _logger.debug("Sending %d engagement event(s)", len(batch))
            results = await send_engagement_events(self._credentials, self._config, self._transport, batch)

            failed = tuple(url for url, error in results.items() if error is not None)
            if failed:
                self._failed_flushes += 1
                _logger.debug(
                    "Engagement batch failed for %d callback URL(s); keeping %d event(s)",
                    len(failed),
                    len(batch),
                )
                return FlushOutcome(attempted=len(batch), failed_urls=failed)

            # Matched by identity so events without a notification id are removed too.
            delivered = {id(event) for event in batch}
            before = len(self._events)
            self._events = [event for event in self._events if id(event) not in delivered]
            removed = before - len(self._events)
            self._storage.save_pending_events(self._events)
            self._sent_count += len(batch)
            _logger.debug("Engagement batch delivered; removed %d event(s)", removed)
            return FlushOutcome(attempted=len(batch), removed=removed)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the recurring flush timer on the running event loop."""
        if self.is_running:
            return
        self._timer_task = asyncio.get_running_loop().create_task(self._run_timer())
        _logger.debug(
            "Engagement tracking started (batch interval: %ss)",
            self._config.engagement_batch_interval,
        )

    async def _run_timer(self) -> None:
        while True:
            await self._sleep(self._config.engagement_batch_interval)
            try:
                await self.flush()
            except Exception:
                _logger.warning("Timer-driven engagement flush failed", exc_info=True)

    async def stop(self) -> FlushOutcome:
        """Cancel the timer, wait for an in-flight flush, then flush once more."""
        task, self._timer_task = self._timer_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        async with self._send_lock:
            pass
        outcome = await self.flush()
        _logger.debug("Engagement tracking stopped (%d pending)", len(self._events))
        return outcome
