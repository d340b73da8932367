"""Notification handling for the main application context."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from pyreleva._constants import RELEVA_ACTION_BUTTON, RELEVA_CATEGORY_PREFIX, RELEVA_CLICK_ACTION
from pyreleva.capabilities import CapabilityProvider, NoopCapabilityProvider
from pyreleva.models.engagement import EngagementEventType
from pyreleva.models.notification import NotificationData

if TYPE_CHECKING:
    from pyreleva.client import RelevaClient

_logger = logging.getLogger(__name__)


def extract_notification_data(payload: Mapping[Any, Any]) -> NotificationData:
    """Read Releva fields from *payload*, preferring the nested ``data`` block."""
    return NotificationData.from_payload(payload)


def is_releva_message(payload: Mapping[Any, Any]) -> bool:
    """Whether *payload* was sent by Releva.

    A top-level ``click_action`` decides on its own; the nested ``data``
    block is consulted only when there is none.
    """
    top_level = payload.get("click_action")
    if isinstance(top_level, str):
        return top_level == RELEVA_CLICK_ACTION
    nested = payload.get("data")
    if isinstance(nested, Mapping):
        click_action = nested.get("click_action")
        if isinstance(click_action, str):
            return click_action == RELEVA_CLICK_ACTION
    return False


class NavigationKind(StrEnum):
    SCREEN = "screen"
    DEEP_LINK = "deep_link"
    EXTERNAL_URL = "external_url"


@dataclass(frozen=True, slots=True)
class NavigationAction:
    kind: NavigationKind
    target: str
    parameters: str | None = None


def resolve_navigation(data: NotificationData) -> NavigationAction | None:
    """Decide where a tapped notification should lead, if anywhere."""
    if data.target == "screen":
        if data.navigate_to_screen:
            return NavigationAction(NavigationKind.SCREEN, data.navigate_to_screen, data.navigate_to_parameters)
        return None
    if data.target == "url":
        if not data.navigate_to_url:
            return None
        scheme = urlparse(data.navigate_to_url).scheme.lower()
        if not scheme:
            return None
        if scheme in ("http", "https"):
            return NavigationAction(NavigationKind.EXTERNAL_URL, data.navigate_to_url)
        return NavigationAction(NavigationKind.DEEP_LINK, data.navigate_to_url)
    return None


class NotificationHandler:
    """Tracks engagement and routes navigation for received notifications.

    Parameters
    ----------
    client : RelevaClient or None
        Client used for engagement tracking. ``None`` falls back to the
        registered default client at call time.
    capabilities : CapabilityProvider, optional
        Host capabilities used for navigation.
    on_notification_tapped : callable, optional
        Called with the raw payload after tracking and navigation.
    """

    def __init__(
        self,
        client: RelevaClient | None = None,
        capabilities: CapabilityProvider | None = None,
        *,
        on_notification_tapped: Callable[[Mapping[Any, Any]], None] | None = None,
    ) -> None:
        self._client = client
        self._capabilities: CapabilityProvider = capabilities or NoopCapabilityProvider()
        self._on_tapped = on_notification_tapped

    def _resolve_client(self) -> RelevaClient | None:
        if self._client is not None:
            return self._client
        from pyreleva.client import get_default_client

        return get_default_client()

    async def will_present(self, payload: Mapping[Any, Any], category: str | None) -> bool:
        """Handle a notification shown while the app is in the foreground.

        Returns ``True`` if the notification is Releva's and should be shown.
        """
        if not category or not category.startswith(RELEVA_CATEGORY_PREFIX):
            return False
        client = self._resolve_client()
        if client is not None:
            await client.track_engagement(payload, EngagementEventType.DELIVERED)
        else:
            _logger.debug("No client available; delivered event not tracked")
        return True

    async def did_receive(
        self,
        payload: Mapping[Any, Any],
        action_identifier: str | None = None,
    ) -> NavigationAction | None:
        """Handle a tap on a notification or one of its action buttons."""
        client = self._resolve_client()
        if client is not None:
            event_type = (
                EngagementEventType.CLICKED
                if action_identifier == RELEVA_ACTION_BUTTON
                else EngagementEventType.OPENED
            )
            await client.track_engagement(payload, event_type, action_identifier=action_identifier)
        else:
            _logger.debug("No client available; tap not tracked")

        action = self.navigate(payload)
        if self._on_tapped is not None:
            self._on_tapped(payload)
        return action

    def navigate(self, payload: Mapping[Any, Any]) -> NavigationAction | None:
        action = resolve_navigation(extract_notification_data(payload))
        if action is None:
            return None
        _logger.debug("Navigating: %s -> %s", action.kind.value, action.target)
        if action.kind is NavigationKind.SCREEN:
            self._capabilities.navigate_to_screen(action.target, action.parameters)
        elif action.kind is NavigationKind.DEEP_LINK:
            self._capabilities.post_deep_link(action.target)
        else:
            self._capabilities.open_url(action.target)
        return action
