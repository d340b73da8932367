from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

import pytest

from pyreleva.capabilities import RecordingCapabilityProvider
from pyreleva.client import clear_default_client, register_default_client
from pyreleva.models.engagement import EngagementEventType
from pyreleva.models.notification import NotificationData
from pyreleva.notifications import (
    NavigationKind,
    NotificationHandler,
    extract_notification_data,
    is_releva_message,
    resolve_navigation,
)


class _FakeClient:
    def __init__(self) -> None:
        self.tracked: list[tuple[EngagementEventType, str | None]] = []

    async def track_engagement(
        self,
        payload: Mapping[Any, Any],
        event_type: EngagementEventType = EngagementEventType.OPENED,
        *,
        action_identifier: str | None = None,
    ) -> bool:
        self.tracked.append((event_type, action_identifier))
        return True


@pytest.fixture(autouse=True)
def _reset_default_client() -> Iterator[None]:
    clear_default_client()
    yield
    clear_default_client()


def test_top_level_click_action_wins_over_nested() -> None:
    payload = {"click_action": "OTHER", "data": {"click_action": "RELEVA_NOTIFICATION_CLICK"}}

    assert is_releva_message(payload) is False


def test_nested_click_action_is_detected() -> None:
    assert is_releva_message({"data": {"click_action": "RELEVA_NOTIFICATION_CLICK"}}) is True
    assert is_releva_message({"data": "not-a-map"}) is False
    assert is_releva_message({}) is False


def test_extract_prefers_nested_data() -> None:
    payload = {
        "aps": {"alert": "hi"},
        "callbackUrl": "https://top.example.com",
        "notificationId": 42,
        "data": {"callbackUrl": "https://nested.example.com", "target": "url"},
    }

    data = extract_notification_data(payload)

    assert data.callback_url == "https://nested.example.com"
    assert data.notification_id == "42"
    assert data.target == "url"


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        (NotificationData(target="screen", navigate_to_screen="product", navigate_to_parameters="id=1"),
         (NavigationKind.SCREEN, "product", "id=1")),
        (NotificationData(target="url", navigate_to_url="https://shop.example.com/p/1"),
         (NavigationKind.EXTERNAL_URL, "https://shop.example.com/p/1", None)),
        (NotificationData(target="url", navigate_to_url="myshop://product/1"),
         (NavigationKind.DEEP_LINK, "myshop://product/1", None)),
    ],
)
def test_resolve_navigation(data: NotificationData, expected: tuple[Any, ...]) -> None:
    action = resolve_navigation(data)

    assert action is not None
    assert (action.kind, action.target, action.parameters) == expected


@pytest.mark.parametrize(
    "data",
    [
        NotificationData(),
        NotificationData(target="screen"),
        NotificationData(target="url", navigate_to_url="no-scheme"),
        NotificationData(target="unknown", navigate_to_screen="home"),
    ],
)
def test_resolve_navigation_without_destination(data: NotificationData) -> None:
    assert resolve_navigation(data) is None


@pytest.mark.asyncio
async def test_will_present_tracks_delivered_for_releva_category() -> None:
    client = _FakeClient()
    handler = NotificationHandler(client)  # type: ignore[arg-type]

    assert await handler.will_present({}, "RELEVA_DEFAULT") is True
    assert await handler.will_present({}, "MARKETING") is False
    assert await handler.will_present({}, None) is False

    assert client.tracked == [(EngagementEventType.DELIVERED, None)]


@pytest.mark.asyncio
async def test_did_receive_action_button_tracks_clicked_and_navigates() -> None:
    client = _FakeClient()
    capabilities = RecordingCapabilityProvider()
    tapped: list[Mapping[Any, Any]] = []
    handler = NotificationHandler(client, capabilities, on_notification_tapped=tapped.append)  # type: ignore[arg-type]
    payload = {"data": {"target": "screen", "navigate_to_screen": "cart"}}

    action = await handler.did_receive(payload, "RELEVA_ACTION_BUTTON")

    assert client.tracked == [(EngagementEventType.CLICKED, "RELEVA_ACTION_BUTTON")]
    assert action is not None and action.kind is NavigationKind.SCREEN
    assert capabilities.calls == [("navigate_to_screen", ("cart", None))]
    assert tapped == [payload]


@pytest.mark.asyncio
async def test_did_receive_default_tap_tracks_opened_and_opens_url() -> None:
    client = _FakeClient()
    capabilities = RecordingCapabilityProvider()
    handler = NotificationHandler(client, capabilities)  # type: ignore[arg-type]

    await handler.did_receive({"data": {"target": "url", "navigate_to_url": "https://x.example.com"}})

    assert client.tracked == [(EngagementEventType.OPENED, None)]
    assert capabilities.calls == [("open_url", ("https://x.example.com",))]


@pytest.mark.asyncio
async def test_handler_falls_back_to_default_client() -> None:
    client = _FakeClient()
    register_default_client(client)  # type: ignore[arg-type]
    handler = NotificationHandler()

    await handler.did_receive({"data": {"target": "url", "navigate_to_url": "myshop://home"}})

    assert client.tracked == [(EngagementEventType.OPENED, None)]


@pytest.mark.asyncio
async def test_handler_without_any_client_still_navigates() -> None:
    capabilities = RecordingCapabilityProvider()
    handler = NotificationHandler(capabilities=capabilities)

    action = await handler.did_receive({"data": {"target": "url", "navigate_to_url": "myshop://home"}})

    assert action is not None and action.kind is NavigationKind.DEEP_LINK
    assert capabilities.calls == [("post_deep_link", ("myshop://home",))]
