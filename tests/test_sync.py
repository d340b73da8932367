from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import pytest

from pyreleva._transport import HttpRequest, HttpResponse, RetryingTransport
from pyreleva.config import ApiCredentials, RelevaConfig
from pyreleva.exceptions import (
    RelevaInvalidResponseError,
    RelevaMissingFieldError,
    RelevaServerError,
    RelevaUnauthorizedError,
)
from pyreleva.models.cart import Cart, CartProduct, WishlistProduct
from pyreleva.models.device import DeviceType
from pyreleva.models.requests import PushRequest
from pyreleva.session import SessionManager
from pyreleva.state.tracker import ChangeTracker
from pyreleva.storage import MemoryKeyValueStore, StorageService
from pyreleva.sync import SyncCoordinator

_NOW = datetime(2026, 1, 1, tzinfo=UTC)
_OK_BODY = json.dumps({"recommenders": [{"token": "rec-1", "products": []}]}).encode()


class _FakeTransport:
    def __init__(self, *responses: HttpResponse) -> None:
        self._responses = list(responses) or [HttpResponse(200, _OK_BODY)]
        self.requests: list[HttpRequest] = []

    async def send(self, request: HttpRequest) -> HttpResponse:
        self.requests.append(request)
        return self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]

    def payload(self, index: int = -1) -> dict[str, Any]:
        return json.loads(self.requests[index].body)


async def _no_sleep(_delay: float) -> None:
    return None


def _coordinator(
    fake: _FakeTransport,
    config: RelevaConfig | None = None,
) -> tuple[SyncCoordinator, ChangeTracker, StorageService]:
    storage = StorageService(MemoryKeyValueStore(), clock=lambda: _NOW)
    tracker = ChangeTracker(storage)
    coordinator = SyncCoordinator(
        ApiCredentials(realm="demo", access_token="secret"),
        config or RelevaConfig(),
        RetryingTransport(fake, sleep=_no_sleep),
        storage,
        tracker,
        SessionManager(storage, clock=lambda: _NOW),
    )
    return coordinator, tracker, storage


def _dirty(tracker: ChangeTracker) -> None:
    tracker.set_device_id("d1")
    tracker.set_device_id("d2")
    tracker.set_profile_id("p1")
    tracker.set_profile_id("p2")
    tracker.set_cart(Cart.active([CartProduct(id="a", price=1.0, quantity=1)]))
    tracker.set_cart(Cart.active([CartProduct(id="b", price=2.0, quantity=1)]))
    tracker.set_wishlist([WishlistProduct(id="w1")])
    tracker.set_wishlist([WishlistProduct(id="w2")])


@pytest.mark.asyncio
async def test_push_payload_carries_context_and_client_options() -> None:
    fake = _FakeTransport()
    coordinator, tracker, _ = _coordinator(fake)
    _dirty(tracker)

    result = await coordinator.push(PushRequest().screen_view("home").locale("en"))

    assert result.ok
    request = fake.requests[0]
    assert request.url == "https://demo.releva.ai/api/v0/push"
    assert request.headers["Authorization"] == "Bearer secret"
    payload = fake.payload()
    context = payload["context"]
    assert context["deviceId"] == "d2"
    assert context["deviceIdChanged"] is True
    assert context["profile"] == {"id": "p2"}
    assert context["profileChanged"] is True
    assert context["cart"]["products"][0]["id"] == "b"
    assert context["cartChanged"] is True
    assert context["wishlist"] == {"products": [{"id": "w2", "custom": {}}]}
    assert context["wishlistChanged"] is True
    assert context["mergeProfileIds"] == ["p1"]
    assert context["page"] == {"token": "home", "locale": "en"}
    assert "sessionId" in context
    assert payload["options"]["client"] == {"vendor": "Releva", "platform": "python", "version": "0.3.0"}


@pytest.mark.asyncio
async def test_successful_push_clears_flags_and_merge_ids() -> None:
    fake = _FakeTransport()
    coordinator, tracker, storage = _coordinator(fake)
    _dirty(tracker)

    result = await coordinator.push()

    assert result.ok
    assert result.unwrap().recommender_by_token("rec-1") is not None
    assert tracker.flags.any_changed is False
    assert tracker.merge_profile_ids == []
    assert storage.get_merge_profile_ids() == []
    assert storage.get_last_sync() == _NOW


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("response", "error_type"),
    [
        (HttpResponse(401), RelevaUnauthorizedError),
        (HttpResponse(400, b"bad"), RelevaServerError),
        (HttpResponse(500), RelevaServerError),
        (HttpResponse(200, b""), RelevaInvalidResponseError),
        (HttpResponse(200, b"not json"), RelevaInvalidResponseError),
    ],
)
async def test_failed_push_leaves_state_untouched(response: HttpResponse, error_type: type) -> None:
    fake = _FakeTransport(response)
    coordinator, tracker, storage = _coordinator(fake)
    _dirty(tracker)
    before = tracker.snapshot()

    result = await coordinator.push()

    assert not result.ok
    assert isinstance(result.error, error_type)
    assert tracker.snapshot() == before
    assert storage.get_merge_profile_ids() == ["p1"]
    assert storage.get_last_sync() is None
    with pytest.raises(error_type):
        result.unwrap()


@pytest.mark.asyncio
async def test_tracking_disabled_makes_no_calls() -> None:
    fake = _FakeTransport()
    coordinator, tracker, _ = _coordinator(fake, RelevaConfig(enable_tracking=False))
    _dirty(tracker)
    before = tracker.snapshot()

    result = await coordinator.push(PushRequest().screen_view("home"))

    assert result.ok
    assert result.unwrap().recommenders == []
    assert fake.requests == []
    assert tracker.snapshot() == before


@pytest.mark.asyncio
async def test_cart_override_forces_cart_changed() -> None:
    fake = _FakeTransport()
    coordinator, tracker, _ = _coordinator(fake)
    tracker.set_cart(Cart.active([CartProduct(id="a")]))
    ordered = Cart.paid([CartProduct(id="a", price=5.0, quantity=1)], order_id="o-1")

    await coordinator.push(PushRequest.for_checkout_success(ordered))

    context = fake.payload()["context"]
    assert context["cartChanged"] is True
    assert context["cart"]["orderId"] == "o-1"
    assert context["cart"]["cartPaid"] is True


@pytest.mark.asyncio
async def test_register_push_token_requires_device_id() -> None:
    fake = _FakeTransport()
    coordinator, _, _ = _coordinator(fake)

    result = await coordinator.register_push_token("tok", DeviceType.IOS)

    assert isinstance(result.error, RelevaMissingFieldError)
    assert fake.requests == []


@pytest.mark.asyncio
async def test_register_push_token_posts_payload() -> None:
    fake = _FakeTransport(HttpResponse(201))
    coordinator, tracker, storage = _coordinator(fake)
    tracker.set_device_id("d1")
    tracker.set_profile_id("p1")

    result = await coordinator.register_push_token("tok", DeviceType.ANDROID)

    assert result.unwrap() is True
    assert fake.requests[0].url == "https://demo.releva.ai/api/v0/appPush/tokens"
    assert fake.payload() == {"pushToken": "tok", "deviceType": "android", "deviceId": "d1", "profileId": "p1"}
    assert storage.get_push_token() == ("tok", DeviceType.ANDROID)


@pytest.mark.asyncio
async def test_failed_token_registration_does_not_store_token() -> None:
    fake = _FakeTransport(HttpResponse(401))
    coordinator, tracker, storage = _coordinator(fake)
    tracker.set_device_id("d1")

    result = await coordinator.register_push_token("tok", DeviceType.IOS)

    assert isinstance(result.error, RelevaUnauthorizedError)
    assert storage.get_push_token() is None


@pytest.mark.asyncio
async def test_register_push_token_noop_when_push_disabled() -> None:
    fake = _FakeTransport()
    coordinator, tracker, _ = _coordinator(fake, RelevaConfig(enable_push_notifications=False))
    tracker.set_device_id("d1")

    result = await coordinator.register_push_token("tok")

    assert result.unwrap() is False
    assert fake.requests == []


@pytest.mark.asyncio
async def test_custom_endpoint_overrides_realm_host() -> None:
    fake = _FakeTransport()
    coordinator, _, _ = _coordinator(fake, RelevaConfig(custom_endpoint="https://staging.example.com/"))

    await coordinator.push()

    assert fake.requests[0].url == "https://staging.example.com/api/v0/push"
