"""Tests for the pydantic value objects and the push request builder."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from pyreleva.exceptions import RelevaMissingFieldError, RelevaNetworkError
from pyreleva.models.cart import Cart, CartProduct, WishlistProduct
from pyreleva.models.device import DeviceType
from pyreleva.models.engagement import (
    EngagementEvent,
    EngagementEventType,
    group_by_callback_url,
    sort_by_priority,
)
from pyreleva.models.requests import PushRequest
from pyreleva.models.responses import RelevaResponse, SyncResult

_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

# ------------------------------------------------------------------
# Cart / wishlist
# ------------------------------------------------------------------


class TestCart:
    def test_product_id_is_trimmed_and_required(self) -> None:
        assert CartProduct(id=" sku-1 ").id == "sku-1"
        with pytest.raises(ValidationError):
            CartProduct(id="   ")

    def test_negative_price_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CartProduct(id="a", price=-1.0)

    def test_payload_always_carries_custom(self) -> None:
        assert CartProduct(id="a", price=2.5).to_payload() == {"id": "a", "price": 2.5, "custom": {}}

    def test_paid_cart_payload(self) -> None:
        cart = Cart.paid([CartProduct(id="a", price=2.0, quantity=3)], order_id="o-1")

        assert cart.to_payload() == {
            "products": [{"id": "a", "price": 2.0, "quantity": 3.0, "custom": {}}],
            "cartPaid": True,
            "orderId": "o-1",
        }
        assert cart.total_price == 6.0

    def test_structural_equality(self) -> None:
        assert Cart.active([CartProduct(id="a")]) == Cart.active([CartProduct(id="a")])
        assert Cart.active([CartProduct(id="a")]) != Cart.active([CartProduct(id="b")])
        assert Cart.empty().is_empty

    def test_wishlist_product_payload(self) -> None:
        assert WishlistProduct(id="w", custom={"size": "M"}).to_payload() == {"id": "w", "custom": {"size": "M"}}


# ------------------------------------------------------------------
# Engagement events
# ------------------------------------------------------------------


class TestEngagementEvent:
    PAYLOAD: dict = {
        "data": {
            "callbackUrl": "https://cb.example.com/e",
            "notificationId": "n1",
            "target": "url",
            "navigate_to_url": "https://shop.example.com",
        }
    }

    def test_from_notification_payload(self) -> None:
        event = EngagementEvent.from_notification_payload(self.PAYLOAD, EngagementEventType.OPENED, timestamp=_NOW)

        assert event is not None
        assert event.to_payload() == {
            "type": "opened",
            "callbackUrl": "https://cb.example.com/e",
            "timestamp": "2026-03-01T12:00:00Z",
            "notificationId": "n1",
            "metadata": {"target": "url", "url": "https://shop.example.com"},
        }

    def test_payload_without_callback_url_yields_none(self) -> None:
        assert EngagementEvent.from_notification_payload({"data": {"notificationId": "n1"}}) is None

    @pytest.mark.parametrize("url", ["https://cb.example.com/e", "http://cb.example.com", "/api/v0/engagement"])
    def test_deliverable_urls(self, url: str) -> None:
        EngagementEvent(type=EngagementEventType.DELIVERED, callback_url=url).ensure_deliverable()

    @pytest.mark.parametrize("url", ["", "  ", "cb.example.com/e", "mailto:x@example.com"])
    def test_undeliverable_urls(self, url: str) -> None:
        event = EngagementEvent(type=EngagementEventType.DELIVERED, callback_url=url)
        with pytest.raises(RelevaMissingFieldError):
            event.ensure_deliverable()

    def test_expiry_after_seven_days(self) -> None:
        old = EngagementEvent(type="delivered", callback_url="/e", timestamp=_NOW - timedelta(days=7, seconds=1))
        fresh = EngagementEvent(type="delivered", callback_url="/e", timestamp=_NOW - timedelta(days=6))

        assert old.is_expired(_NOW)
        assert not fresh.is_expired(_NOW)

    def test_naive_timestamp_is_treated_as_utc(self) -> None:
        event = EngagementEvent(type="clicked", callback_url="/e", timestamp=datetime(2026, 3, 1, 12, 0))

        assert event.timestamp == _NOW

    def test_storage_form_is_lossless(self) -> None:
        event = EngagementEvent(type="clicked", callback_url="/e", notification_id="n", timestamp=_NOW)

        assert EngagementEvent.model_validate(event.to_storage()) == event

    def test_priority_sorting_and_grouping(self) -> None:
        delivered = EngagementEvent(type="delivered", callback_url="/a", timestamp=_NOW)
        clicked = EngagementEvent(type="clicked", callback_url="/b", timestamp=_NOW)
        opened = EngagementEvent(type="opened", callback_url="/a", timestamp=_NOW)

        assert [e.type for e in sort_by_priority([delivered, opened, clicked])] == ["clicked", "opened", "delivered"]
        assert list(group_by_callback_url([delivered, clicked, opened])) == ["/a", "/b"]
        assert EngagementEventType.CLICKED.is_high_priority
        assert not EngagementEventType.DELIVERED.is_high_priority


# ------------------------------------------------------------------
# Push request builder
# ------------------------------------------------------------------


class TestPushRequest:
    def test_page_fields(self) -> None:
        request = (
            PushRequest()
            .screen_view("category")
            .locale("en")
            .currency("EUR")
            .page_categories(["shoes"])
            .page_blocks(["hero"])
        )

        assert request.to_dict() == {
            "page": {
                "token": "category",
                "locale": "en",
                "currency": "EUR",
                "categories": ["shoes"],
                "blocks": {"tags": ["hero"]},
            }
        }

    def test_empty_lists_remove_keys(self) -> None:
        request = PushRequest().page_product_ids(["a"]).page_product_ids([]).custom_events([])

        assert request.to_dict() == {"page": {}}

    def test_profile_block(self) -> None:
        request = PushRequest().profile(email="a@example.com", registered_at=_NOW)

        assert request.context_blocks()["profile"] == {
            "email": "a@example.com",
            "registeredAt": "2026-03-01T12:00:00Z",
        }

    def test_factories(self) -> None:
        search = PushRequest.for_search("boots", result_product_ids=["p1"], screen_token="search")
        assert search.to_dict()["page"] == {"query": "boots", "ids": ["p1"], "token": "search"}

        custom = PushRequest.for_custom_event({"action": "share"})
        assert custom.to_dict()["events"] == [{"action": "share"}]

        product = PushRequest.for_product_view({"id": "p1"}, "pdp")
        assert product.context_blocks()["product"] == {"id": "p1"}

    def test_to_dict_is_a_copy(self) -> None:
        request = PushRequest().screen_view("home")
        request.to_dict()["page"]["token"] = "changed"

        assert request.to_dict()["page"]["token"] == "home"


# ------------------------------------------------------------------
# Responses / results / device types
# ------------------------------------------------------------------


class TestResponses:
    def test_null_recommenders_become_empty(self) -> None:
        response = RelevaResponse.model_validate({"recommenders": None, "extra": 1})

        assert response.recommenders == []
        assert response.raw == {"recommenders": None, "extra": 1}
        assert not response.has_recommenders

    def test_sync_result(self) -> None:
        assert SyncResult.success(3).unwrap() == 3
        failure: SyncResult[int] = SyncResult.failure(RelevaNetworkError("down", attempts=2))
        assert not failure.ok
        with pytest.raises(RelevaNetworkError):
            failure.unwrap()


@pytest.mark.parametrize(
    ("platform", "expected"),
    [
        ("ios", DeviceType.IOS),
        ("darwin", DeviceType.IOS),
        ("Android", DeviceType.ANDROID),
        ("harmonyos", DeviceType.HUAWEI),
        ("linux", DeviceType.OTHER),
    ],
)
def test_device_type_from_platform(platform: str, expected: DeviceType) -> None:
    assert DeviceType.from_platform(platform) is expected
