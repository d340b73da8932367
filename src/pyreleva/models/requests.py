"""Push (sync) request builder.

A :class:`PushRequest` describes what the user is looking at (page context,
viewed product, custom events, profile details). The sync coordinator adds
session, identity, cart and wishlist context before sending it.
"""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any

from pyreleva.models._base import format_iso8601
from pyreleva.models.cart import Cart

_CONTEXT_KEYS = ("page", "product", "events", "profile")


class PushRequest:
    """Fluent builder for push request payloads.

    Usage::

        request = PushRequest().screen_view("home").locale("en_US")
    """

    def __init__(self) -> None:
        self._request: dict[str, Any] = {"page": {}}
        self.cart: Cart | None = None

    def _set_page(self, key: str, value: Any) -> PushRequest:
        page = self._request.setdefault("page", {})
        if value is None:
            page.pop(key, None)
        else:
            page[key] = value
        return self

    # ------------------------------------------------------------------
    # Page context
    # ------------------------------------------------------------------

    def screen_view(self, page_token: str) -> PushRequest:
        return self._set_page("token", page_token)

    def page_url(self, url: str) -> PushRequest:
        return self._set_page("url", url)

    def locale(self, locale: str) -> PushRequest:
        return self._set_page("locale", locale)

    def search(self, query: str) -> PushRequest:
        return self._set_page("query", query)

    def currency(self, currency: str) -> PushRequest:
        return self._set_page("currency", currency)

    def page_filter(self, filter_payload: dict[str, Any]) -> PushRequest:
        return self._set_page("filter", dict(filter_payload))

    def page_product_ids(self, product_ids: list[str]) -> PushRequest:
        return self._set_page("ids", list(product_ids) or None)

    def page_categories(self, categories: list[str]) -> PushRequest:
        return self._set_page("categories", list(categories) or None)

    def page_blocks(self, tags: list[str]) -> PushRequest:
        return self._set_page("blocks", {"tags": list(tags)})

    # ------------------------------------------------------------------
    # Other context blocks
    # ------------------------------------------------------------------

    def product_view(self, product: dict[str, Any]) -> PushRequest:
        self._request["product"] = dict(product)
        return self

    def custom_events(self, events: list[dict[str, Any]]) -> PushRequest:
        if events:
            self._request["events"] = [dict(event) for event in events]
        else:
            self._request.pop("events", None)
        return self

    def add_custom_event(self, event: dict[str, Any]) -> PushRequest:
        self._request.setdefault("events", []).append(dict(event))
        return self

    def profile(
        self,
        *,
        email: str | None = None,
        phone_number: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        registered_at: datetime | None = None,
    ) -> PushRequest:
        profile_map: dict[str, Any] = {}
        if email is not None:
            profile_map["email"] = email
        if phone_number is not None:
            profile_map["phoneNumber"] = phone_number
        if first_name is not None:
            profile_map["firstName"] = first_name
        if last_name is not None:
            profile_map["lastName"] = last_name
        if registered_at is not None:
            profile_map["registeredAt"] = format_iso8601(registered_at)
        if profile_map:
            self._request["profile"] = profile_map
        return self

    def set_cart(self, cart: Cart) -> PushRequest:
        """Send *cart* instead of the committed cart (marks the cart as changed)."""
        self.cart = cart
        return self

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._request)

    def context_blocks(self) -> dict[str, Any]:
        """The request keys merged into the outgoing ``context``."""
        return {key: copy.deepcopy(value) for key, value in self._request.items() if key in _CONTEXT_KEYS}

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def for_screen_view(
        cls,
        screen_token: str | None = None,
        *,
        product_ids: list[str] | None = None,
        categories: list[str] | None = None,
        filter_payload: dict[str, Any] | None = None,
    ) -> PushRequest:
        request = cls()
        if screen_token is not None:
            request.screen_view(screen_token)
        if product_ids:
            request.page_product_ids(product_ids)
        if categories:
            request.page_categories(categories)
        if filter_payload:
            request.page_filter(filter_payload)
        return request

    @classmethod
    def for_product_view(cls, product: dict[str, Any], screen_token: str | None = None) -> PushRequest:
        request = cls().product_view(product)
        if screen_token is not None:
            request.screen_view(screen_token)
        return request

    @classmethod
    def for_search(
        cls,
        query: str,
        *,
        result_product_ids: list[str] | None = None,
        screen_token: str | None = None,
        filter_payload: dict[str, Any] | None = None,
    ) -> PushRequest:
        request = cls().search(query)
        if result_product_ids:
            request.page_product_ids(result_product_ids)
        if screen_token is not None:
            request.screen_view(screen_token)
        if filter_payload:
            request.page_filter(filter_payload)
        return request

    @classmethod
    def for_checkout_success(cls, ordered_cart: Cart, screen_token: str | None = None) -> PushRequest:
        request = cls().set_cart(ordered_cart)
        if screen_token is not None:
            request.screen_view(screen_token)
        return request

    @classmethod
    def for_custom_event(cls, event: dict[str, Any], screen_token: str | None = None) -> PushRequest:
        request = cls().custom_events([event])
        if screen_token is not None:
            request.screen_view(screen_token)
        return request
