"""Change tracker for identity, cart and wishlist.

The tracker holds the last committed value of every tracked entity plus the
:class:`~pyreleva.state.policy.ChangeFlags` that tell the backend what moved
since the last successful sync. Values are written through to storage
immediately; flags live in memory for the process lifetime.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from pyreleva.exceptions import RelevaMissingFieldError
from pyreleva.models.cart import Cart, WishlistProduct
from pyreleva.state.events import (
    EntityCleared,
    StateEvent,
    SyncAcknowledged,
    SyncFailed,
    TrackedEntity,
    ValueCommitted,
)
from pyreleva.state.policy import ChangeFlags, reduce_flags
from pyreleva.storage import StorageService

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TrackedSnapshot:
    """Everything a push needs, captured at one point in time."""

    flags: ChangeFlags
    device_id: str | None = None
    profile_id: str | None = None
    cart: Cart | None = None
    wishlist: tuple[WishlistProduct, ...] | None = None
    merge_profile_ids: tuple[str, ...] = field(default_factory=tuple)


def _require_id(value: str, field_name: str) -> str:
    normalized = value.strip() if isinstance(value, str) else ""
    if not normalized:
        raise RelevaMissingFieldError(f"{field_name} cannot be empty", field=field_name)
    return normalized


class ChangeTracker:
    """Owns in-memory snapshots and change flags, hydrated from storage."""

    def __init__(self, storage: StorageService) -> None:
        self._storage = storage
        self._flags = ChangeFlags()
        self._device_id = storage.get_device_id()
        self._profile_id = storage.get_profile_id()
        self._cart = storage.get_cart()
        wishlist = storage.get_wishlist()
        self._wishlist: tuple[WishlistProduct, ...] | None = tuple(wishlist) if wishlist is not None else None
        self._merge_profile_ids: list[str] = storage.get_merge_profile_ids()
        self._cart_initialized = storage.is_cart_initialized()
        self._wishlist_initialized = storage.is_wishlist_initialized()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def flags(self) -> ChangeFlags:
        return self._flags

    @property
    def device_id(self) -> str | None:
        return self._device_id

    @property
    def profile_id(self) -> str | None:
        return self._profile_id

    @property
    def cart(self) -> Cart | None:
        return self._cart

    @property
    def wishlist(self) -> tuple[WishlistProduct, ...] | None:
        return self._wishlist

    @property
    def merge_profile_ids(self) -> list[str]:
        return list(self._merge_profile_ids)

    @property
    def cart_initialized(self) -> bool:
        return self._cart_initialized

    @property
    def wishlist_initialized(self) -> bool:
        return self._wishlist_initialized

    def snapshot(self) -> TrackedSnapshot:
        return TrackedSnapshot(
            flags=self._flags,
            device_id=self._device_id,
            profile_id=self._profile_id,
            cart=self._cart,
            wishlist=self._wishlist,
            merge_profile_ids=tuple(self._merge_profile_ids),
        )

    def _apply(self, event: StateEvent) -> None:
        self._flags = reduce_flags(self._flags, event)

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    def set_device_id(self, device_id: str) -> ValueCommitted:
        device_id = _require_id(device_id, "deviceId")
        previous = self._device_id
        event = ValueCommitted(
            entity=TrackedEntity.DEVICE_ID,
            baseline=previous is None,
            differs=previous != device_id,
        )
        self._apply(event)
        self._device_id = device_id
        self._storage.save_device_id(device_id)
        _logger.debug("Device id set (changed: %s)", self._flags.device_id_changed)
        return event

    def set_profile_id(self, profile_id: str) -> ValueCommitted:
        """Commit a profile id; a superseded id is queued for merging."""
        profile_id = _require_id(profile_id, "profileId")
        previous = self._profile_id
        event = ValueCommitted(
            entity=TrackedEntity.PROFILE,
            baseline=previous is None,
            differs=previous != profile_id,
        )
        self._apply(event)
        if previous is not None and previous != profile_id and previous not in self._merge_profile_ids:
            self._merge_profile_ids.append(previous)
            self._storage.add_merge_profile_id(previous)
        self._profile_id = profile_id
        self._storage.save_profile_id(profile_id)
        _logger.debug("Profile id set (changed: %s)", self._flags.profile_changed)
        return event

    def set_cart(self, cart: Cart) -> ValueCommitted:
        event = ValueCommitted(
            entity=TrackedEntity.CART,
            baseline=not self._cart_initialized,
            differs=self._cart != cart,
        )
        self._apply(event)
        if not self._cart_initialized:
            self._cart_initialized = True
            self._storage.mark_cart_initialized()
        self._cart = cart
        self._storage.save_cart(cart)
        _logger.debug("Cart set with %d products (changed: %s)", len(cart.products), self._flags.cart_changed)
        return event

    def set_wishlist(self, products: Iterable[WishlistProduct]) -> ValueCommitted:
        wishlist = tuple(products)
        event = ValueCommitted(
            entity=TrackedEntity.WISHLIST,
            baseline=not self._wishlist_initialized,
            differs=self._wishlist != wishlist,
        )
        self._apply(event)
        if not self._wishlist_initialized:
            self._wishlist_initialized = True
            self._storage.mark_wishlist_initialized()
        self._wishlist = wishlist
        self._storage.save_wishlist(wishlist)
        _logger.debug("Wishlist set with %d products (changed: %s)", len(wishlist), self._flags.wishlist_changed)
        return event

    def clear_cart(self) -> None:
        """Forget the cart; the next ``set_cart`` is a baseline again."""
        self._apply(EntityCleared(entity=TrackedEntity.CART))
        self._cart = None
        self._cart_initialized = False
        self._storage.clear_cart()

    def clear_wishlist(self) -> None:
        self._apply(EntityCleared(entity=TrackedEntity.WISHLIST))
        self._wishlist = None
        self._wishlist_initialized = False
        self._storage.clear_wishlist()

    # ------------------------------------------------------------------
    # Sync outcome
    # ------------------------------------------------------------------

    def acknowledge(self, snapshot: TrackedSnapshot) -> None:
        """Record that the push built from *snapshot* was accepted.

        Flags are cleared unless a differing value was committed while the
        push was in flight. Only the merge ids carried by *snapshot* are
        removed.
        """
        self._apply(SyncAcknowledged(generation=snapshot.flags.generation))
        if snapshot.merge_profile_ids:
            sent = set(snapshot.merge_profile_ids)
            self._merge_profile_ids = [pid for pid in self._merge_profile_ids if pid not in sent]
            if self._merge_profile_ids:
                self._storage.save_merge_profile_ids(self._merge_profile_ids)
            else:
                self._storage.clear_merge_profile_ids()

    def record_failure(self) -> None:
        self._apply(SyncFailed())
