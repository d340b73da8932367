"""Durable key-value persistence.

The store is the source of truth across process restarts. Every mutation
is written through immediately; in-memory copies held by other components
are hydrated from here at construction.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from pyreleva._constants import SCHEMA_VERSION
from pyreleva.models._base import ensure_utc, utcnow
from pyreleva.models.cart import Cart, WishlistProduct
from pyreleva.models.device import DeviceType
from pyreleva.models.engagement import EngagementEvent

_logger = logging.getLogger(__name__)


class StorageKey(StrEnum):
    DEVICE_ID = "rlv_device_id"
    PROFILE_ID = "rlv_profile_id"
    SESSION_ID = "rlv_session_id"
    SESSION_TIMESTAMP = "rlv_session_timestamp"
    CART = "rlv_cart"
    WISHLIST = "rlv_wishlist"
    CART_INITIALIZED = "rlv_cart_initialized"
    WISHLIST_INITIALIZED = "rlv_wishlist_initialized"
    PENDING_ENGAGEMENT_EVENTS = "rlv_pending_engagement_events"
    PUSH_TOKEN = "rlv_push_token"
    DEVICE_TYPE = "rlv_device_type"
    SDK_VERSION = "rlv_sdk_version"
    LAST_SYNC = "rlv_last_sync"
    MERGE_PROFILE_IDS = "rlv_merge_profile_ids"


#: Keys removed by :meth:`StorageService.clear_user_data`.
_USER_DATA_KEYS: tuple[StorageKey, ...] = (
    StorageKey.PROFILE_ID,
    StorageKey.SESSION_ID,
    StorageKey.SESSION_TIMESTAMP,
    StorageKey.CART,
    StorageKey.WISHLIST,
    StorageKey.CART_INITIALIZED,
    StorageKey.WISHLIST_INITIALIZED,
    StorageKey.PENDING_ENGAGEMENT_EVENTS,
    StorageKey.LAST_SYNC,
    StorageKey.MERGE_PROFILE_IDS,
)


class KeyValueStore(Protocol):
    """Structural interface for durable key-value backends.

    Values are JSON-compatible (``None``, bool, numbers, strings, lists and
    dicts of those).
    """

    def get(self, key: str) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self) -> list[str]:
        ...


class MemoryKeyValueStore:
    """Process-local store, used in tests and short-lived contexts."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)


class JsonFileKeyValueStore:
    """Store backed by a single JSON document on disk.

    The document is loaded lazily on first access and rewritten atomically
    (temporary file + ``os.replace``) on every mutation.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._data: dict[str, Any] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data
        data: dict[str, Any] = {}
        if self._path.exists():
            try:
                with self._path.open("r", encoding="utf-8") as handle:
                    loaded = json.load(handle)
            except (OSError, json.JSONDecodeError):
                _logger.warning("Could not read %s; starting with an empty store", self._path, exc_info=True)
            else:
                if isinstance(loaded, dict):
                    data = loaded
                else:
                    _logger.warning("Ignoring non-object JSON document in %s", self._path)
        self._data = data
        return data

    def _save(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
            os.replace(tmp_name, self._path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise

    def get(self, key: str) -> Any:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._save(data)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._load())


class StorageService:
    """Typed accessors over a :class:`KeyValueStore`.

    Parameters
    ----------
    store : KeyValueStore
        Durable backend.
    clock : callable, optional
        Returns the current UTC time. Injectable for deterministic tests.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._clock = clock
        self._check_schema_version()

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def _get_str(self, key: StorageKey) -> str | None:
        value = self._store.get(key)
        return value if isinstance(value, str) else None

    def _get_bool(self, key: StorageKey) -> bool:
        return self._store.get(key) is True

    # ------------------------------------------------------------------
    # Schema version
    # ------------------------------------------------------------------

    def _check_schema_version(self) -> None:
        stored = self._get_str(StorageKey.SDK_VERSION)
        if stored == SCHEMA_VERSION:
            return
        if stored is not None:
            self._migrate(stored, SCHEMA_VERSION)
        self._store.set(StorageKey.SDK_VERSION, SCHEMA_VERSION)

    def _migrate(self, from_version: str, to_version: str) -> None:
        # No structural migrations exist yet.
        _logger.info("Migrating stored data from schema %s to %s", from_version, to_version)

    @property
    def schema_version(self) -> str | None:
        return self._get_str(StorageKey.SDK_VERSION)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def save_device_id(self, device_id: str) -> None:
        self._store.set(StorageKey.DEVICE_ID, device_id)

    def get_device_id(self) -> str | None:
        return self._get_str(StorageKey.DEVICE_ID)

    def clear_device_id(self) -> None:
        self._store.delete(StorageKey.DEVICE_ID)

    def save_profile_id(self, profile_id: str) -> None:
        self._store.set(StorageKey.PROFILE_ID, profile_id)

    def get_profile_id(self) -> str | None:
        return self._get_str(StorageKey.PROFILE_ID)

    def clear_profile_id(self) -> None:
        self._store.delete(StorageKey.PROFILE_ID)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def save_session(self, session_id: str, created_at: datetime) -> None:
        self._store.set(StorageKey.SESSION_ID, session_id)
        self._store.set(StorageKey.SESSION_TIMESTAMP, ensure_utc(created_at).timestamp())

    def get_session(self) -> tuple[str, datetime] | None:
        """Return the stored ``(session_id, created_at)`` pair, if complete."""
        session_id = self._get_str(StorageKey.SESSION_ID)
        timestamp = self._store.get(StorageKey.SESSION_TIMESTAMP)
        if session_id is None or not isinstance(timestamp, (int, float)) or isinstance(timestamp, bool):
            return None
        return session_id, datetime.fromtimestamp(float(timestamp), tz=UTC)

    def clear_session(self) -> None:
        self._store.delete(StorageKey.SESSION_ID)
        self._store.delete(StorageKey.SESSION_TIMESTAMP)

    # ------------------------------------------------------------------
    # Cart / wishlist
    # ------------------------------------------------------------------

    def save_cart(self, cart: Cart) -> None:
        self._store.set(StorageKey.CART, cart.model_dump(mode="json", by_alias=True))

    def get_cart(self) -> Cart | None:
        raw = self._store.get(StorageKey.CART)
        if raw is None:
            return None
        try:
            return Cart.model_validate(raw)
        except ValidationError:
            _logger.warning("Discarding undecodable stored cart", exc_info=True)
            return None

    def clear_cart(self) -> None:
        self._store.delete(StorageKey.CART)
        self._store.delete(StorageKey.CART_INITIALIZED)

    def save_wishlist(self, products: Iterable[WishlistProduct]) -> None:
        self._store.set(
            StorageKey.WISHLIST,
            [product.model_dump(mode="json", by_alias=True) for product in products],
        )

    def get_wishlist(self) -> list[WishlistProduct] | None:
        raw = self._store.get(StorageKey.WISHLIST)
        if not isinstance(raw, list):
            return None
        try:
            return [WishlistProduct.model_validate(item) for item in raw]
        except ValidationError:
            _logger.warning("Discarding undecodable stored wishlist", exc_info=True)
            return None

    def clear_wishlist(self) -> None:
        self._store.delete(StorageKey.WISHLIST)
        self._store.delete(StorageKey.WISHLIST_INITIALIZED)

    def mark_cart_initialized(self) -> None:
        self._store.set(StorageKey.CART_INITIALIZED, True)

    def is_cart_initialized(self) -> bool:
        return self._get_bool(StorageKey.CART_INITIALIZED)

    def mark_wishlist_initialized(self) -> None:
        self._store.set(StorageKey.WISHLIST_INITIALIZED, True)

    def is_wishlist_initialized(self) -> bool:
        return self._get_bool(StorageKey.WISHLIST_INITIALIZED)

    # ------------------------------------------------------------------
    # Pending engagement events
    # ------------------------------------------------------------------

    def save_pending_events(self, events: Iterable[EngagementEvent]) -> None:
        self._store.set(StorageKey.PENDING_ENGAGEMENT_EVENTS, [event.to_storage() for event in events])

    def get_pending_events(self) -> list[EngagementEvent]:
        """Return stored events in order; undecodable entries are dropped."""
        raw = self._store.get(StorageKey.PENDING_ENGAGEMENT_EVENTS)
        if not isinstance(raw, list):
            return []
        events: list[EngagementEvent] = []
        for item in raw:
            try:
                events.append(EngagementEvent.model_validate(item))
            except ValidationError:
                _logger.debug("Dropping undecodable pending engagement event: %r", item)
        return events

    def add_pending_event(self, event: EngagementEvent) -> None:
        events = self.get_pending_events()
        events.append(event)
        self.save_pending_events(events)

    def remove_pending_events(self, notification_ids: Iterable[str]) -> None:
        ids = set(notification_ids)
        if not ids:
            return
        remaining = [event for event in self.get_pending_events() if event.notification_id not in ids]
        self.save_pending_events(remaining)

    def clear_pending_events(self) -> None:
        self._store.delete(StorageKey.PENDING_ENGAGEMENT_EVENTS)

    # ------------------------------------------------------------------
    # Push token
    # ------------------------------------------------------------------

    def save_push_token(self, token: str, device_type: DeviceType) -> None:
        self._store.set(StorageKey.PUSH_TOKEN, token)
        self._store.set(StorageKey.DEVICE_TYPE, device_type.value)

    def get_push_token(self) -> tuple[str, DeviceType] | None:
        token = self._get_str(StorageKey.PUSH_TOKEN)
        raw_type = self._get_str(StorageKey.DEVICE_TYPE)
        if token is None or raw_type is None:
            return None
        try:
            return token, DeviceType(raw_type)
        except ValueError:
            return token, DeviceType.OTHER

    def clear_push_token(self) -> None:
        self._store.delete(StorageKey.PUSH_TOKEN)
        self._store.delete(StorageKey.DEVICE_TYPE)

    # ------------------------------------------------------------------
    # Merge profile ids
    # ------------------------------------------------------------------

    def save_merge_profile_ids(self, profile_ids: Iterable[str]) -> None:
        self._store.set(StorageKey.MERGE_PROFILE_IDS, list(profile_ids))

    def get_merge_profile_ids(self) -> list[str]:
        raw = self._store.get(StorageKey.MERGE_PROFILE_IDS)
        if not isinstance(raw, list):
            return []
        return [item for item in raw if isinstance(item, str)]

    def add_merge_profile_id(self, profile_id: str) -> None:
        ids = self.get_merge_profile_ids()
        if profile_id not in ids:
            ids.append(profile_id)
            self.save_merge_profile_ids(ids)

    def clear_merge_profile_ids(self) -> None:
        self._store.delete(StorageKey.MERGE_PROFILE_IDS)

    # ------------------------------------------------------------------
    # Sync bookkeeping
    # ------------------------------------------------------------------

    def save_last_sync(self, when: datetime | None = None) -> None:
        self._store.set(StorageKey.LAST_SYNC, ensure_utc(when or self._clock()).timestamp())

    def get_last_sync(self) -> datetime | None:
        raw = self._store.get(StorageKey.LAST_SYNC)
        if not isinstance(raw, (int, float)) or isinstance(raw, bool):
            return None
        return datetime.fromtimestamp(float(raw), tz=UTC)

    def is_sync_needed(self, interval: timedelta) -> bool:
        last = self.get_last_sync()
        if last is None:
            return True
        return self._clock() - last > interval

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def clear_user_data(self) -> None:
        """Remove user-scoped data; the device id and settings are kept.

        Components hydrated from storage (``ChangeTracker``, ``SessionManager``,
        ``EngagementBatcher``) keep their in-memory copies, so a client must be
        rebuilt after this call.
        """
        for key in _USER_DATA_KEYS:
            self._store.delete(key)

    def clear_all_data(self) -> None:
        """Remove every ``rlv_*`` key, the device id and schema version included.

        As with :meth:`clear_user_data`, rebuild the client afterwards.
        """
        for key in StorageKey:
            self._store.delete(key)

    def stats(self) -> dict[str, Any]:
        cart = self.get_cart()
        wishlist = self.get_wishlist()
        return {
            "has_device_id": self.get_device_id() is not None,
            "has_profile_id": self.get_profile_id() is not None,
            "has_session": self.get_session() is not None,
            "cart_items": len(cart.products) if cart is not None else 0,
            "wishlist_items": len(wishlist) if wishlist is not None else 0,
            "pending_events": len(self.get_pending_events()),
            "merge_profile_ids": len(self.get_merge_profile_ids()),
            "has_push_token": self.get_push_token() is not None,
            "last_sync": self.get_last_sync(),
            "schema_version": self.schema_version,
        }
