"""High-level async client for the Releva tracking and push API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

import aiohttp

from pyreleva._transport import AiohttpTransport, HttpTransport, RetryingTransport
from pyreleva.batcher import EngagementBatcher, FlushOutcome
from pyreleva.capabilities import CapabilityProvider, NoopCapabilityProvider
from pyreleva.config import ApiCredentials, RelevaConfig
from pyreleva.exceptions import RelevaConfigError, RelevaError
from pyreleva.models._base import utcnow
from pyreleva.models.cart import Cart, WishlistProduct
from pyreleva.models.device import DeviceType
from pyreleva.models.engagement import EngagementEventType
from pyreleva.models.requests import PushRequest
from pyreleva.models.responses import RelevaResponse, SyncResult
from pyreleva.notifications import is_releva_message
from pyreleva.session import Session, SessionManager
from pyreleva.state.events import ValueCommitted
from pyreleva.state.policy import ChangeFlags
from pyreleva.state.tracker import ChangeTracker
from pyreleva.storage import KeyValueStore, MemoryKeyValueStore, StorageService
from pyreleva.sync import SyncCoordinator

_logger = logging.getLogger(__name__)

_default_client: RelevaClient | None = None


def register_default_client(client: RelevaClient) -> None:
    """Make *client* the process-wide default instance.

    Raises
    ------
    RelevaConfigError
        If a different client is already registered.
    """
    global _default_client
    if _default_client is not None and _default_client is not client:
        raise RelevaConfigError("A default RelevaClient is already registered")
    _default_client = client


def get_default_client() -> RelevaClient | None:
    return _default_client


def clear_default_client() -> None:
    global _default_client
    _default_client = None


class RelevaClient:
    """Async client for the Releva API.

    Usage::

        async with RelevaClient("my-realm", "token") as client:
            client.set_device_id("device-1")
            result = await client.track_screen_view("home")

    Parameters
    ----------
    realm : str
        Account realm; requests go to ``https://<realm>.releva.ai`` unless
        ``config.custom_endpoint`` is set.
    access_token : str
        Bearer token for every request.
    config : RelevaConfig, optional
        Defaults to :meth:`RelevaConfig.full`.
    store : KeyValueStore, optional
        Durable backend. Defaults to a process-local memory store.
    session : aiohttp.ClientSession, optional
        Shared HTTP session; the client opens and closes its own otherwise.
    capabilities : CapabilityProvider, optional
        Host capabilities used when enabling push engagement tracking.
    transport : HttpTransport, optional
        Single-attempt transport replacing the aiohttp one.
    """

    def __init__(
        self,
        realm: str,
        access_token: str,
        config: RelevaConfig | None = None,
        *,
        store: KeyValueStore | None = None,
        session: aiohttp.ClientSession | None = None,
        capabilities: CapabilityProvider | None = None,
        transport: HttpTransport | None = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config or RelevaConfig.full()
        if self._config.enable_debug_logging:
            logging.getLogger("pyreleva").setLevel(logging.DEBUG)

        self._credentials = ApiCredentials(realm=realm, access_token=access_token)
        self._capabilities: CapabilityProvider = capabilities or NoopCapabilityProvider()
        self._clock = clock
        self._sleep = sleep
        self._storage = StorageService(store if store is not None else MemoryKeyValueStore(), clock=clock)
        self._sessions = SessionManager(self._storage, clock=clock)
        self._tracker = ChangeTracker(self._storage)

        self._external_session = session is not None
        self._http_session = session
        self._http_transport = transport
        self._coordinator: SyncCoordinator | None = None
        self._batcher: EngagementBatcher | None = None
        self._background: set[asyncio.Task[Any]] = set()

        if transport is not None or session is not None:
            self._build_components()

        _logger.debug("Initialized with realm %r", realm)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> RelevaClient:
        if self._coordinator is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._build_components()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def _build_components(self) -> None:
        if self._http_transport is None:
            assert self._http_session is not None  # noqa: S101
            self._http_transport = AiohttpTransport(
                self._http_session,
                timeout=self._config.request_timeout_interval,
            )
        retrying = RetryingTransport(self._http_transport, sleep=self._sleep)
        self._coordinator = SyncCoordinator(
            self._credentials,
            self._config,
            retrying,
            self._storage,
            self._tracker,
            self._sessions,
        )
        self._batcher = EngagementBatcher(
            self._credentials,
            self._config,
            retrying,
            self._storage,
            clock=self._clock,
            sleep=self._sleep,
        )

    async def close(self) -> None:
        """Stop background work, flush engagement once more and release HTTP resources."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        if self._batcher is not None:
            await self._batcher.stop()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._http_transport = None
            self._coordinator = None
            self._batcher = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_coordinator(self) -> SyncCoordinator:
        if self._coordinator is None:
            raise RelevaError("Client not initialized. Use 'async with RelevaClient(...) as client:'")
        return self._coordinator

    def _require_batcher(self) -> EngagementBatcher:
        if self._batcher is None:
            raise RelevaError("Client not initialized. Use 'async with RelevaClient(...) as client:'")
        return self._batcher

    def _maybe_auto_sync(self, event: ValueCommitted, what: str) -> None:
        if event.baseline or not event.differs:
            return
        if not (self._config.enable_tracking and self._config.enable_screen_tracking):
            _logger.debug("%s changed; automatic screen sync disabled", what)
            return
        if self._coordinator is None:
            _logger.debug("%s changed before client initialization; not syncing", what)
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _logger.debug("%s changed outside an event loop; not syncing", what)
            return
        task = loop.create_task(self._auto_sync(what))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _auto_sync(self, what: str) -> None:
        result = await self.track_screen_view()
        if result.ok:
            _logger.debug("%s changes synced to backend", what)
        else:
            _logger.debug("Failed to sync %s changes: %s", what.lower(), result.error)

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> RelevaConfig:
        return self._config

    @property
    def storage(self) -> StorageService:
        return self._storage

    @property
    def flags(self) -> ChangeFlags:
        return self._tracker.flags

    @property
    def merge_profile_ids(self) -> list[str]:
        return self._tracker.merge_profile_ids

    @property
    def device_id(self) -> str | None:
        return self._tracker.device_id

    @property
    def profile_id(self) -> str | None:
        return self._tracker.profile_id

    @property
    def cart(self) -> Cart | None:
        return self._tracker.cart

    @property
    def wishlist(self) -> list[WishlistProduct] | None:
        wishlist = self._tracker.wishlist
        return list(wishlist) if wishlist is not None else None

    @property
    def session(self) -> Session:
        return self._sessions.current()

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def engagement(self) -> EngagementBatcher:
        return self._require_batcher()

    async def wait_for_background_syncs(self) -> None:
        """Wait until automatic cart/wishlist syncs scheduled so far have finished."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Identity, cart and wishlist
    # ------------------------------------------------------------------

    def set_device_id(self, device_id: str) -> None:
        """Commit the device id. Never triggers a sync."""
        self._tracker.set_device_id(device_id)

    def set_profile_id(self, profile_id: str) -> None:
        """Commit the profile id; a replaced id is sent as a merge id on the next push."""
        self._tracker.set_profile_id(profile_id)

    def set_cart(self, cart: Cart) -> None:
        """Commit the cart and sync in the background if it changed."""
        event = self._tracker.set_cart(cart)
        self._maybe_auto_sync(event, "Cart")

    def set_wishlist(self, products: Iterable[WishlistProduct]) -> None:
        event = self._tracker.set_wishlist(products)
        self._maybe_auto_sync(event, "Wishlist")

    def clear_cart_storage(self) -> None:
        self._tracker.clear_cart()

    def clear_wishlist_storage(self) -> None:
        self._tracker.clear_wishlist()

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    async def push(self, request: PushRequest | None = None) -> SyncResult[RelevaResponse]:
        if not self._config.enable_tracking:
            return SyncResult.success(RelevaResponse.empty())
        return await self._require_coordinator().push(request)

    async def track_screen_view(
        self,
        screen_token: str | None = None,
        *,
        product_ids: list[str] | None = None,
        categories: list[str] | None = None,
        filter_payload: dict[str, Any] | None = None,
        locale: str | None = None,
        currency: str | None = None,
    ) -> SyncResult[RelevaResponse]:
        request = PushRequest.for_screen_view(
            screen_token,
            product_ids=product_ids,
            categories=categories,
            filter_payload=filter_payload,
        )
        if locale is not None:
            request.locale(locale)
        if currency is not None:
            request.currency(currency)
        return await self.push(request)

    async def track_product_view(
        self,
        product: dict[str, Any],
        screen_token: str | None = None,
    ) -> SyncResult[RelevaResponse]:
        return await self.push(PushRequest.for_product_view(product, screen_token))

    async def track_search_view(
        self,
        query: str,
        *,
        result_product_ids: list[str] | None = None,
        screen_token: str | None = None,
        filter_payload: dict[str, Any] | None = None,
    ) -> SyncResult[RelevaResponse]:
        request = PushRequest.for_search(
            query,
            result_product_ids=result_product_ids,
            screen_token=screen_token,
            filter_payload=filter_payload,
        )
        return await self.push(request)

    async def track_checkout_success(
        self,
        ordered_cart: Cart,
        screen_token: str | None = None,
        *,
        email: str | None = None,
        phone_number: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        registered_at: datetime | None = None,
    ) -> SyncResult[RelevaResponse]:
        request = PushRequest.for_checkout_success(ordered_cart, screen_token).profile(
            email=email,
            phone_number=phone_number,
            first_name=first_name,
            last_name=last_name,
            registered_at=registered_at,
        )
        return await self.push(request)

    async def track_custom_event(
        self,
        event: dict[str, Any],
        screen_token: str | None = None,
    ) -> SyncResult[RelevaResponse]:
        return await self.push(PushRequest.for_custom_event(event, screen_token))

    # ------------------------------------------------------------------
    # Push notifications
    # ------------------------------------------------------------------

    async def register_push_token(self, token: str, device_type: DeviceType | None = None) -> SyncResult[bool]:
        return await self._require_coordinator().register_push_token(token, device_type)

    def enable_push_engagement_tracking(self) -> None:
        """Start the engagement flush timer and register for remote notifications."""
        if not self._config.enable_push_notifications:
            return
        self._require_batcher().start()
        self._capabilities.register_for_remote_notifications()
        _logger.debug("Push engagement tracking enabled")

    async def track_engagement(
        self,
        payload: Mapping[Any, Any],
        event_type: EngagementEventType = EngagementEventType.OPENED,
        *,
        action_identifier: str | None = None,
    ) -> bool:
        """Queue an engagement event built from a notification payload.

        Returns ``False`` when push notifications are disabled or the payload
        carries no usable callback URL.
        """
        if not self._config.enable_push_notifications:
            return False
        batcher = self._require_batcher()
        if event_type is EngagementEventType.DELIVERED:
            return await batcher.track_delivered(payload)
        if event_type is EngagementEventType.CLICKED:
            return await batcher.track_clicked(payload, action_identifier)
        return await batcher.track_opened(payload)

    async def flush_engagement(self) -> FlushOutcome:
        return await self._require_batcher().flush()

    @staticmethod
    def is_releva_message(payload: Mapping[Any, Any]) -> bool:
        return is_releva_message(payload)
