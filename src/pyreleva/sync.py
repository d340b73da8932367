"""Sync coordinator: builds push requests from tracked state and applies outcomes."""

from __future__ import annotations

import asyncio
import logging

from pyreleva._api.push import build_push_payload, send_push
from pyreleva._api.tokens import build_token_payload, register_token
from pyreleva._transport import RetryingTransport
from pyreleva.config import ApiCredentials, RelevaConfig
from pyreleva.exceptions import RelevaError, RelevaMissingFieldError
from pyreleva.models.device import DeviceType
from pyreleva.models.requests import PushRequest
from pyreleva.models.responses import RelevaResponse, SyncResult
from pyreleva.session import SessionManager
from pyreleva.state.policy import ChangeFlags
from pyreleva.state.tracker import ChangeTracker
from pyreleva.storage import StorageService

_logger = logging.getLogger(__name__)


class SyncCoordinator:
    """Sends push requests and reconciles change flags with the outcome.

    Errors never escape: every call returns a :class:`SyncResult`. A failed
    push leaves flags, merge ids and snapshots exactly as they were so the
    next attempt carries the same diff.
    """

    def __init__(
        self,
        credentials: ApiCredentials,
        config: RelevaConfig,
        transport: RetryingTransport,
        storage: StorageService,
        tracker: ChangeTracker,
        sessions: SessionManager,
    ) -> None:
        self._credentials = credentials
        self._config = config
        self._transport = transport
        self._storage = storage
        self._tracker = tracker
        self._sessions = sessions
        self._push_lock = asyncio.Lock()

    @property
    def tracker(self) -> ChangeTracker:
        return self._tracker

    @property
    def flags(self) -> ChangeFlags:
        return self._tracker.flags

    async def push(self, request: PushRequest | None = None) -> SyncResult[RelevaResponse]:
        """Send tracked state plus *request* to the push endpoint.

        With tracking disabled this returns an empty success without any
        network call or state change.
        """
        if not self._config.enable_tracking:
            _logger.debug("Tracking disabled; skipping push")
            return SyncResult.success(RelevaResponse.empty())

        request = request if request is not None else PushRequest()
        async with self._push_lock:
            snapshot = self._tracker.snapshot()
            session = self._sessions.current()
            payload = build_push_payload(session.session_id, snapshot, request)
            try:
                response = await send_push(self._credentials, self._config, self._transport, payload)
            except RelevaError as exc:
                _logger.debug("Push failed: %s", exc, exc_info=True)
                self._tracker.record_failure()
                return SyncResult.failure(exc)

            self._tracker.acknowledge(snapshot)
            self._storage.save_last_sync()
            return SyncResult.success(response)

    async def register_push_token(self, token: str, device_type: DeviceType | None = None) -> SyncResult[bool]:
        """Register *token* for the current device.

        Returns ``success(False)`` when push notifications are disabled.
        """
        if not self._config.enable_push_notifications:
            _logger.debug("Push notifications disabled; token not registered")
            return SyncResult.success(False)
        if not token or not token.strip():
            return SyncResult.failure(RelevaMissingFieldError("Push token cannot be empty", field="pushToken"))
        device_id = self._tracker.device_id
        if device_id is None:
            return SyncResult.failure(
                RelevaMissingFieldError("deviceId must be set before registering push token", field="deviceId")
            )

        device_type = device_type if device_type is not None else DeviceType.current()
        payload = build_token_payload(token, device_type, device_id, self._tracker.profile_id)
        try:
            await register_token(self._credentials, self._config, self._transport, payload)
        except RelevaError as exc:
            _logger.debug("Push token registration failed: %s", exc, exc_info=True)
            return SyncResult.failure(exc)
        self._storage.save_push_token(token, device_type)
        _logger.debug("Registered push token for %s", device_type.value)
        return SyncResult.success(True)
