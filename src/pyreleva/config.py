"""Client configuration for pyreleva."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pyreleva.exceptions import RelevaConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class ApiCredentials:
    """Realm and access token used to address and authenticate API calls."""

    realm: str
    access_token: str


@dataclasses.dataclass(frozen=True)
class RelevaConfig:
    """Client configuration.

    Parameters
    ----------
    enable_tracking : bool
        Send push (sync) requests. When disabled every sync short-circuits
        to an empty success without touching the network or local state.
    enable_screen_tracking : bool
        Allow automatic screen view syncs after cart/wishlist changes.
    enable_push_notifications : bool
        Enable push token registration and engagement tracking.
    enable_analytics : bool
        Analytics data collection toggle for the host app. The engine never
        reads it; hosts consult ``client.config.enable_analytics``.
    enable_debug_logging : bool
        Raise the ``pyreleva`` logger to DEBUG on client construction.
    custom_endpoint : str or None
        Base URL override. Defaults to ``https://<realm>.releva.ai``.
    request_timeout_interval : float
        Per-request timeout in seconds. Must be positive.
    max_retry_attempts : int
        Additional attempts after the first one for main sync requests.
        ``0`` disables retries. Must not be negative.
    engagement_batch_size : int
        Queue length that triggers an engagement flush, and the maximum
        number of events sent per flush. Must be positive.
    engagement_batch_interval : float
        Seconds between timer-driven engagement flushes. Must be positive.
    """

    enable_tracking: bool = True
    enable_screen_tracking: bool = True
    enable_push_notifications: bool = True
    enable_analytics: bool = True
    enable_debug_logging: bool = False
    custom_endpoint: str | None = None
    request_timeout_interval: float = 30.0
    max_retry_attempts: int = 3
    engagement_batch_size: int = 10
    engagement_batch_interval: float = 30.0

    def __post_init__(self) -> None:
        if self.request_timeout_interval <= 0:
            raise RelevaConfigError("Request timeout interval must be greater than 0")
        if self.max_retry_attempts < 0:
            raise RelevaConfigError("Max retry attempts cannot be negative")
        if self.engagement_batch_size <= 0:
            raise RelevaConfigError("Engagement batch size must be greater than 0")
        if self.engagement_batch_interval <= 0:
            raise RelevaConfigError("Engagement batch interval must be greater than 0")
        if self.custom_endpoint is not None and not self.custom_endpoint.strip():
            raise RelevaConfigError("Custom endpoint cannot be blank")

    # ------------------------------------------------------------------
    # Presets
    # ------------------------------------------------------------------

    @classmethod
    def full(cls) -> RelevaConfig:
        """All features enabled (the default)."""
        return cls()

    @classmethod
    def tracking_only(cls) -> RelevaConfig:
        return cls(enable_push_notifications=False)

    @classmethod
    def push_only(cls) -> RelevaConfig:
        return cls(enable_tracking=False, enable_screen_tracking=False, enable_analytics=False)

    @classmethod
    def minimal(cls) -> RelevaConfig:
        return cls(enable_screen_tracking=False, enable_analytics=False)

    @classmethod
    def debug(cls) -> RelevaConfig:
        return cls(enable_debug_logging=True)

    @classmethod
    def from_env(cls, **overrides: Any) -> RelevaConfig:
        """Create configuration from ``RELEVA_*`` environment variables.

        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        RelevaConfig
            Populated configuration.

        Raises
        ------
        RelevaConfigError
            If a numeric variable cannot be parsed or a value is out of range.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_BOOL_MAP = {
            "RELEVA_ENABLE_TRACKING": ("enable_tracking", True),
            "RELEVA_ENABLE_SCREEN_TRACKING": ("enable_screen_tracking", True),
            "RELEVA_ENABLE_PUSH_NOTIFICATIONS": ("enable_push_notifications", True),
            "RELEVA_ENABLE_ANALYTICS": ("enable_analytics", True),
            "RELEVA_DEBUG": ("enable_debug_logging", False),
        }
        for env_key, (field_name, default) in _ENV_BOOL_MAP.items():
            if field_name not in overrides:
                config_kwargs[field_name] = _env_bool(env.get(env_key), default)

        endpoint_env = env.get("RELEVA_CUSTOM_ENDPOINT")
        if endpoint_env and "custom_endpoint" not in overrides:
            config_kwargs["custom_endpoint"] = endpoint_env

        _ENV_NUMERIC_MAP = {
            "RELEVA_REQUEST_TIMEOUT": ("request_timeout_interval", float),
            "RELEVA_MAX_RETRY_ATTEMPTS": ("max_retry_attempts", int),
            "RELEVA_ENGAGEMENT_BATCH_SIZE": ("engagement_batch_size", int),
            "RELEVA_ENGAGEMENT_BATCH_INTERVAL": ("engagement_batch_interval", float),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = cast(val)
            except ValueError as exc:
                raise RelevaConfigError(f"{env_key} is not a valid number: {val!r}") from exc

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
