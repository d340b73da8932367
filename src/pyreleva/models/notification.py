"""Releva fields carried by a raw push notification payload.

Push providers place custom fields either at the top level of the payload
(next to ``aps``) or nested under a ``data`` key. Every field is probed in
both places, preferring the nested ``data`` value.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pyreleva._constants import RELEVA_CLICK_ACTION
from pyreleva.models._base import RelevaBaseModel

_RESERVED_KEYS = frozenset({"aps"})


def _as_str(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _probe(payload: Mapping[Any, Any], key: str) -> Any:
    nested = payload.get("data")
    if isinstance(nested, Mapping) and key in nested:
        return nested[key]
    if key in _RESERVED_KEYS:
        return None
    return payload.get(key)


class NotificationData(RelevaBaseModel):
    """Releva-specific fields extracted from a notification payload."""

    callback_url: str | None = None
    notification_id: str | None = None
    click_action: str | None = None
    target: str | None = None
    navigate_to_screen: str | None = None
    navigate_to_parameters: str | None = None
    navigate_to_url: str | None = None
    title: str | None = None
    body: str | None = None
    button: str | None = None
    image_url: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[Any, Any]) -> NotificationData:
        return cls(
            callback_url=_as_str(_probe(payload, "callbackUrl")),
            notification_id=_as_str(_probe(payload, "notificationId")),
            click_action=_as_str(_probe(payload, "click_action")),
            target=_as_str(_probe(payload, "target")),
            navigate_to_screen=_as_str(_probe(payload, "navigate_to_screen")),
            navigate_to_parameters=_as_str(_probe(payload, "navigate_to_parameters")),
            navigate_to_url=_as_str(_probe(payload, "navigate_to_url")),
            title=_as_str(_probe(payload, "title")),
            body=_as_str(_probe(payload, "body")),
            button=_as_str(_probe(payload, "button")),
            image_url=_as_str(_probe(payload, "imageUrl")),
        )

    @property
    def is_releva(self) -> bool:
        return self.click_action == RELEVA_CLICK_ACTION

    def engagement_metadata(self) -> dict[str, str]:
        metadata: dict[str, str] = {}
        if self.target is not None:
            metadata["target"] = self.target
        if self.navigate_to_screen is not None:
            metadata["screen"] = self.navigate_to_screen
        if self.navigate_to_url is not None:
            metadata["url"] = self.navigate_to_url
        return metadata
