"""Base model for Releva payloads.

Every model inherits from :class:`RelevaBaseModel` which provides:

* ``alias_generator=to_camel`` so camelCase wire keys map automatically to
  snake_case fields (``callbackUrl`` -> ``callback_url``).
* Frozen instances, so structural equality is plain ``==``.
* :meth:`RelevaBaseModel.to_payload` for the wire/dictionary form.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are assumed UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def format_iso8601(value: datetime) -> str:
    """Format a timestamp as second-precision ISO-8601 with a ``Z`` suffix."""
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


class RelevaBaseModel(BaseModel):
    """Base for Releva value objects."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_payload(self) -> dict[str, Any]:
        """Dictionary form sent over the wire (camelCase keys, no ``None`` values)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
