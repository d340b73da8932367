"""State transition events.

Every mutation of tracked user state is described by one of these events.
Only :func:`pyreleva.state.policy.reduce_flags` interprets them.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class TrackedEntity(StrEnum):
    DEVICE_ID = "device_id"
    PROFILE = "profile"
    CART = "cart"
    WISHLIST = "wishlist"


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class ValueCommitted(_Event):
    """A new value for *entity* was persisted.

    ``baseline`` is set for the first value ever observed (nothing to
    compare against); ``differs`` tells whether the value changed.
    """

    kind: Literal["value_committed"] = "value_committed"
    entity: TrackedEntity
    baseline: bool = False
    differs: bool = True


class EntityCleared(_Event):
    kind: Literal["entity_cleared"] = "entity_cleared"
    entity: TrackedEntity


class SyncAcknowledged(_Event):
    """The server accepted a push built at ``generation``."""

    kind: Literal["sync_acknowledged"] = "sync_acknowledged"
    generation: int = Field(..., ge=0)


class SyncFailed(_Event):
    kind: Literal["sync_failed"] = "sync_failed"


StateEvent = Annotated[
    ValueCommitted | EntityCleared | SyncAcknowledged | SyncFailed,
    Field(discriminator="kind"),
]

STATE_EVENT_ADAPTER: TypeAdapter[StateEvent] = TypeAdapter(StateEvent)
