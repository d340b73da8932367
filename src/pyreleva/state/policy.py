"""Deterministic change-flag policy.

Pure functions only: no storage, no clock, no I/O.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from pyreleva.state.events import (
    EntityCleared,
    StateEvent,
    SyncAcknowledged,
    SyncFailed,
    TrackedEntity,
    ValueCommitted,
)

_FLAG_FIELDS: dict[TrackedEntity, str] = {
    TrackedEntity.DEVICE_ID: "device_id_changed",
    TrackedEntity.PROFILE: "profile_changed",
    TrackedEntity.CART: "cart_changed",
    TrackedEntity.WISHLIST: "wishlist_changed",
}


class ChangeFlags(BaseModel):
    """Per-entity "changed since last successful sync" markers.

    ``generation`` increases with every differing commit so an
    acknowledgement can tell whether state moved while its push was in
    flight.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    device_id_changed: bool = False
    profile_changed: bool = False
    cart_changed: bool = False
    wishlist_changed: bool = False
    generation: int = 0

    def is_set(self, entity: TrackedEntity) -> bool:
        return bool(getattr(self, _FLAG_FIELDS[entity]))

    @property
    def any_changed(self) -> bool:
        return self.device_id_changed or self.profile_changed or self.cart_changed or self.wishlist_changed


def reduce_flags(flags: ChangeFlags, event: StateEvent) -> ChangeFlags:
    """Return the flags after applying *event*.

    Policy:
    - A baseline commit never sets a flag.
    - A differing commit sets the entity's flag and bumps the generation.
    - An identical resubmission leaves the flags as they are.
    - An acknowledgement clears all flags only if no commit happened since
      the acknowledged push was built.
    - A failed sync changes nothing.
    """
    if isinstance(event, ValueCommitted):
        if event.baseline or not event.differs:
            return flags
        return flags.model_copy(update={_FLAG_FIELDS[event.entity]: True, "generation": flags.generation + 1})

    if isinstance(event, EntityCleared):
        return flags.model_copy(update={_FLAG_FIELDS[event.entity]: False})

    if isinstance(event, SyncAcknowledged):
        if event.generation != flags.generation:
            return flags
        return ChangeFlags(generation=flags.generation)

    if isinstance(event, SyncFailed):
        return flags

    raise TypeError(f"Unsupported state event: {event!r}")
