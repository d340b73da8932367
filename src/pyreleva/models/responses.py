"""Typed responses and call outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pyreleva.exceptions import RelevaError

T = TypeVar("T")


class RelevaResponse(BaseModel):
    """Response of the push endpoint.

    Recommender blocks are kept as raw dictionaries.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    recommenders: list[dict[str, Any]] = Field(default_factory=list)
    push: dict[str, Any] | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _ensure_raw(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        merged = dict(values)
        merged.setdefault("raw", values)
        if merged.get("recommenders") is None:
            merged["recommenders"] = []
        return merged

    @classmethod
    def empty(cls) -> RelevaResponse:
        return cls(recommenders=[], push=None, raw={})

    @property
    def has_recommenders(self) -> bool:
        return bool(self.recommenders)

    def recommender_by_token(self, token: str) -> dict[str, Any] | None:
        for recommender in self.recommenders:
            if recommender.get("token") == token:
                return recommender
        return None


@dataclass(frozen=True, slots=True)
class SyncResult(Generic[T]):
    """Outcome of a coordinator call: either a value or a typed error."""

    value: T | None = None
    error: RelevaError | None = None

    @classmethod
    def success(cls, value: T) -> SyncResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: RelevaError) -> SyncResult[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
