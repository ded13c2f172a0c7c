from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional, Union

__all__ = (
    "StatusKind",
    "CacheRecord",
    "Fetched",
    "Revalidated",
    "ResolvedEntity",
    "NotHandled",
    "NotResolvable",
    "Resolution",
    "PERMANENT_REDIRECT_CODES",
    "TEMPORARY_REDIRECT_CODES",
)

PERMANENT_REDIRECT_CODES = frozenset([301, 308])
TEMPORARY_REDIRECT_CODES = frozenset([302, 307])


class StatusKind(enum.Enum):
    SUCCESS = "success"
    REDIRECT = "redirect"
    NOT_FOUND = "not_found"
    OTHER = "other"

    @classmethod
    def from_status(cls, status: int) -> "StatusKind":
        if status == 200:
            return cls.SUCCESS
        if status in PERMANENT_REDIRECT_CODES or status in TEMPORARY_REDIRECT_CODES:
            return cls.REDIRECT
        if status == 404:
            return cls.NOT_FOUND
        return cls.OTHER


@dataclass(frozen=True)
class CacheRecord:
    """
    The persisted outcome of one fetch.

    `status` keeps the raw HTTP status code so that redirect permanence can be
    derived from it. Which of `validator`, `location` and `payload` carry
    meaning depends on `kind`.
    """

    status: int
    validator: Optional[str] = None
    location: Optional[str] = None
    payload: Optional[bytes] = None
    fetched_at: Optional[float] = None

    @property
    def kind(self) -> StatusKind:
        return StatusKind.from_status(self.status)

    @property
    def is_permanent_redirect(self) -> bool:
        return self.status in PERMANENT_REDIRECT_CODES

    def age(self, now: float) -> float:
        if self.fetched_at is None:
            return float("inf")
        return max(0.0, now - self.fetched_at)

    @classmethod
    def success(cls, payload: bytes, validator: Optional[str] = None) -> "CacheRecord":
        return cls(status=200, validator=validator, payload=payload)

    @classmethod
    def redirect(cls, status: int, location: str) -> "CacheRecord":
        return cls(status=status, location=location)

    @classmethod
    def not_found(cls) -> "CacheRecord":
        return cls(status=404)


@dataclass(frozen=True)
class Fetched:
    """A completed exchange whose outcome was written as a new record."""

    key: str
    record: CacheRecord
    previous_fetched_at: Optional[float] = None

    @property
    def replaced(self) -> bool:
        return self.previous_fetched_at is not None


@dataclass(frozen=True)
class Revalidated:
    """A 304 answer: the stored record was confirmed and its timestamp refreshed."""

    key: str
    fetched_at: float


@dataclass(frozen=True)
class ResolvedEntity:
    content: bytes
    identifier_hint: Any
    uri: str
    final_uri: str
    stale: bool = False


@dataclass(frozen=True)
class NotHandled:
    uri: str
    reason: str


@dataclass(frozen=True)
class NotResolvable:
    uri: str
    reason: str


Resolution = Union[ResolvedEntity, NotHandled, NotResolvable]
