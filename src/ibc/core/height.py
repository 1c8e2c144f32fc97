# src/ibc/core/height.py
from __future__ import annotations

from pydantic import BaseModel, Field

from ibc.core.errors import ClientError, ClientErrorKind


class Height(BaseModel):
    """
    A (revision_number, revision_height) pair.

    Heights are totally ordered, first by revision number and then by
    revision height. The revision number only changes when the chain
    restarts or hard-forks; the revision height then resets.

    The zero height (0, 0) is used inside packets to mean "no height
    timeout".
    """

    revision_number: int = Field(default=0, ge=0)
    revision_height: int = Field(default=0, ge=0)

    class Config:
        frozen = True

    @classmethod
    def zero(cls) -> "Height":
        return cls(revision_number=0, revision_height=0)

    @classmethod
    def new(cls, revision_number: int, revision_height: int) -> "Height":
        return cls(revision_number=revision_number, revision_height=revision_height)

    @classmethod
    def parse(cls, value: str) -> "Height":
        """Parse the `"{revision_number}-{revision_height}"` form."""
        parts = value.split("-")
        if len(parts) != 2:
            raise ValueError(f"invalid height {value!r}, expected 'revision-height'")
        try:
            return cls(revision_number=int(parts[0]), revision_height=int(parts[1]))
        except ValueError as exc:
            raise ValueError(f"invalid height {value!r}") from exc

    def is_zero(self) -> bool:
        return self.revision_number == 0 and self.revision_height == 0

    def increment(self, by: int = 1) -> "Height":
        return Height(
            revision_number=self.revision_number,
            revision_height=self.revision_height + by,
        )

    def decrement(self) -> "Height":
        if self.revision_height == 0:
            raise ClientError(
                ClientErrorKind.INVALID_CLIENT_STATE,
                f"cannot decrement height {self}",
            )
        return Height(
            revision_number=self.revision_number,
            revision_height=self.revision_height - 1,
        )

    def _key(self) -> tuple:
        return (self.revision_number, self.revision_height)

    def __lt__(self, other: "Height") -> bool:
        return self._key() < other._key()

    def __le__(self, other: "Height") -> bool:
        return self._key() <= other._key()

    def __gt__(self, other: "Height") -> bool:
        return self._key() > other._key()

    def __ge__(self, other: "Height") -> bool:
        return self._key() >= other._key()

    def __str__(self) -> str:
        return f"{self.revision_number}-{self.revision_height}"


# Timestamps are unix nanoseconds; 0 means "not set".
NANOS_PER_SECOND = 1_000_000_000


def timestamp_elapsed(now: int, deadline: int) -> bool:
    """True iff `deadline` is set and `now` has reached it."""
    return deadline != 0 and now >= deadline


def height_elapsed(current: Height, deadline: Height) -> bool:
    """True iff `deadline` is set and `current` has reached it."""
    return not deadline.is_zero() and current >= deadline
