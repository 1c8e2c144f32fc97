# src/ibc/connection/types.py
"""
Connection data model and version negotiation.

A connection pairs a local client with a client on the counterparty. Its
stored encoding is part of the protocol surface: during the handshake each
side rebuilds the ConnectionEnd it expects the other side to hold and
verifies a proof of exactly those bytes.
"""
from __future__ import annotations

from typing import List, Optional, Sequence

from pydantic import BaseModel, Field, field_validator

from ibc.commitment.proof import CommitmentPrefix
from ibc.core.enums import ConnectionState, Order
from ibc.core.errors import ConnectionErrorKind, IbcConnectionError
from ibc.core.identifiers import ClientId, ConnectionId

DEFAULT_VERSION_IDENTIFIER = "1"


class Version(BaseModel):
    """A protocol version identifier plus the features it enables."""

    identifier: str
    features: List[str] = Field(default_factory=list)

    class Config:
        frozen = True

    @field_validator("identifier")
    @classmethod
    def _non_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("version identifier cannot be blank")
        return v

    @field_validator("features")
    @classmethod
    def _no_duplicates(cls, v: List[str]) -> List[str]:
        if len(set(v)) != len(v):
            raise ValueError(f"duplicate features in {v}")
        if any(not f.strip() for f in v):
            raise ValueError("feature cannot be blank")
        return v

    def supports(self, feature: str) -> bool:
        return feature in self.features

    def supports_ordering(self, order: Order) -> bool:
        return self.supports(order.value)


def get_compatible_versions() -> List[Version]:
    """Versions this implementation supports, in order of preference."""
    return [
        Version(
            identifier=DEFAULT_VERSION_IDENTIFIER,
            features=[Order.ORDERED.value, Order.UNORDERED.value],
        )
    ]


def pick_version(supported: Sequence[Version], proposed: Sequence[Version]) -> Version:
    """
    Choose the version both sides support.

    Walks `supported` in preference order and returns the first identifier
    the counterparty also proposed, restricted to the features both sides
    list. Raises NO_COMMON_VERSION if nothing overlaps.
    """
    for ours in supported:
        for theirs in proposed:
            if theirs.identifier != ours.identifier:
                continue
            features = [f for f in ours.features if f in theirs.features]
            if features:
                return Version(identifier=ours.identifier, features=features)
    raise IbcConnectionError(
        ConnectionErrorKind.NO_COMMON_VERSION,
        "no common version between "
        f"{[v.identifier for v in supported]} and {[v.identifier for v in proposed]}",
    )


def verify_proposed_version(proposed: Version, supported: Sequence[Version]) -> None:
    """
    Check a single version chosen by the counterparty: its identifier must be
    one we support and its features a non-empty subset of ours.
    """
    for ours in supported:
        if ours.identifier != proposed.identifier:
            continue
        if proposed.features and all(f in ours.features for f in proposed.features):
            return
        break
    raise IbcConnectionError(
        ConnectionErrorKind.INVALID_VERSION,
        f"version {proposed.identifier} with features {proposed.features} is not supported",
    )


class Counterparty(BaseModel):
    """The counterparty's view of a connection end."""

    client_id: ClientId
    connection_id: Optional[ConnectionId] = None
    prefix: CommitmentPrefix = Field(default_factory=CommitmentPrefix)

    class Config:
        frozen = True


class ConnectionEnd(BaseModel):
    """
    Stored at `connections/{connection_id}`.

    `delay_period` (nanoseconds) is how long a counterparty consensus state
    must have been known locally before packet proofs against it are
    accepted.
    """

    state: ConnectionState
    client_id: ClientId
    counterparty: Counterparty
    versions: List[Version]
    delay_period: int = Field(default=0, ge=0)

    class Config:
        frozen = True

    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    def version(self) -> Version:
        """The negotiated version; only meaningful once TRYOPEN or later."""
        if len(self.versions) != 1:
            raise IbcConnectionError(
                ConnectionErrorKind.INVALID_VERSION,
                f"connection carries {len(self.versions)} versions, expected exactly one",
            )
        return self.versions[0]

    def supports_ordering(self, order: Order) -> bool:
        return any(v.supports_ordering(order) for v in self.versions)
