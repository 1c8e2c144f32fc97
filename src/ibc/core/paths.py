# src/ibc/core/paths.py
"""
Storage paths.

Every piece of provable state lives at a path that is a deterministic
function of identifiers. The counterparty verifies proofs against exactly
these strings, so changing any of them is a breaking protocol change.

Paths marked "host-local" are never proven by a counterparty; they only
live in the same store for convenience.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from ibc.core.height import Height
from ibc.core.identifiers import ChannelId, ClientId, ConnectionId, PortId


class Path(BaseModel, ABC):
    """Base class: a path is a frozen model that renders to a string."""

    class Config:
        frozen = True

    @abstractmethod
    def __str__(self) -> str:
        raise NotImplementedError

    def to_bytes(self) -> bytes:
        return str(self).encode("utf-8")


# ======================================================================
# 1. Clients
# ======================================================================

class ClientTypePath(Path):
    client_id: ClientId

    def __str__(self) -> str:
        return f"clients/{self.client_id}/clientType"


class ClientStatePath(Path):
    client_id: ClientId

    def __str__(self) -> str:
        return f"clients/{self.client_id}/clientState"


class ClientConsensusStatePath(Path):
    client_id: ClientId
    height: Height

    def __str__(self) -> str:
        return (
            f"clients/{self.client_id}/consensusStates/"
            f"{self.height.revision_number}-{self.height.revision_height}"
        )


class ClientConnectionsPath(Path):
    client_id: ClientId

    def __str__(self) -> str:
        return f"clients/{self.client_id}/connections"


class ProcessedTimePath(Path):
    """Host-local: host time at which a consensus state was stored."""
    client_id: ClientId
    height: Height

    def __str__(self) -> str:
        return f"clients/{self.client_id}/processedTimes/{self.height}"


class ProcessedHeightPath(Path):
    """Host-local: host height at which a consensus state was stored."""
    client_id: ClientId
    height: Height

    def __str__(self) -> str:
        return f"clients/{self.client_id}/processedHeights/{self.height}"


# ======================================================================
# 2. Connections, ports and channels
# ======================================================================

class ConnectionPath(Path):
    connection_id: ConnectionId

    def __str__(self) -> str:
        return f"connections/{self.connection_id}"


class PortPath(Path):
    port_id: PortId

    def __str__(self) -> str:
        return f"ports/{self.port_id}"


class ChannelEndPath(Path):
    port_id: PortId
    channel_id: ChannelId

    def __str__(self) -> str:
        return f"channelEnds/ports/{self.port_id}/channels/{self.channel_id}"


class SeqSendPath(Path):
    port_id: PortId
    channel_id: ChannelId

    def __str__(self) -> str:
        return f"nextSequenceSend/ports/{self.port_id}/channels/{self.channel_id}"


class SeqRecvPath(Path):
    port_id: PortId
    channel_id: ChannelId

    def __str__(self) -> str:
        return f"nextSequenceRecv/ports/{self.port_id}/channels/{self.channel_id}"


class SeqAckPath(Path):
    port_id: PortId
    channel_id: ChannelId

    def __str__(self) -> str:
        return f"nextSequenceAck/ports/{self.port_id}/channels/{self.channel_id}"


# ======================================================================
# 3. Packets
# ======================================================================

class CommitmentPath(Path):
    port_id: PortId
    channel_id: ChannelId
    sequence: int

    def __str__(self) -> str:
        return (
            f"commitments/ports/{self.port_id}/channels/{self.channel_id}"
            f"/sequences/{self.sequence}"
        )


class ReceiptPath(Path):
    port_id: PortId
    channel_id: ChannelId
    sequence: int

    def __str__(self) -> str:
        return (
            f"receipts/ports/{self.port_id}/channels/{self.channel_id}"
            f"/sequences/{self.sequence}"
        )


class AckPath(Path):
    port_id: PortId
    channel_id: ChannelId
    sequence: int

    def __str__(self) -> str:
        return (
            f"acks/ports/{self.port_id}/channels/{self.channel_id}"
            f"/sequences/{self.sequence}"
        )


# ======================================================================
# 4. Host-local identifier counters
# ======================================================================

class CounterPath(Path):
    """Host-local: next client/connection/channel counter."""
    name: str

    def __str__(self) -> str:
        return self.name


CLIENT_COUNTER = CounterPath(name="nextClientSequence")
CONNECTION_COUNTER = CounterPath(name="nextConnectionSequence")
CHANNEL_COUNTER = CounterPath(name="nextChannelSequence")
