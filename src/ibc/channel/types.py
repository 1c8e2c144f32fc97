# src/ibc/channel/types.py
"""
Channel, packet and acknowledgement data model.

Packets themselves are never stored. Only digests are:

    packet commitment = sha256(timeout_timestamp || timeout_rn || timeout_rh || sha256(data))
    ack commitment    = sha256(ack)
    receipt           = 0x01

with every integer encoded as 8 bytes big-endian. Both chains compute the
same digests independently, which is what makes them provable.
"""
from __future__ import annotations

import json
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ibc.core.enums import ChannelState, Order
from ibc.core.height import Height, height_elapsed, timestamp_elapsed
from ibc.core.identifiers import ChannelId, ConnectionId, PortId, validate_sequence
from ibc.helper.crypto import sha256
from ibc.helper.encoding import HexBytes, canonical_json, encode_u64

RECEIPT_VALUE = b"\x01"


# ======================================================================
# 1. Channel ends
# ======================================================================

class Counterparty(BaseModel):
    """Port and (once known) channel of the remote end."""

    port_id: PortId
    channel_id: Optional[ChannelId] = None

    class Config:
        frozen = True


class ChannelEnd(BaseModel):
    """Stored at `channelEnds/ports/{port_id}/channels/{channel_id}`."""

    state: ChannelState
    ordering: Order
    remote: Counterparty
    connection_hops: List[ConnectionId]
    version: str = ""

    class Config:
        frozen = True

    def is_open(self) -> bool:
        return self.state == ChannelState.OPEN

    def is_closed(self) -> bool:
        return self.state == ChannelState.CLOSED

    def is_ordered(self) -> bool:
        return self.ordering == Order.ORDERED

    def connection_id(self) -> ConnectionId:
        return self.connection_hops[0]

    def with_state(self, state: ChannelState) -> "ChannelEnd":
        return self.model_copy(update={"state": state})


# ======================================================================
# 2. Packets
# ======================================================================

class Packet(BaseModel):
    """
    One unit of application data.

    A zero `timeout_height` and a zero `timeout_timestamp` each mean "no
    timeout of that kind"; at least one of them must be set.
    """

    sequence: int
    source_port: PortId
    source_channel: ChannelId
    destination_port: PortId
    destination_channel: ChannelId
    data: HexBytes
    timeout_height: Height = Field(default_factory=Height.zero)
    timeout_timestamp: int = Field(default=0, ge=0)

    class Config:
        frozen = True

    @field_validator("sequence")
    @classmethod
    def _valid_sequence(cls, v: int) -> int:
        return validate_sequence(v)

    def has_timeout(self) -> bool:
        return not self.timeout_height.is_zero() or self.timeout_timestamp != 0

    def timed_out(self, height: Height, timestamp: int) -> bool:
        """Height and timestamp deadlines are independent: either one suffices."""
        return height_elapsed(height, self.timeout_height) or timestamp_elapsed(
            timestamp, self.timeout_timestamp
        )


def compute_packet_commitment(
    data: bytes, timeout_height: Height, timeout_timestamp: int
) -> bytes:
    return sha256(
        encode_u64(timeout_timestamp)
        + encode_u64(timeout_height.revision_number)
        + encode_u64(timeout_height.revision_height)
        + sha256(data)
    )


def packet_commitment(packet: Packet) -> bytes:
    return compute_packet_commitment(packet.data, packet.timeout_height, packet.timeout_timestamp)


def compute_ack_commitment(ack: bytes) -> bytes:
    return sha256(ack)


# ======================================================================
# 3. Acknowledgement envelope
# ======================================================================

class Acknowledgement(BaseModel):
    """
    Success/failure envelope for application acknowledgements.

    The core treats acknowledgement bytes as opaque; this envelope is what
    bundled modules put inside them, and what the core itself writes when
    an application callback fails.
    """

    result: Optional[HexBytes] = None
    error: Optional[str] = None

    class Config:
        frozen = True

    @model_validator(mode="after")
    def _exactly_one(self) -> "Acknowledgement":
        if (self.result is None) == (self.error is None):
            raise ValueError("acknowledgement must carry exactly one of result or error")
        return self

    @classmethod
    def success(cls, result: bytes) -> "Acknowledgement":
        return cls(result=result)

    @classmethod
    def failure(cls, error: str) -> "Acknowledgement":
        return cls(error=error or "unknown error")

    def is_success(self) -> bool:
        return self.error is None

    def encode(self) -> bytes:
        return canonical_json(self.model_dump(mode="json", exclude_none=True)).encode("utf-8")

    @classmethod
    def decode(cls, raw: bytes) -> "Acknowledgement":
        try:
            return cls.model_validate(json.loads(raw.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            raise ValueError(f"not an acknowledgement envelope: {exc}") from exc
