# src/ibc/channel/msgs.py
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from ibc.channel.types import Counterparty, Packet
from ibc.core.enums import Order
from ibc.core.height import Height
from ibc.core.identifiers import ChannelId, ConnectionId, PortId
from ibc.helper.encoding import HexBytes


# ======================================================================
# Channel handshake
# ======================================================================

class MsgChannelOpenInit(BaseModel):
    port_id: PortId
    ordering: Order
    connection_hops: List[ConnectionId]
    counterparty: Counterparty
    version: str = ""
    signer: str = ""


class MsgChannelOpenTry(BaseModel):
    port_id: PortId
    ordering: Order
    connection_hops: List[ConnectionId]
    counterparty: Counterparty
    counterparty_version: str = ""
    proof_height: Height
    proof_init: HexBytes
    signer: str = ""


class MsgChannelOpenAck(BaseModel):
    port_id: PortId
    channel_id: ChannelId
    counterparty_channel_id: ChannelId
    counterparty_version: str = ""
    proof_height: Height
    proof_try: HexBytes
    signer: str = ""


class MsgChannelOpenConfirm(BaseModel):
    port_id: PortId
    channel_id: ChannelId
    proof_height: Height
    proof_ack: HexBytes
    signer: str = ""


class MsgChannelCloseInit(BaseModel):
    port_id: PortId
    channel_id: ChannelId
    signer: str = ""


class MsgChannelCloseConfirm(BaseModel):
    port_id: PortId
    channel_id: ChannelId
    proof_height: Height
    proof_init: HexBytes
    signer: str = ""


# ======================================================================
# Packets
# ======================================================================

class MsgRecvPacket(BaseModel):
    packet: Packet
    proof_commitment: HexBytes
    proof_height: Height
    signer: str = ""


class MsgAcknowledgement(BaseModel):
    packet: Packet
    acknowledgement: HexBytes
    proof_acked: HexBytes
    proof_height: Height
    signer: str = ""


class MsgTimeout(BaseModel):
    """
    `next_sequence_recv` is only meaningful on ordered channels, where the
    proof is of the destination's receive counter instead of a missing
    receipt.
    """

    packet: Packet
    next_sequence_recv: int = Field(default=0, ge=0)
    proof_unreceived: HexBytes
    proof_height: Height
    signer: str = ""


class MsgTimeoutOnClose(BaseModel):
    packet: Packet
    next_sequence_recv: int = Field(default=0, ge=0)
    proof_unreceived: HexBytes
    proof_close: HexBytes
    proof_height: Height
    signer: str = ""
