from ibc.channel.msgs import (
    MsgAcknowledgement,
    MsgChannelCloseConfirm,
    MsgChannelCloseInit,
    MsgChannelOpenAck,
    MsgChannelOpenConfirm,
    MsgChannelOpenInit,
    MsgChannelOpenTry,
    MsgRecvPacket,
    MsgTimeout,
    MsgTimeoutOnClose,
)
from ibc.channel.types import (
    RECEIPT_VALUE,
    Acknowledgement,
    ChannelEnd,
    Counterparty,
    Packet,
    compute_ack_commitment,
    compute_packet_commitment,
    packet_commitment,
)

__all__ = [
    "Acknowledgement",
    "ChannelEnd",
    "Counterparty",
    "MsgAcknowledgement",
    "MsgChannelCloseConfirm",
    "MsgChannelCloseInit",
    "MsgChannelOpenAck",
    "MsgChannelOpenConfirm",
    "MsgChannelOpenInit",
    "MsgChannelOpenTry",
    "MsgRecvPacket",
    "MsgTimeout",
    "MsgTimeoutOnClose",
    "Packet",
    "RECEIPT_VALUE",
    "compute_ack_commitment",
    "compute_packet_commitment",
    "packet_commitment",
]
