from ibc.core.enums import ChannelState, ClientStatus, ConnectionState, EventKind, Order
from ibc.core.errors import (
    ChannelError,
    ChannelErrorKind,
    ClientError,
    ClientErrorKind,
    ConnectionErrorKind,
    HostError,
    HostErrorKind,
    IbcConnectionError,
    IbcError,
    IdentifierError,
    PacketError,
    PacketErrorKind,
    ProofError,
    ProofErrorKind,
)
from ibc.core.events import IbcEvent
from ibc.core.height import Height
from ibc.core.identifiers import ChainId, ChannelId, ClientId, ConnectionId, PortId

__all__ = [
    "ChainId",
    "ChannelError",
    "ChannelErrorKind",
    "ChannelId",
    "ChannelState",
    "ClientError",
    "ClientErrorKind",
    "ClientId",
    "ClientStatus",
    "ConnectionErrorKind",
    "ConnectionId",
    "ConnectionState",
    "EventKind",
    "Height",
    "HostError",
    "HostErrorKind",
    "IbcConnectionError",
    "IbcError",
    "IbcEvent",
    "IdentifierError",
    "Order",
    "PacketError",
    "PacketErrorKind",
    "PortId",
    "ProofError",
    "ProofErrorKind",
]
