# src/ibc/core/enums.py
from __future__ import annotations

from enum import Enum


class ClientStatus(str, Enum):
    """
    Status of a light client as seen by the host chain.

      ACTIVE  : headers and proofs may be verified against the client.
      FROZEN  : misbehaviour was proven; every verification fails.
      EXPIRED : the latest consensus state is older than the trusting
                period; the client can no longer be updated.
    """
    ACTIVE = "Active"
    FROZEN = "Frozen"
    EXPIRED = "Expired"


class ConnectionState(str, Enum):
    """
    Connection handshake states. The handshake only ever moves forward:

        INIT → TRYOPEN → OPEN      (or INIT → OPEN on the initiating side)
    """
    INIT = "STATE_INIT"
    TRYOPEN = "STATE_TRYOPEN"
    OPEN = "STATE_OPEN"


class ChannelState(str, Enum):
    """
    Channel handshake states. CLOSED is terminal and irreversible.
    """
    INIT = "STATE_INIT"
    TRYOPEN = "STATE_TRYOPEN"
    OPEN = "STATE_OPEN"
    CLOSED = "STATE_CLOSED"


class Order(str, Enum):
    """
    Channel ordering, fixed at ChanOpenInit.

      ORDERED  : packets are received and acknowledged strictly in sequence.
      UNORDERED: packets may be received in any order; duplicates are
                 rejected through per-sequence receipts.
    """
    ORDERED = "ORDER_ORDERED"
    UNORDERED = "ORDER_UNORDERED"


class EventKind(str, Enum):
    """
    Kinds of events emitted through HostContext.emit_event.

    The relayer observes these; their attribute sets are documented on the
    handlers that emit them.
    """

    # ---- ICS-02 clients ----
    CREATE_CLIENT = "create_client"
    UPDATE_CLIENT = "update_client"
    CLIENT_MISBEHAVIOUR = "client_misbehaviour"

    # ---- ICS-03 connections ----
    CONNECTION_OPEN_INIT = "connection_open_init"
    CONNECTION_OPEN_TRY = "connection_open_try"
    CONNECTION_OPEN_ACK = "connection_open_ack"
    CONNECTION_OPEN_CONFIRM = "connection_open_confirm"

    # ---- ICS-04 channels ----
    CHANNEL_OPEN_INIT = "channel_open_init"
    CHANNEL_OPEN_TRY = "channel_open_try"
    CHANNEL_OPEN_ACK = "channel_open_ack"
    CHANNEL_OPEN_CONFIRM = "channel_open_confirm"
    CHANNEL_CLOSE_INIT = "channel_close_init"
    CHANNEL_CLOSE_CONFIRM = "channel_close_confirm"
    CHANNEL_CLOSED = "channel_close"

    # ---- ICS-04 packets ----
    SEND_PACKET = "send_packet"
    RECV_PACKET = "recv_packet"
    WRITE_ACK = "write_acknowledgement"
    ACK_PACKET = "acknowledge_packet"
    TIMEOUT_PACKET = "timeout_packet"
    TIMEOUT_ON_CLOSE = "timeout_on_close_packet"
