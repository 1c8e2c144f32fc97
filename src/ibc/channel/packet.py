# src/ibc/channel/packet.py
"""
Packet lifecycle: send, receive, acknowledge, time out.

    source chain                          destination chain
    ------------                          -----------------
    send_packet      commitment ───────►  recv_packet   (receipt, ack)
    acknowledge      ◄──────── ack proof
      or
    timeout_packet   ◄──────── proof of no receipt / recv counter

A packet's send-side commitment is the single token both terminal
outcomes consume: acknowledge and timeout each require it to exist and
delete it, so a packet can end in at most one of them and neither can be
replayed. On the destination side the receipt (or, on ordered channels,
the receive counter) is what timeout proofs are checked against.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional

from ibc.channel.handshake import close_channel
from ibc.channel.msgs import MsgAcknowledgement, MsgRecvPacket, MsgTimeout, MsgTimeoutOnClose
from ibc.channel.types import (
    Acknowledgement,
    ChannelEnd,
    Counterparty,
    Packet,
    compute_ack_commitment,
    packet_commitment,
)
from ibc.channel.verify import (
    verify_channel_proof,
    verify_next_sequence_recv_proof,
    verify_packet_ack_proof,
    verify_packet_recv_proof,
    verify_receipt_absence_proof,
)
from ibc.connection.types import ConnectionEnd
from ibc.core.enums import ChannelState, EventKind
from ibc.core.errors import (
    ChannelError,
    ChannelErrorKind,
    IbcError,
    PacketError,
    PacketErrorKind,
)
from ibc.core.height import Height, height_elapsed, timestamp_elapsed
from ibc.core.identifiers import ChannelId, PortId
from ibc.host.context import HostContext
from ibc.router.module import Router, invoke_callback

logger = logging.getLogger(__name__)


# ======================================================================
# Shared checks
# ======================================================================

def packet_attributes(packet: Packet, channel: ChannelEnd) -> Dict[str, object]:
    """Everything a relayer needs to rebuild the packet from the event."""
    return {
        "packet_sequence": packet.sequence,
        "packet_src_port": packet.source_port,
        "packet_src_channel": packet.source_channel,
        "packet_dst_port": packet.destination_port,
        "packet_dst_channel": packet.destination_channel,
        "packet_data": packet.data,
        "packet_timeout_height": packet.timeout_height,
        "packet_timeout_timestamp": packet.timeout_timestamp,
        "packet_channel_ordering": channel.ordering,
        "packet_connection": channel.connection_hops[0],
    }


def _open_channel(ctx: HostContext, port_id: PortId, channel_id: ChannelId) -> ChannelEnd:
    channel = ctx.lookup_channel(port_id, channel_id)
    if channel.is_closed():
        raise ChannelError(
            ChannelErrorKind.CHANNEL_CLOSED,
            f"channel {port_id}/{channel_id} is closed",
            port_id=port_id,
            channel_id=channel_id,
        )
    if not channel.is_open():
        raise ChannelError(
            ChannelErrorKind.WRONG_STATE,
            f"channel {port_id}/{channel_id} is {channel.state.value}, expected STATE_OPEN",
            port_id=port_id,
            channel_id=channel_id,
        )
    return channel


def _connection_of(ctx: HostContext, channel: ChannelEnd) -> ConnectionEnd:
    connection_id = channel.connection_id()
    connection_end = ctx.lookup_connection(connection_id)
    if not connection_end.is_open():
        raise ChannelError(
            ChannelErrorKind.CONNECTION_NOT_OPEN,
            f"connection {connection_id} is {connection_end.state.value}",
        )
    return connection_end


def _check_destination(packet: Packet, channel: ChannelEnd) -> None:
    """On the source chain: the packet must target this channel's counterparty."""
    if (
        packet.destination_port != channel.remote.port_id
        or packet.destination_channel != channel.remote.channel_id
    ):
        raise PacketError(
            PacketErrorKind.INVALID_DESTINATION,
            f"packet destination {packet.destination_port}/{packet.destination_channel} "
            f"does not match counterparty {channel.remote.port_id}/{channel.remote.channel_id}",
            sequence=packet.sequence,
        )


def _check_commitment(ctx: HostContext, packet: Packet) -> None:
    stored = ctx.packet_commitment(packet.source_port, packet.source_channel, packet.sequence)
    if stored is None:
        raise PacketError(
            PacketErrorKind.COMMITMENT_NOT_FOUND,
            f"no commitment for packet {packet.sequence}; it was never sent or is already "
            "acknowledged or timed out",
            sequence=packet.sequence,
        )
    if stored != packet_commitment(packet):
        raise PacketError(
            PacketErrorKind.COMMITMENT_MISMATCH,
            f"packet {packet.sequence} does not match the stored commitment",
            sequence=packet.sequence,
        )


# ======================================================================
# Send
# ======================================================================

def send_packet(
    ctx: HostContext,
    port_id: PortId,
    channel_id: ChannelId,
    data: bytes,
    timeout_height: Optional[Height] = None,
    timeout_timestamp: int = 0,
) -> Packet:
    """
    Commit a new outgoing packet and return it with its assigned sequence.

    The timeout is checked against the latest height and time of the
    destination chain this host knows of. That check is best effort; the
    binding one happens in timeout processing.
    """
    timeout_height = timeout_height or Height.zero()
    channel = _open_channel(ctx, port_id, channel_id)
    connection_end = ctx.lookup_connection(channel.connection_id())
    _, client_state = ctx.ensure_client_active(connection_end.client_id)

    if not data:
        raise PacketError(PacketErrorKind.INVALID_PACKET, "packet data cannot be empty")
    if timeout_height.is_zero() and timeout_timestamp == 0:
        raise PacketError(
            PacketErrorKind.MISSING_TIMEOUT,
            "packet needs a timeout height or a timeout timestamp",
        )

    latest_height = client_state.latest_height
    if height_elapsed(latest_height, timeout_height):
        raise PacketError(
            PacketErrorKind.TIMEOUT_HEIGHT_ELAPSED,
            f"destination is already at {latest_height}, timeout height {timeout_height}",
        )
    latest_timestamp = ctx.consensus_state(connection_end.client_id, latest_height).timestamp
    if timestamp_elapsed(latest_timestamp, timeout_timestamp):
        raise PacketError(
            PacketErrorKind.TIMEOUT_TIMESTAMP_ELAPSED,
            f"destination time {latest_timestamp} is past timeout timestamp {timeout_timestamp}",
        )

    sequence = ctx.next_sequence_send(port_id, channel_id)
    packet = Packet(
        sequence=sequence,
        source_port=port_id,
        source_channel=channel_id,
        destination_port=channel.remote.port_id,
        destination_channel=channel.remote.channel_id,
        data=data,
        timeout_height=timeout_height,
        timeout_timestamp=timeout_timestamp,
    )
    ctx.store_packet_commitment(port_id, channel_id, sequence, packet_commitment(packet))
    ctx.store_next_sequence_send(port_id, channel_id, sequence + 1)

    ctx.emit_event(EventKind.SEND_PACKET, packet_attributes(packet, channel))
    logger.debug("%s: sent packet %s on %s/%s", ctx.chain_id, sequence, port_id, channel_id)
    return packet


# ======================================================================
# Receive and write acknowledgement
# ======================================================================

def recv_packet(ctx: HostContext, router: Router, msg: MsgRecvPacket) -> Optional[bytes]:
    """
    Receive a packet on the destination chain.

    Returns the acknowledgement written in the same step, or None when the
    application acknowledges asynchronously.
    """
    packet = msg.packet
    if not packet.has_timeout():
        raise PacketError(
            PacketErrorKind.MISSING_TIMEOUT,
            f"packet {packet.sequence} carries neither a timeout height nor a timeout timestamp",
            sequence=packet.sequence,
        )
    port_id, channel_id = packet.destination_port, packet.destination_channel
    module = router.get_route(port_id)
    channel = _open_channel(ctx, port_id, channel_id)

    if (
        packet.source_port != channel.remote.port_id
        or packet.source_channel != channel.remote.channel_id
    ):
        raise PacketError(
            PacketErrorKind.INVALID_SOURCE,
            f"packet source {packet.source_port}/{packet.source_channel} is not the "
            f"counterparty of {port_id}/{channel_id}",
            sequence=packet.sequence,
        )
    connection_end = _connection_of(ctx, channel)

    if height_elapsed(ctx.current_height(), packet.timeout_height):
        raise PacketError(
            PacketErrorKind.TIMEOUT_HEIGHT_ELAPSED,
            f"packet {packet.sequence} timed out at height {packet.timeout_height}",
            sequence=packet.sequence,
        )
    if timestamp_elapsed(ctx.current_timestamp(), packet.timeout_timestamp):
        raise PacketError(
            PacketErrorKind.TIMEOUT_TIMESTAMP_ELAPSED,
            f"packet {packet.sequence} timed out at {packet.timeout_timestamp}",
            sequence=packet.sequence,
        )

    if channel.is_ordered():
        expected = ctx.next_sequence_recv(port_id, channel_id)
        if packet.sequence < expected:
            raise PacketError(
                PacketErrorKind.ALREADY_RECEIVED,
                f"packet {packet.sequence} already received, next is {expected}",
                sequence=packet.sequence,
            )
        if packet.sequence != expected:
            raise PacketError(
                PacketErrorKind.SEQUENCE_MISMATCH,
                f"ordered channel expects sequence {expected}, got {packet.sequence}",
                sequence=packet.sequence,
                expected=expected,
            )
    elif ctx.has_packet_receipt(port_id, channel_id, packet.sequence):
        raise PacketError(
            PacketErrorKind.ALREADY_RECEIVED,
            f"packet {packet.sequence} already received",
            sequence=packet.sequence,
        )

    verify_packet_recv_proof(
        ctx,
        connection_end,
        msg.proof_height,
        msg.proof_commitment,
        packet.source_port,
        packet.source_channel,
        packet.sequence,
        packet_commitment(packet),
    )

    if channel.is_ordered():
        ctx.store_next_sequence_recv(port_id, channel_id, packet.sequence + 1)
    ctx.store_packet_receipt(port_id, channel_id, packet.sequence)
    ctx.emit_event(EventKind.RECV_PACKET, packet_attributes(packet, channel))

    try:
        ack = module.on_recv_packet(packet)
    except IbcError:
        raise
    except Exception as exc:
        logger.warning("%s: application failed packet %s: %s", ctx.chain_id, packet.sequence, exc)
        ack = Acknowledgement.failure(str(exc)).encode()

    if ack is not None:
        write_acknowledgement(ctx, packet, ack)
    return ack


def write_acknowledgement(ctx: HostContext, packet: Packet, ack: bytes) -> None:
    """Store the acknowledgement commitment for a received packet."""
    port_id, channel_id = packet.destination_port, packet.destination_channel
    channel = ctx.lookup_channel(port_id, channel_id)
    if channel.is_closed():
        raise ChannelError(
            ChannelErrorKind.CHANNEL_CLOSED,
            f"channel {port_id}/{channel_id} is closed, acknowledgement for packet {packet.sequence} refused",
            port_id=port_id,
            channel_id=channel_id,
            sequence=packet.sequence,
        )
    if not ack:
        raise PacketError(PacketErrorKind.EMPTY_ACKNOWLEDGEMENT, "acknowledgement cannot be empty")
    if not ctx.has_packet_receipt(port_id, channel_id, packet.sequence):
        raise PacketError(
            PacketErrorKind.INVALID_PACKET,
            f"packet {packet.sequence} has not been received on {port_id}/{channel_id}",
            sequence=packet.sequence,
        )
    if ctx.packet_acknowledgement(port_id, channel_id, packet.sequence) is not None:
        raise PacketError(
            PacketErrorKind.ACK_ALREADY_WRITTEN,
            f"acknowledgement for packet {packet.sequence} already written",
            sequence=packet.sequence,
        )

    ctx.store_packet_acknowledgement(port_id, channel_id, packet.sequence, compute_ack_commitment(ack))
    attributes = packet_attributes(packet, channel)
    attributes["packet_ack"] = bytes(ack)
    ctx.emit_event(EventKind.WRITE_ACK, attributes)


# ======================================================================
# Acknowledge
# ======================================================================

def acknowledge_packet(ctx: HostContext, router: Router, msg: MsgAcknowledgement) -> None:
    packet = msg.packet
    port_id, channel_id = packet.source_port, packet.source_channel
    module = router.get_route(port_id)
    channel = _open_channel(ctx, port_id, channel_id)
    _check_destination(packet, channel)
    connection_end = _connection_of(ctx, channel)
    _check_commitment(ctx, packet)

    if channel.is_ordered():
        expected = ctx.next_sequence_ack(port_id, channel_id)
        if packet.sequence != expected:
            raise PacketError(
                PacketErrorKind.SEQUENCE_MISMATCH,
                f"ordered channel expects acknowledgement {expected}, got {packet.sequence}",
                sequence=packet.sequence,
                expected=expected,
            )

    verify_packet_ack_proof(
        ctx,
        connection_end,
        msg.proof_height,
        msg.proof_acked,
        packet.destination_port,
        packet.destination_channel,
        packet.sequence,
        compute_ack_commitment(msg.acknowledgement),
    )

    ctx.delete_packet_commitment(port_id, channel_id, packet.sequence)
    if channel.is_ordered():
        ctx.store_next_sequence_ack(port_id, channel_id, packet.sequence + 1)
    ctx.emit_event(EventKind.ACK_PACKET, packet_attributes(packet, channel))

    invoke_callback(
        "AcknowledgePacket", module.on_acknowledgement_packet, packet, bytes(msg.acknowledgement)
    )
    logger.debug("%s: packet %s acknowledged", ctx.chain_id, packet.sequence)


# ======================================================================
# Timeouts
# ======================================================================

def _check_timeout_elapsed(ctx: HostContext, connection_end: ConnectionEnd, packet: Packet, proof_height: Height) -> None:
    """At `proof_height` the destination must be past the packet's height or time deadline."""
    counterparty_time = ctx.consensus_state(connection_end.client_id, proof_height).timestamp
    if not packet.timed_out(proof_height, counterparty_time):
        raise PacketError(
            PacketErrorKind.TIMEOUT_NOT_ELAPSED,
            f"packet {packet.sequence} has not timed out at destination height {proof_height}",
            sequence=packet.sequence,
            proof_height=proof_height,
        )


def _verify_not_received(
    ctx: HostContext,
    connection_end: ConnectionEnd,
    channel: ChannelEnd,
    packet: Packet,
    next_sequence_recv: int,
    proof_height: Height,
    proof: bytes,
) -> None:
    if channel.is_ordered():
        if next_sequence_recv > packet.sequence:
            raise PacketError(
                PacketErrorKind.ALREADY_RECEIVED,
                f"destination already received up to {next_sequence_recv - 1}",
                sequence=packet.sequence,
            )
        verify_next_sequence_recv_proof(
            ctx,
            connection_end,
            proof_height,
            proof,
            packet.destination_port,
            packet.destination_channel,
            next_sequence_recv,
        )
    else:
        verify_receipt_absence_proof(
            ctx,
            connection_end,
            proof_height,
            proof,
            packet.destination_port,
            packet.destination_channel,
            packet.sequence,
        )


def timeout_packet(ctx: HostContext, router: Router, msg: MsgTimeout) -> None:
    """
    Time out a packet the destination provably never received.

    On ordered channels the channel is closed as well: a gap in the
    sequence can never be filled.
    """
    packet = msg.packet
    port_id, channel_id = packet.source_port, packet.source_channel
    module = router.get_route(port_id)
    channel = _open_channel(ctx, port_id, channel_id)
    _check_destination(packet, channel)
    connection_end = _connection_of(ctx, channel)
    _check_commitment(ctx, packet)
    _check_timeout_elapsed(ctx, connection_end, packet, msg.proof_height)
    _verify_not_received(
        ctx, connection_end, channel, packet, msg.next_sequence_recv, msg.proof_height, msg.proof_unreceived
    )

    ctx.delete_packet_commitment(port_id, channel_id, packet.sequence)
    ctx.emit_event(EventKind.TIMEOUT_PACKET, packet_attributes(packet, channel))
    if channel.is_ordered():
        close_channel(ctx, port_id, channel_id, channel)

    invoke_callback("TimeoutPacket", module.on_timeout_packet, packet)
    logger.info("%s: packet %s on %s/%s timed out", ctx.chain_id, packet.sequence, port_id, channel_id)


def timeout_on_close(ctx: HostContext, router: Router, msg: MsgTimeoutOnClose) -> None:
    """
    Time out a packet because the destination closed its channel end.

    No deadline needs to have passed: a closed destination can never
    receive the packet.
    """
    packet = msg.packet
    port_id, channel_id = packet.source_port, packet.source_channel
    module = router.get_route(port_id)
    channel = ctx.lookup_channel(port_id, channel_id)
    _check_destination(packet, channel)
    connection_end = ctx.lookup_connection(channel.connection_id())
    _check_commitment(ctx, packet)

    expected = ChannelEnd(
        state=ChannelState.CLOSED,
        ordering=channel.ordering,
        remote=Counterparty(port_id=port_id, channel_id=channel_id),
        connection_hops=[connection_end.counterparty.connection_id],
        version=channel.version,
    )
    verify_channel_proof(
        ctx,
        connection_end,
        msg.proof_height,
        msg.proof_close,
        packet.destination_port,
        packet.destination_channel,
        expected,
    )
    _verify_not_received(
        ctx, connection_end, channel, packet, msg.next_sequence_recv, msg.proof_height, msg.proof_unreceived
    )

    ctx.delete_packet_commitment(port_id, channel_id, packet.sequence)
    ctx.emit_event(EventKind.TIMEOUT_ON_CLOSE, packet_attributes(packet, channel))
    if channel.is_ordered() and not channel.is_closed():
        close_channel(ctx, port_id, channel_id, channel)

    invoke_callback("TimeoutOnClose", module.on_timeout_packet, packet)
    logger.info("%s: packet %s on %s/%s timed out on close", ctx.chain_id, packet.sequence, port_id, channel_id)
