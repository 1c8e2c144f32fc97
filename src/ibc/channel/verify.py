# src/ibc/channel/verify.py
"""
Proof checks for the channel handshake and the packet lifecycle.

Packet proofs additionally honour the connection's delay period: the
consensus state a proof is checked against must have been known locally
for at least `delay_period` nanoseconds and for the corresponding number
of blocks.
"""
from __future__ import annotations

import math

from ibc.channel.types import ChannelEnd
from ibc.connection.types import ConnectionEnd
from ibc.connection.verify import client_for_proof
from ibc.core.errors import (
    ChannelError,
    ChannelErrorKind,
    PacketError,
    PacketErrorKind,
    ProofError,
)
from ibc.core.height import Height
from ibc.core.identifiers import ChannelId, PortId
from ibc.host.context import HostContext


def verify_channel_proof(
    ctx: HostContext,
    connection_end: ConnectionEnd,
    proof_height: Height,
    proof: bytes,
    port_id: PortId,
    channel_id: ChannelId,
    expected: ChannelEnd,
) -> None:
    client_def, client_state, consensus_state = client_for_proof(ctx, connection_end.client_id, proof_height)
    try:
        client_def.verify_channel_state(
            client_state,
            consensus_state,
            connection_end.counterparty.prefix,
            proof,
            port_id,
            channel_id,
            expected,
        )
    except ProofError as exc:
        raise ChannelError(
            ChannelErrorKind.PROOF_VERIFICATION_FAILED,
            f"counterparty channel {port_id}/{channel_id} proof failed: {exc.message}",
            proof_kind=exc.kind.value,
        ) from exc


def block_delay(ctx: HostContext, delay_period: int) -> int:
    """Number of blocks corresponding to a time delay."""
    if delay_period == 0:
        return 0
    return math.ceil(delay_period / ctx.settings.max_expected_time_per_block)


def verify_delay_passed(ctx: HostContext, connection_end: ConnectionEnd, proof_height: Height) -> None:
    delay = connection_end.delay_period
    if delay == 0:
        return
    client_id = connection_end.client_id
    processed_time = ctx.processed_time(client_id, proof_height)
    processed_height = ctx.processed_height(client_id, proof_height)

    now = ctx.current_timestamp()
    if now < processed_time + delay:
        raise PacketError(
            PacketErrorKind.DELAY_NOT_PASSED,
            f"time delay not passed: now {now}, earliest {processed_time + delay}",
        )
    earliest_height = processed_height.increment(block_delay(ctx, delay))
    if ctx.current_height() < earliest_height:
        raise PacketError(
            PacketErrorKind.DELAY_NOT_PASSED,
            f"block delay not passed: current {ctx.current_height()}, earliest {earliest_height}",
        )


def _packet_proof_failed(what: str, exc: ProofError) -> PacketError:
    return PacketError(
        PacketErrorKind.PROOF_VERIFICATION_FAILED,
        f"{what} proof failed: {exc.message}",
        proof_kind=exc.kind.value,
    )


def verify_packet_recv_proof(
    ctx: HostContext,
    connection_end: ConnectionEnd,
    proof_height: Height,
    proof: bytes,
    port_id: PortId,
    channel_id: ChannelId,
    sequence: int,
    commitment: bytes,
) -> None:
    """The source chain committed `commitment` for this packet."""
    client_def, client_state, consensus_state = client_for_proof(ctx, connection_end.client_id, proof_height)
    verify_delay_passed(ctx, connection_end, proof_height)
    try:
        client_def.verify_packet_data(
            client_state,
            consensus_state,
            connection_end.counterparty.prefix,
            proof,
            port_id,
            channel_id,
            sequence,
            commitment,
        )
    except ProofError as exc:
        raise _packet_proof_failed("packet commitment", exc) from exc


def verify_packet_ack_proof(
    ctx: HostContext,
    connection_end: ConnectionEnd,
    proof_height: Height,
    proof: bytes,
    port_id: PortId,
    channel_id: ChannelId,
    sequence: int,
    ack_commitment: bytes,
) -> None:
    """The destination chain stored `ack_commitment` for this packet."""
    client_def, client_state, consensus_state = client_for_proof(ctx, connection_end.client_id, proof_height)
    verify_delay_passed(ctx, connection_end, proof_height)
    try:
        client_def.verify_packet_acknowledgement(
            client_state,
            consensus_state,
            connection_end.counterparty.prefix,
            proof,
            port_id,
            channel_id,
            sequence,
            ack_commitment,
        )
    except ProofError as exc:
        raise _packet_proof_failed("acknowledgement", exc) from exc


def verify_next_sequence_recv_proof(
    ctx: HostContext,
    connection_end: ConnectionEnd,
    proof_height: Height,
    proof: bytes,
    port_id: PortId,
    channel_id: ChannelId,
    next_sequence_recv: int,
) -> None:
    client_def, client_state, consensus_state = client_for_proof(ctx, connection_end.client_id, proof_height)
    verify_delay_passed(ctx, connection_end, proof_height)
    try:
        client_def.verify_next_sequence_recv(
            client_state,
            consensus_state,
            connection_end.counterparty.prefix,
            proof,
            port_id,
            channel_id,
            next_sequence_recv,
        )
    except ProofError as exc:
        raise _packet_proof_failed("next sequence recv", exc) from exc


def verify_receipt_absence_proof(
    ctx: HostContext,
    connection_end: ConnectionEnd,
    proof_height: Height,
    proof: bytes,
    port_id: PortId,
    channel_id: ChannelId,
    sequence: int,
) -> None:
    """The destination chain holds no receipt for this packet."""
    client_def, client_state, consensus_state = client_for_proof(ctx, connection_end.client_id, proof_height)
    verify_delay_passed(ctx, connection_end, proof_height)
    try:
        client_def.verify_packet_receipt_absence(
            client_state,
            consensus_state,
            connection_end.counterparty.prefix,
            proof,
            port_id,
            channel_id,
            sequence,
        )
    except ProofError as exc:
        raise _packet_proof_failed("receipt absence", exc) from exc
