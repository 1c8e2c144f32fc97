# src/ibc/channel/handshake.py
"""
Channel handshake (ChanOpenInit / Try / Ack / Confirm) and closing.

Same four-step shape as the connection handshake, scoped to an Open
connection and bound to a port. The ordering chosen at Init never changes.
A channel can be closed unilaterally (ChanCloseInit) or on proof that the
counterparty closed its end (ChanCloseConfirm); CLOSED is terminal.

Unlike ConnOpenTry, which rejects a replay with WRONG_STATE, a replayed
ChanOpenTry allocates a fresh TRYOPEN channel; only one of them can complete
because Ack and Confirm prove a specific channel id.
"""
from __future__ import annotations

import logging
from typing import List

from ibc.channel.msgs import (
    MsgChannelCloseConfirm,
    MsgChannelCloseInit,
    MsgChannelOpenAck,
    MsgChannelOpenConfirm,
    MsgChannelOpenInit,
    MsgChannelOpenTry,
)
from ibc.channel.types import ChannelEnd, Counterparty
from ibc.channel.verify import verify_channel_proof
from ibc.connection.types import ConnectionEnd
from ibc.core.enums import ChannelState, EventKind, Order
from ibc.core.errors import ChannelError, ChannelErrorKind
from ibc.core.identifiers import ChannelId, ConnectionId, PortId
from ibc.host.context import HostContext
from ibc.router.module import Router, invoke_callback

logger = logging.getLogger(__name__)

INITIAL_SEQUENCE = 1


# ======================================================================
# Shared checks
# ======================================================================

def open_connection_for(ctx: HostContext, connection_hops: List[ConnectionId]) -> ConnectionEnd:
    """Exactly one hop, and that connection must be Open."""
    if len(connection_hops) != 1:
        raise ChannelError(
            ChannelErrorKind.INVALID_CONNECTION_HOPS,
            f"expected exactly one connection hop, got {len(connection_hops)}",
        )
    connection_id = connection_hops[0]
    connection_end = ctx.lookup_connection(connection_id)
    if not connection_end.is_open():
        raise ChannelError(
            ChannelErrorKind.CONNECTION_NOT_OPEN,
            f"connection {connection_id} is {connection_end.state.value}",
            connection_id=connection_id,
        )
    return connection_end


def _check_ordering(connection_end: ConnectionEnd, ordering: Order) -> None:
    if not connection_end.supports_ordering(ordering):
        raise ChannelError(
            ChannelErrorKind.ORDERING_NOT_SUPPORTED,
            f"connection version does not support {ordering.value}",
        )


def _expect_state(port_id: PortId, channel_id: ChannelId, end: ChannelEnd, expected: ChannelState) -> None:
    if end.is_closed():
        raise ChannelError(
            ChannelErrorKind.CHANNEL_CLOSED,
            f"channel {port_id}/{channel_id} is closed",
            port_id=port_id,
            channel_id=channel_id,
        )
    if end.state != expected:
        raise ChannelError(
            ChannelErrorKind.WRONG_STATE,
            f"channel {port_id}/{channel_id} is {end.state.value}, expected {expected.value}",
            port_id=port_id,
            channel_id=channel_id,
            state=end.state.value,
        )


def _init_sequences(ctx: HostContext, port_id: PortId, channel_id: ChannelId) -> None:
    ctx.store_next_sequence_send(port_id, channel_id, INITIAL_SEQUENCE)
    ctx.store_next_sequence_recv(port_id, channel_id, INITIAL_SEQUENCE)
    ctx.store_next_sequence_ack(port_id, channel_id, INITIAL_SEQUENCE)


def _event_attributes(port_id: PortId, channel_id: ChannelId, end: ChannelEnd) -> dict:
    return {
        "port_id": port_id,
        "channel_id": channel_id,
        "counterparty_port_id": end.remote.port_id,
        "counterparty_channel_id": end.remote.channel_id,
        "connection_id": end.connection_hops[0],
        "ordering": end.ordering,
        "version": end.version,
    }


# ======================================================================
# Opening
# ======================================================================

def chan_open_init(ctx: HostContext, router: Router, msg: MsgChannelOpenInit) -> ChannelId:
    module = router.get_route(msg.port_id)
    connection_end = open_connection_for(ctx, msg.connection_hops)
    _check_ordering(connection_end, msg.ordering)
    if msg.counterparty.channel_id is not None:
        raise ChannelError(
            ChannelErrorKind.INVALID_COUNTERPARTY,
            "counterparty channel id must be empty on ChanOpenInit",
        )

    channel_id = ctx.generate_channel_id()
    version = invoke_callback(
        "ChanOpenInit",
        module.on_chan_open_init,
        msg.ordering,
        msg.connection_hops,
        msg.port_id,
        channel_id,
        msg.counterparty,
        msg.version,
    )

    end = ChannelEnd(
        state=ChannelState.INIT,
        ordering=msg.ordering,
        remote=msg.counterparty,
        connection_hops=msg.connection_hops,
        version=version,
    )
    ctx.store_channel(msg.port_id, channel_id, end)
    _init_sequences(ctx, msg.port_id, channel_id)

    ctx.emit_event(EventKind.CHANNEL_OPEN_INIT, _event_attributes(msg.port_id, channel_id, end))
    logger.info("%s: ChanOpenInit %s/%s (%s)", ctx.chain_id, msg.port_id, channel_id, msg.ordering.value)
    return channel_id


def chan_open_try(ctx: HostContext, router: Router, msg: MsgChannelOpenTry) -> ChannelId:
    module = router.get_route(msg.port_id)
    connection_end = open_connection_for(ctx, msg.connection_hops)
    _check_ordering(connection_end, msg.ordering)
    counterparty_channel_id = msg.counterparty.channel_id
    if counterparty_channel_id is None:
        raise ChannelError(
            ChannelErrorKind.INVALID_COUNTERPARTY,
            "counterparty channel id is required on ChanOpenTry",
        )

    expected = ChannelEnd(
        state=ChannelState.INIT,
        ordering=msg.ordering,
        remote=Counterparty(port_id=msg.port_id),
        connection_hops=[connection_end.counterparty.connection_id],
        version=msg.counterparty_version,
    )
    verify_channel_proof(
        ctx,
        connection_end,
        msg.proof_height,
        msg.proof_init,
        msg.counterparty.port_id,
        counterparty_channel_id,
        expected,
    )

    channel_id = ctx.generate_channel_id()
    version = invoke_callback(
        "ChanOpenTry",
        module.on_chan_open_try,
        msg.ordering,
        msg.connection_hops,
        msg.port_id,
        channel_id,
        msg.counterparty,
        msg.counterparty_version,
    )

    end = ChannelEnd(
        state=ChannelState.TRYOPEN,
        ordering=msg.ordering,
        remote=msg.counterparty,
        connection_hops=msg.connection_hops,
        version=version,
    )
    ctx.store_channel(msg.port_id, channel_id, end)
    _init_sequences(ctx, msg.port_id, channel_id)

    ctx.emit_event(EventKind.CHANNEL_OPEN_TRY, _event_attributes(msg.port_id, channel_id, end))
    logger.info(
        "%s: ChanOpenTry %s/%s paired with %s/%s",
        ctx.chain_id, msg.port_id, channel_id, msg.counterparty.port_id, counterparty_channel_id,
    )
    return channel_id


def chan_open_ack(ctx: HostContext, router: Router, msg: MsgChannelOpenAck) -> ChannelId:
    module = router.get_route(msg.port_id)
    end = ctx.lookup_channel(msg.port_id, msg.channel_id)
    _expect_state(msg.port_id, msg.channel_id, end, ChannelState.INIT)
    connection_end = open_connection_for(ctx, end.connection_hops)

    expected = ChannelEnd(
        state=ChannelState.TRYOPEN,
        ordering=end.ordering,
        remote=Counterparty(port_id=msg.port_id, channel_id=msg.channel_id),
        connection_hops=[connection_end.counterparty.connection_id],
        version=msg.counterparty_version,
    )
    verify_channel_proof(
        ctx,
        connection_end,
        msg.proof_height,
        msg.proof_try,
        end.remote.port_id,
        msg.counterparty_channel_id,
        expected,
    )
    invoke_callback(
        "ChanOpenAck", module.on_chan_open_ack, msg.port_id, msg.channel_id, msg.counterparty_version
    )

    opened = end.model_copy(
        update={
            "state": ChannelState.OPEN,
            "remote": Counterparty(port_id=end.remote.port_id, channel_id=msg.counterparty_channel_id),
            "version": msg.counterparty_version,
        }
    )
    ctx.store_channel(msg.port_id, msg.channel_id, opened)
    ctx.emit_event(EventKind.CHANNEL_OPEN_ACK, _event_attributes(msg.port_id, msg.channel_id, opened))
    logger.info("%s: channel %s/%s open", ctx.chain_id, msg.port_id, msg.channel_id)
    return msg.channel_id


def chan_open_confirm(ctx: HostContext, router: Router, msg: MsgChannelOpenConfirm) -> ChannelId:
    module = router.get_route(msg.port_id)
    end = ctx.lookup_channel(msg.port_id, msg.channel_id)
    _expect_state(msg.port_id, msg.channel_id, end, ChannelState.TRYOPEN)
    connection_end = open_connection_for(ctx, end.connection_hops)

    expected = ChannelEnd(
        state=ChannelState.OPEN,
        ordering=end.ordering,
        remote=Counterparty(port_id=msg.port_id, channel_id=msg.channel_id),
        connection_hops=[connection_end.counterparty.connection_id],
        version=end.version,
    )
    verify_channel_proof(
        ctx,
        connection_end,
        msg.proof_height,
        msg.proof_ack,
        end.remote.port_id,
        end.remote.channel_id,
        expected,
    )
    invoke_callback("ChanOpenConfirm", module.on_chan_open_confirm, msg.port_id, msg.channel_id)

    opened = end.with_state(ChannelState.OPEN)
    ctx.store_channel(msg.port_id, msg.channel_id, opened)
    ctx.emit_event(EventKind.CHANNEL_OPEN_CONFIRM, _event_attributes(msg.port_id, msg.channel_id, opened))
    logger.info("%s: channel %s/%s open", ctx.chain_id, msg.port_id, msg.channel_id)
    return msg.channel_id


# ======================================================================
# Closing
# ======================================================================

def _ensure_not_closed(port_id: PortId, channel_id: ChannelId, end: ChannelEnd) -> None:
    if end.is_closed():
        raise ChannelError(
            ChannelErrorKind.CHANNEL_CLOSED,
            f"channel {port_id}/{channel_id} is already closed",
            port_id=port_id,
            channel_id=channel_id,
        )


def close_channel(ctx: HostContext, port_id: PortId, channel_id: ChannelId, end: ChannelEnd) -> ChannelEnd:
    """Move a channel to CLOSED and emit the generic close event."""
    closed = end.with_state(ChannelState.CLOSED)
    ctx.store_channel(port_id, channel_id, closed)
    ctx.emit_event(EventKind.CHANNEL_CLOSED, _event_attributes(port_id, channel_id, closed))
    logger.info("%s: channel %s/%s closed", ctx.chain_id, port_id, channel_id)
    return closed


def chan_close_init(ctx: HostContext, router: Router, msg: MsgChannelCloseInit) -> ChannelId:
    module = router.get_route(msg.port_id)
    end = ctx.lookup_channel(msg.port_id, msg.channel_id)
    _ensure_not_closed(msg.port_id, msg.channel_id, end)
    open_connection_for(ctx, end.connection_hops)

    invoke_callback("ChanCloseInit", module.on_chan_close_init, msg.port_id, msg.channel_id)
    closed = close_channel(ctx, msg.port_id, msg.channel_id, end)
    ctx.emit_event(EventKind.CHANNEL_CLOSE_INIT, _event_attributes(msg.port_id, msg.channel_id, closed))
    return msg.channel_id


def chan_close_confirm(ctx: HostContext, router: Router, msg: MsgChannelCloseConfirm) -> ChannelId:
    module = router.get_route(msg.port_id)
    end = ctx.lookup_channel(msg.port_id, msg.channel_id)
    _ensure_not_closed(msg.port_id, msg.channel_id, end)
    connection_end = open_connection_for(ctx, end.connection_hops)
    if end.remote.channel_id is None:
        raise ChannelError(
            ChannelErrorKind.INVALID_COUNTERPARTY,
            f"channel {msg.port_id}/{msg.channel_id} has no counterparty channel yet",
        )

    expected = ChannelEnd(
        state=ChannelState.CLOSED,
        ordering=end.ordering,
        remote=Counterparty(port_id=msg.port_id, channel_id=msg.channel_id),
        connection_hops=[connection_end.counterparty.connection_id],
        version=end.version,
    )
    verify_channel_proof(
        ctx,
        connection_end,
        msg.proof_height,
        msg.proof_init,
        end.remote.port_id,
        end.remote.channel_id,
        expected,
    )
    invoke_callback("ChanCloseConfirm", module.on_chan_close_confirm, msg.port_id, msg.channel_id)
    closed = close_channel(ctx, msg.port_id, msg.channel_id, end)
    ctx.emit_event(EventKind.CHANNEL_CLOSE_CONFIRM, _event_attributes(msg.port_id, msg.channel_id, closed))
    return msg.channel_id
