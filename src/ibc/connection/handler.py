# src/ibc/connection/handler.py
"""
Connection handshake (ConnOpenInit / Try / Ack / Confirm).

    A: Init ──────────────► B: Try
    A: Ack  ◄──────────────  (proof of B's TRYOPEN end)
    A: OPEN ──────────────► B: Confirm (proof of A's OPEN end) → OPEN

Every step after Init proves the counterparty's connection end and, for
Try and Ack, also the counterparty's client of this chain and the
consensus state that client holds. Transitions are checked against the
current stored state, so a replayed or reordered step fails with
WRONG_STATE instead of being applied twice.
"""
from __future__ import annotations

import logging

from ibc.connection.msgs import (
    MsgConnectionOpenAck,
    MsgConnectionOpenConfirm,
    MsgConnectionOpenInit,
    MsgConnectionOpenTry,
)
from ibc.connection.types import (
    ConnectionEnd,
    Counterparty,
    get_compatible_versions,
    pick_version,
    verify_proposed_version,
)
from ibc.connection.verify import (
    check_consensus_height,
    verify_client_proof,
    verify_connection_proof,
    verify_consensus_proof,
)
from ibc.core.enums import ConnectionState, EventKind
from ibc.core.errors import ConnectionErrorKind, IbcConnectionError
from ibc.core.identifiers import ConnectionId
from ibc.host.context import HostContext

logger = logging.getLogger(__name__)


def _expect_state(connection_id: ConnectionId, end: ConnectionEnd, expected: ConnectionState) -> None:
    if end.state != expected:
        raise IbcConnectionError(
            ConnectionErrorKind.WRONG_STATE,
            f"connection {connection_id} is {end.state.value}, expected {expected.value}",
            connection_id=connection_id,
            state=end.state.value,
        )


def _event_attributes(connection_id: ConnectionId, end: ConnectionEnd) -> dict:
    return {
        "connection_id": connection_id,
        "client_id": end.client_id,
        "counterparty_client_id": end.counterparty.client_id,
        "counterparty_connection_id": end.counterparty.connection_id,
    }


# ======================================================================
# ConnOpenInit
# ======================================================================

def conn_open_init(ctx: HostContext, msg: MsgConnectionOpenInit) -> ConnectionId:
    ctx.ensure_client_active(msg.client_id)

    if msg.counterparty.connection_id is not None:
        raise IbcConnectionError(
            ConnectionErrorKind.INVALID_COUNTERPARTY,
            "counterparty connection id must be empty on ConnOpenInit",
        )

    supported = get_compatible_versions()
    if msg.version is not None:
        verify_proposed_version(msg.version, supported)
        versions = [msg.version]
    else:
        versions = supported

    connection_id = ctx.generate_connection_id()
    end = ConnectionEnd(
        state=ConnectionState.INIT,
        client_id=msg.client_id,
        counterparty=msg.counterparty,
        versions=versions,
        delay_period=msg.delay_period,
    )
    ctx.store_connection(connection_id, end)
    ctx.add_client_connection(msg.client_id, connection_id)

    ctx.emit_event(EventKind.CONNECTION_OPEN_INIT, _event_attributes(connection_id, end))
    logger.info("%s: ConnOpenInit %s on client %s", ctx.chain_id, connection_id, msg.client_id)
    return connection_id


# ======================================================================
# ConnOpenTry
# ======================================================================

def conn_open_try(ctx: HostContext, msg: MsgConnectionOpenTry) -> ConnectionId:
    counterparty_connection_id = msg.counterparty.connection_id
    if counterparty_connection_id is None:
        raise IbcConnectionError(
            ConnectionErrorKind.INVALID_COUNTERPARTY,
            "counterparty connection id is required on ConnOpenTry",
        )
    ctx.ensure_client_active(msg.client_id)

    # A second Try for the same counterparty end is a replay.
    for existing_id in ctx.client_connections(msg.client_id):
        existing = ctx.lookup_connection(existing_id)
        if (
            existing.counterparty.connection_id == counterparty_connection_id
            and existing.counterparty.client_id == msg.counterparty.client_id
        ):
            raise IbcConnectionError(
                ConnectionErrorKind.WRONG_STATE,
                f"connection {existing_id} already pairs with {counterparty_connection_id}",
                connection_id=existing_id,
                state=existing.state.value,
            )

    ctx.validate_self_client(msg.client_state)
    check_consensus_height(ctx, msg.consensus_height)
    version = pick_version(get_compatible_versions(), msg.counterparty_versions)

    end = ConnectionEnd(
        state=ConnectionState.TRYOPEN,
        client_id=msg.client_id,
        counterparty=msg.counterparty,
        versions=[version],
        delay_period=msg.delay_period,
    )
    expected = ConnectionEnd(
        state=ConnectionState.INIT,
        client_id=msg.counterparty.client_id,
        counterparty=Counterparty(client_id=msg.client_id, prefix=ctx.commitment_prefix()),
        versions=msg.counterparty_versions,
        delay_period=msg.delay_period,
    )
    verify_connection_proof(
        ctx, end, msg.proof_height, msg.proof_init, counterparty_connection_id, expected
    )
    verify_client_proof(ctx, end, msg.proof_height, msg.proof_client, msg.client_state)
    verify_consensus_proof(ctx, end, msg.proof_height, msg.proof_consensus, msg.consensus_height)

    connection_id = ctx.generate_connection_id()
    ctx.store_connection(connection_id, end)
    ctx.add_client_connection(msg.client_id, connection_id)

    ctx.emit_event(EventKind.CONNECTION_OPEN_TRY, _event_attributes(connection_id, end))
    logger.info(
        "%s: ConnOpenTry %s paired with %s", ctx.chain_id, connection_id, counterparty_connection_id
    )
    return connection_id


# ======================================================================
# ConnOpenAck
# ======================================================================

def conn_open_ack(ctx: HostContext, msg: MsgConnectionOpenAck) -> ConnectionId:
    connection_id = msg.connection_id
    end = ctx.lookup_connection(connection_id)
    _expect_state(connection_id, end, ConnectionState.INIT)

    # The counterparty may only pick from what was proposed at Init.
    verify_proposed_version(msg.version, end.versions)
    ctx.validate_self_client(msg.client_state)
    check_consensus_height(ctx, msg.consensus_height)

    opened = ConnectionEnd(
        state=ConnectionState.OPEN,
        client_id=end.client_id,
        counterparty=Counterparty(
            client_id=end.counterparty.client_id,
            connection_id=msg.counterparty_connection_id,
            prefix=end.counterparty.prefix,
        ),
        versions=[msg.version],
        delay_period=end.delay_period,
    )
    expected = ConnectionEnd(
        state=ConnectionState.TRYOPEN,
        client_id=end.counterparty.client_id,
        counterparty=Counterparty(
            client_id=end.client_id,
            connection_id=connection_id,
            prefix=ctx.commitment_prefix(),
        ),
        versions=[msg.version],
        delay_period=end.delay_period,
    )
    verify_connection_proof(
        ctx, opened, msg.proof_height, msg.proof_try, msg.counterparty_connection_id, expected
    )
    verify_client_proof(ctx, opened, msg.proof_height, msg.proof_client, msg.client_state)
    verify_consensus_proof(ctx, opened, msg.proof_height, msg.proof_consensus, msg.consensus_height)

    ctx.store_connection(connection_id, opened)
    ctx.emit_event(EventKind.CONNECTION_OPEN_ACK, _event_attributes(connection_id, opened))
    logger.info("%s: connection %s open", ctx.chain_id, connection_id)
    return connection_id


# ======================================================================
# ConnOpenConfirm
# ======================================================================

def conn_open_confirm(ctx: HostContext, msg: MsgConnectionOpenConfirm) -> ConnectionId:
    connection_id = msg.connection_id
    end = ctx.lookup_connection(connection_id)
    _expect_state(connection_id, end, ConnectionState.TRYOPEN)

    expected = ConnectionEnd(
        state=ConnectionState.OPEN,
        client_id=end.counterparty.client_id,
        counterparty=Counterparty(
            client_id=end.client_id,
            connection_id=connection_id,
            prefix=ctx.commitment_prefix(),
        ),
        versions=end.versions,
        delay_period=end.delay_period,
    )
    verify_connection_proof(
        ctx, end, msg.proof_height, msg.proof_ack, end.counterparty.connection_id, expected
    )

    opened = end.model_copy(update={"state": ConnectionState.OPEN})
    ctx.store_connection(connection_id, opened)
    ctx.emit_event(EventKind.CONNECTION_OPEN_CONFIRM, _event_attributes(connection_id, opened))
    logger.info("%s: connection %s open", ctx.chain_id, connection_id)
    return connection_id
