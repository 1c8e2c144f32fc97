# src/ibc/connection/verify.py
"""
Proof checks used by the connection handshake.

Every check resolves the local client named by the connection, loads the
consensus state at the proof height and delegates to the client's plugin.
Commitment failures are re-raised as connection errors, chained to the
underlying ProofError; client failures (frozen, expired, missing
consensus state) propagate unchanged.
"""
from __future__ import annotations

from typing import Tuple

from ibc.clients.base import ClientDef, ClientState, ConsensusState
from ibc.connection.types import ConnectionEnd
from ibc.core.errors import ConnectionErrorKind, HostError, IbcConnectionError, ProofError
from ibc.core.height import Height
from ibc.core.identifiers import ClientId, ConnectionId
from ibc.host.context import HostContext


def client_for_proof(
    ctx: HostContext, client_id: ClientId, proof_height: Height
) -> Tuple[ClientDef, ClientState, ConsensusState]:
    """Active client plus its consensus state at `proof_height`."""
    client_def, client_state = ctx.ensure_client_active(client_id)
    consensus_state = ctx.consensus_state(client_id, proof_height)
    return client_def, client_state, consensus_state


def check_consensus_height(ctx: HostContext, consensus_height: Height) -> None:
    """The counterparty cannot hold a consensus state of a height this chain has not sealed."""
    if consensus_height >= ctx.current_height():
        raise IbcConnectionError(
            ConnectionErrorKind.INVALID_CONSENSUS_HEIGHT,
            f"consensus height {consensus_height} is not below host height {ctx.current_height()}",
        )


def verify_connection_proof(
    ctx: HostContext,
    connection_end: ConnectionEnd,
    proof_height: Height,
    proof: bytes,
    counterparty_connection_id: ConnectionId,
    expected: ConnectionEnd,
) -> None:
    client_def, client_state, consensus_state = client_for_proof(ctx, connection_end.client_id, proof_height)
    try:
        client_def.verify_connection_state(
            client_state,
            consensus_state,
            connection_end.counterparty.prefix,
            proof,
            counterparty_connection_id,
            expected,
        )
    except ProofError as exc:
        raise IbcConnectionError(
            ConnectionErrorKind.PROOF_VERIFICATION_FAILED,
            f"counterparty connection {counterparty_connection_id} proof failed: {exc.message}",
            proof_kind=exc.kind.value,
        ) from exc


def verify_client_proof(
    ctx: HostContext,
    connection_end: ConnectionEnd,
    proof_height: Height,
    proof: bytes,
    expected_client_state: ClientState,
) -> None:
    """The counterparty's client of this chain is exactly `expected_client_state`."""
    client_def, client_state, consensus_state = client_for_proof(ctx, connection_end.client_id, proof_height)
    try:
        client_def.verify_client_full_state(
            client_state,
            consensus_state,
            connection_end.counterparty.prefix,
            proof,
            connection_end.counterparty.client_id,
            expected_client_state,
        )
    except ProofError as exc:
        raise IbcConnectionError(
            ConnectionErrorKind.PROOF_VERIFICATION_FAILED,
            f"counterparty client state proof failed: {exc.message}",
            proof_kind=exc.kind.value,
        ) from exc


def verify_consensus_proof(
    ctx: HostContext,
    connection_end: ConnectionEnd,
    proof_height: Height,
    proof: bytes,
    consensus_height: Height,
) -> None:
    """
    The counterparty's client of this chain holds, at `consensus_height`,
    the consensus state this chain actually had at that height.
    """
    try:
        expected = ctx.host_consensus_state(consensus_height)
    except HostError as exc:
        raise IbcConnectionError(
            ConnectionErrorKind.INVALID_CONSENSUS_HEIGHT,
            f"no host consensus state at {consensus_height}",
        ) from exc

    client_def, client_state, consensus_state = client_for_proof(ctx, connection_end.client_id, proof_height)
    try:
        client_def.verify_client_consensus_state(
            client_state,
            consensus_state,
            connection_end.counterparty.prefix,
            proof,
            connection_end.counterparty.client_id,
            consensus_height,
            expected,
        )
    except ProofError as exc:
        raise IbcConnectionError(
            ConnectionErrorKind.PROOF_VERIFICATION_FAILED,
            f"counterparty consensus state proof at {consensus_height} failed: {exc.message}",
            proof_kind=exc.kind.value,
        ) from exc
