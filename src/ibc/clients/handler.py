# src/ibc/clients/handler.py
"""
Client message handlers: create, update, submit misbehaviour.

Each handler validates fully before its first write, so that a rejected
message leaves no trace even without the dispatcher's write overlay.
"""
from __future__ import annotations

import logging

from ibc.clients.base import ClientState
from ibc.clients.msgs import MsgCreateClient, MsgSubmitMisbehaviour, MsgUpdateClient
from ibc.core.enums import EventKind
from ibc.core.errors import ClientError, ClientErrorKind
from ibc.core.identifiers import ClientId
from ibc.host.context import HostContext

logger = logging.getLogger(__name__)


def create_client(ctx: HostContext, msg: MsgCreateClient) -> ClientId:
    client_state = msg.client_state
    client_type = type(client_state).client_type

    if not ctx.settings.is_client_type_allowed(client_type):
        raise ClientError(
            ClientErrorKind.CLIENT_TYPE_NOT_ALLOWED,
            f"client type {client_type!r} is not allowed on {ctx.chain_id}",
            client_type=client_type,
        )
    client_def = ctx.client_registry.get(client_type)
    client_def.validate_initial_state(client_state, msg.consensus_state)

    client_id = ctx.generate_client_id(client_type)
    height = client_state.latest_height

    ctx.store_client_type(client_id, client_type)
    ctx.store_client_state(client_id, client_state)
    ctx.store_consensus_state(client_id, height, msg.consensus_state)

    ctx.emit_event(
        EventKind.CREATE_CLIENT,
        {"client_id": client_id, "client_type": client_type, "consensus_height": height},
    )
    logger.info("created client %s tracking %s at %s", client_id, client_state.chain_id, height)
    return client_id


def update_client(ctx: HostContext, msg: MsgUpdateClient) -> ClientState:
    """
    Advance a client with a new header.

    If the header is for a height the client already trusts and commits to
    something else, the two together prove misbehaviour and the client is
    frozen instead. Resubmitting an identical header is rejected.
    """
    client_id = msg.client_id
    header = msg.header
    client_def, client_state = ctx.ensure_client_active(client_id)
    now = ctx.current_timestamp()

    if not isinstance(header, client_def.header_cls):
        raise ClientError(
            ClientErrorKind.TYPE_MISMATCH,
            f"client {client_id} expects {client_def.header_cls.__name__}",
        )

    trusted_height = header.trusted_height or client_state.latest_height
    existing = ctx.maybe_consensus_state(client_id, header.height)

    if existing is not None:
        if client_def.consensus_state_from_header(header) == existing:
            raise ClientError(
                ClientErrorKind.HEADER_NOT_NEWER,
                f"client {client_id} already holds this header at {header.height}",
                client_id=client_id,
                height=header.height,
            )
        if header.trusted_height is None or header.trusted_height >= header.height:
            raise ClientError(
                ClientErrorKind.HEADER_VERIFICATION_FAILED,
                "a conflicting header must name a trusted height below its own",
            )
        # The conflicting header must itself verify to count as evidence.
        trusted = ctx.consensus_state(client_id, trusted_height)
        client_def.verify_header(client_state, trusted, header, now)
        frozen = client_state.with_frozen_height(header.height)
        ctx.store_client_state(client_id, frozen)
        ctx.emit_event(
            EventKind.CLIENT_MISBEHAVIOUR,
            {"client_id": client_id, "client_type": client_def.client_type, "height": header.height},
        )
        logger.warning("client %s frozen: conflicting header at %s", client_id, header.height)
        return frozen

    if trusted_height >= header.height:
        raise ClientError(
            ClientErrorKind.HEADER_VERIFICATION_FAILED,
            f"trusted height {trusted_height} is not below header height {header.height}",
        )
    trusted = ctx.consensus_state(client_id, trusted_height)
    new_client_state, new_consensus_state = client_def.check_header_and_update_state(
        client_state, trusted, header, now
    )

    ctx.store_client_state(client_id, new_client_state)
    ctx.store_consensus_state(client_id, header.height, new_consensus_state)
    ctx.emit_event(
        EventKind.UPDATE_CLIENT,
        {
            "client_id": client_id,
            "client_type": client_def.client_type,
            "consensus_height": header.height,
        },
    )
    logger.debug("updated client %s to %s", client_id, header.height)
    return new_client_state


def submit_misbehaviour(ctx: HostContext, msg: MsgSubmitMisbehaviour) -> ClientState:
    misbehaviour = msg.misbehaviour
    client_id = misbehaviour.client_id
    client_def, client_state = ctx.ensure_client_active(client_id)

    if not client_def.check_misbehaviour(client_state, misbehaviour):
        raise ClientError(
            ClientErrorKind.MISBEHAVIOUR_NOT_PROVEN,
            f"evidence for {client_id} does not show conflicting headers",
            client_id=client_id,
        )

    frozen = client_state.with_frozen_height(misbehaviour.height)
    ctx.store_client_state(client_id, frozen)
    ctx.emit_event(
        EventKind.CLIENT_MISBEHAVIOUR,
        {"client_id": client_id, "client_type": client_def.client_type, "height": misbehaviour.height},
    )
    logger.warning("client %s frozen at %s after misbehaviour", client_id, misbehaviour.height)
    return frozen
