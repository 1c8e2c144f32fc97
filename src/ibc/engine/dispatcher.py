# src/ibc/engine/dispatcher.py
"""
Message dispatch.

The Dispatcher is the single entry point an embedding chain calls for
every protocol message: it picks the handler for the message type, runs
it against a CachedContext and commits the buffered writes and events
only if the handler returned normally. A rejected message therefore
leaves the host state exactly as it was, and its error propagates to the
caller, which decides whether to abort the enclosing transaction.

Application-initiated operations (send_packet, asynchronous
write_acknowledgement) go through the same atomic path.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, Field

from ibc.channel import handshake, packet as packet_handlers
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
from ibc.channel.types import Packet
from ibc.clients import handler as client_handlers
from ibc.clients.msgs import MsgCreateClient, MsgSubmitMisbehaviour, MsgUpdateClient
from ibc.connection import handler as connection_handlers
from ibc.connection.msgs import (
    MsgConnectionOpenAck,
    MsgConnectionOpenConfirm,
    MsgConnectionOpenInit,
    MsgConnectionOpenTry,
)
from ibc.core.errors import HostError, HostErrorKind, IbcError
from ibc.core.events import IbcEvent, stringify_attributes
from ibc.core.height import Height
from ibc.core.identifiers import ChannelId, PortId
from ibc.core.paths import PortPath
from ibc.host.cache import CachedContext
from ibc.host.context import HostContext
from ibc.router.module import Module, Router

logger = logging.getLogger(__name__)

Handler = Callable[[HostContext, Any], Any]


class HandlerOutput(BaseModel):
    """
    Outcome of one successfully delivered message.

    Fields
    ------
    result : Any
        Handler-specific value: the new identifier for Init/Try steps and
        client creation, the updated client state for client updates, the
        packet for send_packet, the written acknowledgement (if any) for
        RecvPacket, None otherwise.
    events : List[IbcEvent]
        Events emitted by the handler, in emission order.
    """
    result: Any = None
    events: List[IbcEvent] = Field(default_factory=list)


class Dispatcher:
    def __init__(self, ctx: HostContext, router: Optional[Router] = None) -> None:
        self.ctx = ctx
        self.router = router or Router()
        self._handlers: Dict[Type[BaseModel], Handler] = self._build_table()

    def _build_table(self) -> Dict[Type[BaseModel], Handler]:
        router = self.router
        return {
            # ---- clients ----
            MsgCreateClient: client_handlers.create_client,
            MsgUpdateClient: client_handlers.update_client,
            MsgSubmitMisbehaviour: client_handlers.submit_misbehaviour,
            # ---- connections ----
            MsgConnectionOpenInit: connection_handlers.conn_open_init,
            MsgConnectionOpenTry: connection_handlers.conn_open_try,
            MsgConnectionOpenAck: connection_handlers.conn_open_ack,
            MsgConnectionOpenConfirm: connection_handlers.conn_open_confirm,
            # ---- channels ----
            MsgChannelOpenInit: lambda ctx, msg: handshake.chan_open_init(ctx, router, msg),
            MsgChannelOpenTry: lambda ctx, msg: handshake.chan_open_try(ctx, router, msg),
            MsgChannelOpenAck: lambda ctx, msg: handshake.chan_open_ack(ctx, router, msg),
            MsgChannelOpenConfirm: lambda ctx, msg: handshake.chan_open_confirm(ctx, router, msg),
            MsgChannelCloseInit: lambda ctx, msg: handshake.chan_close_init(ctx, router, msg),
            MsgChannelCloseConfirm: lambda ctx, msg: handshake.chan_close_confirm(ctx, router, msg),
            # ---- packets ----
            MsgRecvPacket: lambda ctx, msg: packet_handlers.recv_packet(ctx, router, msg),
            MsgAcknowledgement: lambda ctx, msg: packet_handlers.acknowledge_packet(ctx, router, msg),
            MsgTimeout: lambda ctx, msg: packet_handlers.timeout_packet(ctx, router, msg),
            MsgTimeoutOnClose: lambda ctx, msg: packet_handlers.timeout_on_close(ctx, router, msg),
        }

    def bind_port(self, port_id: PortId, module: Module) -> None:
        """Route `port_id` to `module` and record the binding in host state."""
        port_id = PortId(port_id)
        self.router.bind_port(port_id, module)
        self.ctx.set_state(PortPath(port_id=port_id), module.name.encode("utf-8"))

    # ------------------------------------------------------------------
    # Atomic execution
    # ------------------------------------------------------------------

    def _execute(self, label: str, fn: Callable[[HostContext], Any]) -> HandlerOutput:
        cache = CachedContext(self.ctx)
        try:
            result = fn(cache)
        except IbcError as exc:
            logger.warning("%s: %s rejected: %s", self.ctx.chain_id, label, exc.to_dict())
            raise

        height = self.ctx.current_height()
        events = [
            IbcEvent(kind=kind, attributes=stringify_attributes(attributes), height=height)
            for kind, attributes in cache.pending_events
        ]
        writes = cache.pending_writes()
        cache.commit()
        logger.debug(
            "%s: %s applied, %d write(s), %d event(s)", self.ctx.chain_id, label, writes, len(events)
        )
        return HandlerOutput(result=result, events=events)

    def deliver(self, msg: BaseModel) -> HandlerOutput:
        handler = self._handlers.get(type(msg))
        if handler is None:
            raise HostError(
                HostErrorKind.UNKNOWN_MESSAGE,
                f"no handler for message type {type(msg).__name__}",
            )
        return self._execute(type(msg).__name__, lambda ctx: handler(ctx, msg))

    def deliver_all(self, msgs: List[BaseModel]) -> List[HandlerOutput]:
        """
        Deliver messages in order as one transaction: either every message
        applies or none does.
        """
        def run(ctx: HostContext) -> List[HandlerOutput]:
            inner = Dispatcher(ctx, self.router)
            return [inner.deliver(m) for m in msgs]

        outer = self._execute(f"batch of {len(msgs)}", run)
        return outer.result

    def send_packet(
        self,
        port_id: PortId,
        channel_id: ChannelId,
        data: bytes,
        timeout_height: Optional[Height] = None,
        timeout_timestamp: int = 0,
    ) -> HandlerOutput:
        return self._execute(
            "SendPacket",
            lambda ctx: packet_handlers.send_packet(
                ctx, port_id, channel_id, data, timeout_height, timeout_timestamp
            ),
        )

    def write_acknowledgement(self, packet: Packet, ack: bytes) -> HandlerOutput:
        return self._execute(
            "WriteAcknowledgement",
            lambda ctx: packet_handlers.write_acknowledgement(ctx, packet, ack),
        )
