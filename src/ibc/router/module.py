# src/ibc/router/module.py
"""
Application modules and port routing.

The core verifies and sequences packets; what a packet *means* is up to
the module bound to its port. A Module receives handshake callbacks (and
may veto them by raising) plus the three packet callbacks.
"""
from __future__ import annotations

import logging
from abc import ABC
from typing import Dict, List, Optional

from ibc.channel.types import Counterparty, Packet
from ibc.core.enums import Order
from ibc.core.errors import ChannelError, ChannelErrorKind, IbcError
from ibc.core.identifiers import ChannelId, ConnectionId, PortId

logger = logging.getLogger(__name__)


class Module(ABC):
    """
    Base class for application modules.

    Every callback has a permissive default so that a module only
    overrides what it cares about. Raising from a handshake callback
    rejects the handshake step; raising from `on_recv_packet` turns into a
    failure acknowledgement.
    """

    name: str = "module"

    # --------------------------------------------------------------
    # Channel handshake
    # --------------------------------------------------------------

    def on_chan_open_init(
        self,
        order: Order,
        connection_hops: List[ConnectionId],
        port_id: PortId,
        channel_id: ChannelId,
        counterparty: Counterparty,
        version: str,
    ) -> str:
        """Return the version to store on the channel."""
        return version

    def on_chan_open_try(
        self,
        order: Order,
        connection_hops: List[ConnectionId],
        port_id: PortId,
        channel_id: ChannelId,
        counterparty: Counterparty,
        counterparty_version: str,
    ) -> str:
        return counterparty_version

    def on_chan_open_ack(self, port_id: PortId, channel_id: ChannelId, counterparty_version: str) -> None:
        return None

    def on_chan_open_confirm(self, port_id: PortId, channel_id: ChannelId) -> None:
        return None

    def on_chan_close_init(self, port_id: PortId, channel_id: ChannelId) -> None:
        return None

    def on_chan_close_confirm(self, port_id: PortId, channel_id: ChannelId) -> None:
        return None

    # --------------------------------------------------------------
    # Packets
    # --------------------------------------------------------------

    def on_recv_packet(self, packet: Packet) -> Optional[bytes]:
        """
        Return the acknowledgement bytes, or None to acknowledge later via
        `write_acknowledgement`.
        """
        return None

    def on_acknowledgement_packet(self, packet: Packet, acknowledgement: bytes) -> None:
        return None

    def on_timeout_packet(self, packet: Packet) -> None:
        return None


class Router:
    """Port → Module routing table."""

    def __init__(self) -> None:
        self._routes: Dict[str, Module] = {}

    def bind_port(self, port_id: PortId, module: Module) -> None:
        port_id = PortId(port_id)
        if port_id in self._routes:
            raise ChannelError(
                ChannelErrorKind.PORT_ALREADY_BOUND,
                f"port {port_id} is already bound to {self._routes[port_id].name}",
                port_id=port_id,
            )
        self._routes[port_id] = module
        logger.debug("bound port %s to %s", port_id, module.name)

    def has_route(self, port_id: PortId) -> bool:
        return port_id in self._routes

    def get_route(self, port_id: PortId) -> Module:
        module = self._routes.get(port_id)
        if module is None:
            raise ChannelError(
                ChannelErrorKind.UNKNOWN_PORT,
                f"no module bound to port {port_id}",
                port_id=port_id,
            )
        return module

    def ports(self) -> List[PortId]:
        return sorted(PortId(p) for p in self._routes)


def invoke_callback(step: str, callback, *args):
    """
    Run a module callback. Errors raised by the core propagate unchanged;
    anything else the module raises rejects the step.
    """
    try:
        return callback(*args)
    except IbcError:
        raise
    except Exception as exc:
        logger.warning("%s rejected by module: %s", step, exc)
        raise ChannelError(
            ChannelErrorKind.CALLBACK_REJECTED,
            f"{step} rejected by module: {exc}",
            step=step,
        ) from exc
