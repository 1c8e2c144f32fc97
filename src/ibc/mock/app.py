# src/ibc/mock/app.py
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from ibc.channel.types import Acknowledgement, Counterparty, Packet
from ibc.core.enums import Order
from ibc.core.identifiers import ChannelId, ConnectionId, PortId
from ibc.router.module import Module

logger = logging.getLogger(__name__)

PING_VERSION = "ping-1"
FAIL_PAYLOAD = b"fail"
ASYNC_PAYLOAD = b"async"


class PingModule(Module):
    """
    Minimal application used by tests.

      * answers every packet with `pong:<data>`;
      * fails packets whose payload is b"fail" (the core turns that into a
        failure acknowledgement);
      * leaves packets whose payload is b"async" unacknowledged, so that the
        test can call `write_acknowledgement` later.
    """

    name = "ping"

    def __init__(self) -> None:
        self.received: List[Packet] = []
        self.acknowledged: List[Tuple[Packet, bytes]] = []
        self.timed_out: List[Packet] = []

    def _check_version(self, version: str) -> str:
        version = version or PING_VERSION
        if version != PING_VERSION:
            raise ValueError(f"unsupported ping version {version!r}")
        return version

    def on_chan_open_init(
        self,
        order: Order,
        connection_hops: List[ConnectionId],
        port_id: PortId,
        channel_id: ChannelId,
        counterparty: Counterparty,
        version: str,
    ) -> str:
        return self._check_version(version)

    def on_chan_open_try(
        self,
        order: Order,
        connection_hops: List[ConnectionId],
        port_id: PortId,
        channel_id: ChannelId,
        counterparty: Counterparty,
        counterparty_version: str,
    ) -> str:
        return self._check_version(counterparty_version)

    def on_chan_open_ack(self, port_id: PortId, channel_id: ChannelId, counterparty_version: str) -> None:
        self._check_version(counterparty_version)

    def on_recv_packet(self, packet: Packet) -> Optional[bytes]:
        self.received.append(packet)
        if packet.data == FAIL_PAYLOAD:
            raise ValueError("ping refuses this payload")
        if packet.data == ASYNC_PAYLOAD:
            return None
        return Acknowledgement.success(b"pong:" + packet.data).encode()

    def on_acknowledgement_packet(self, packet: Packet, acknowledgement: bytes) -> None:
        self.acknowledged.append((packet, acknowledgement))

    def on_timeout_packet(self, packet: Packet) -> None:
        logger.debug("ping packet %s timed out", packet.sequence)
        self.timed_out.append(packet)
