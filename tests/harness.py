"""
Test-only relayer between two MockChains.

Every relay step follows the same pattern:

  1. seal a block on the source chain,
  2. update the destination's client of the source to that height,
  3. read the needed proofs from the source at that height and deliver
     the proof-carrying message on the destination.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

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
from ibc.channel.types import ChannelEnd, Counterparty as ChannelCounterparty, Packet
from ibc.clients.base import ClientState
from ibc.connection.msgs import (
    MsgConnectionOpenAck,
    MsgConnectionOpenConfirm,
    MsgConnectionOpenInit,
    MsgConnectionOpenTry,
)
from ibc.connection.types import ConnectionEnd, Counterparty as ConnectionCounterparty, Version
from ibc.core.enums import EventKind, Order
from ibc.core.events import IbcEvent
from ibc.core.height import Height
from ibc.core.identifiers import ChannelId, ClientId, ConnectionId, PortId
from ibc.core.paths import (
    AckPath,
    ChannelEndPath,
    ClientConsensusStatePath,
    ClientStatePath,
    CommitmentPath,
    ConnectionPath,
    ReceiptPath,
    SeqRecvPath,
)
from ibc.engine.dispatcher import HandlerOutput
from ibc.helper.encoding import decode_model, decode_u64
from ibc.mock import PING_VERSION, MockChain


def packet_from_event(event: IbcEvent) -> Packet:
    """Rebuild a packet from a send_packet / recv_packet event."""
    return Packet(
        sequence=int(event.get("packet_sequence")),
        source_port=event.get("packet_src_port"),
        source_channel=event.get("packet_src_channel"),
        destination_port=event.get("packet_dst_port"),
        destination_channel=event.get("packet_dst_channel"),
        data=bytes.fromhex(event.get("packet_data")),
        timeout_height=Height.parse(event.get("packet_timeout_height")),
        timeout_timestamp=int(event.get("packet_timeout_timestamp")),
    )


def single_event(output: HandlerOutput, kind: EventKind) -> IbcEvent:
    matches = [e for e in output.events if e.kind == kind]
    assert len(matches) == 1, f"expected one {kind.value} event, got {len(matches)}"
    return matches[0]


@dataclass
class ChannelPair:
    port_a: PortId
    chan_a: ChannelId
    port_b: PortId
    chan_b: ChannelId


class Relayer:
    def __init__(self, a: MockChain, b: MockChain) -> None:
        self.a = a
        self.b = b
        # client hosted on a tracking b, and vice versa
        self.client_a: Optional[ClientId] = None
        self.client_b: Optional[ClientId] = None

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def other(self, chain: MockChain) -> MockChain:
        return self.b if chain is self.a else self.a

    def client_on(self, chain: MockChain) -> ClientId:
        """Client hosted on `chain` that tracks the other chain."""
        return self.client_a if chain is self.a else self.client_b

    def create_clients(self) -> Tuple[ClientId, ClientId]:
        self.client_a = self.a.deliver(self.b.create_client_msg()).result
        self.client_b = self.b.deliver(self.a.create_client_msg()).result
        return self.client_a, self.client_b

    def sync(self, src: MockChain) -> Height:
        """Seal a block on `src` and bring the other chain's client up to it."""
        height = src.commit_block()
        dst = self.other(src)
        dst.deliver(src.update_client_msg(self.client_on(dst), height))
        return height

    @staticmethod
    def client_state_at(chain: MockChain, client_id: ClientId, height: Height) -> ClientState:
        raw = chain.ctx.state_at(ClientStatePath(client_id=client_id), height)
        return chain.ctx.client_def(client_id).decode_client_state(raw)

    # ------------------------------------------------------------------
    # Connection handshake
    # ------------------------------------------------------------------

    def conn_open_init(
        self, src: MockChain, delay_period: int = 0, version: Optional[Version] = None
    ) -> ConnectionId:
        dst = self.other(src)
        msg = MsgConnectionOpenInit(
            client_id=self.client_on(src),
            counterparty=ConnectionCounterparty(
                client_id=self.client_on(dst), prefix=dst.ctx.commitment_prefix()
            ),
            version=version,
            delay_period=delay_period,
        )
        return src.deliver(msg).result

    def build_conn_open_try(self, src: MockChain, src_conn: ConnectionId, height: Height) -> MsgConnectionOpenTry:
        """ConnOpenTry for the other chain, proving `src_conn` at `height`."""
        dst = self.other(src)
        src_client = self.client_on(src)
        end = decode_model(ConnectionEnd, src.ctx.state_at(ConnectionPath(connection_id=src_conn), height))
        client_state = self.client_state_at(src, src_client, height)
        consensus_height = client_state.latest_height
        return MsgConnectionOpenTry(
            client_id=self.client_on(dst),
            client_state=client_state,
            counterparty=ConnectionCounterparty(
                client_id=src_client, connection_id=src_conn, prefix=src.ctx.commitment_prefix()
            ),
            counterparty_versions=end.versions,
            delay_period=end.delay_period,
            proof_height=height,
            proof_init=src.prove(ConnectionPath(connection_id=src_conn), height),
            proof_client=src.prove(ClientStatePath(client_id=src_client), height),
            proof_consensus=src.prove(
                ClientConsensusStatePath(client_id=src_client, height=consensus_height), height
            ),
            consensus_height=consensus_height,
        )

    def build_conn_open_ack(
        self, src: MockChain, src_conn: ConnectionId, dst_conn: ConnectionId, height: Height
    ) -> MsgConnectionOpenAck:
        """ConnOpenAck for the other chain, proving `src_conn` (TRYOPEN) at `height`."""
        src_client = self.client_on(src)
        end = decode_model(ConnectionEnd, src.ctx.state_at(ConnectionPath(connection_id=src_conn), height))
        client_state = self.client_state_at(src, src_client, height)
        consensus_height = client_state.latest_height
        return MsgConnectionOpenAck(
            connection_id=dst_conn,
            counterparty_connection_id=src_conn,
            client_state=client_state,
            version=end.versions[0],
            proof_height=height,
            proof_try=src.prove(ConnectionPath(connection_id=src_conn), height),
            proof_client=src.prove(ClientStatePath(client_id=src_client), height),
            proof_consensus=src.prove(
                ClientConsensusStatePath(client_id=src_client, height=consensus_height), height
            ),
            consensus_height=consensus_height,
        )

    def build_conn_open_confirm(
        self, src: MockChain, src_conn: ConnectionId, dst_conn: ConnectionId, height: Height
    ) -> MsgConnectionOpenConfirm:
        return MsgConnectionOpenConfirm(
            connection_id=dst_conn,
            proof_height=height,
            proof_ack=src.prove(ConnectionPath(connection_id=src_conn), height),
        )

    def open_connection(
        self, delay_period: int = 0, version: Optional[Version] = None
    ) -> Tuple[ConnectionId, ConnectionId]:
        a, b = self.a, self.b
        conn_a = self.conn_open_init(a, delay_period, version)

        height = self.sync(a)
        conn_b = b.deliver(self.build_conn_open_try(a, conn_a, height)).result

        height = self.sync(b)
        a.deliver(self.build_conn_open_ack(b, conn_b, conn_a, height))

        height = self.sync(a)
        b.deliver(self.build_conn_open_confirm(a, conn_a, conn_b, height))
        return conn_a, conn_b

    # ------------------------------------------------------------------
    # Channel handshake
    # ------------------------------------------------------------------

    def chan_open_init(
        self,
        src: MockChain,
        conn: ConnectionId,
        port: str,
        counterparty_port: str,
        ordering: Order = Order.UNORDERED,
        version: str = PING_VERSION,
    ) -> ChannelId:
        msg = MsgChannelOpenInit(
            port_id=port,
            ordering=ordering,
            connection_hops=[conn],
            counterparty=ChannelCounterparty(port_id=counterparty_port),
            version=version,
        )
        return src.deliver(msg).result

    def channel_at(self, chain: MockChain, port: str, chan: ChannelId, height: Height) -> ChannelEnd:
        raw = chain.ctx.state_at(ChannelEndPath(port_id=port, channel_id=chan), height)
        return decode_model(ChannelEnd, raw)

    def build_chan_open_try(
        self, src: MockChain, src_port: str, src_chan: ChannelId, dst_port: str, dst_conn: ConnectionId, height: Height
    ) -> MsgChannelOpenTry:
        end = self.channel_at(src, src_port, src_chan, height)
        return MsgChannelOpenTry(
            port_id=dst_port,
            ordering=end.ordering,
            connection_hops=[dst_conn],
            counterparty=ChannelCounterparty(port_id=src_port, channel_id=src_chan),
            counterparty_version=end.version,
            proof_height=height,
            proof_init=src.prove(ChannelEndPath(port_id=src_port, channel_id=src_chan), height),
        )

    def build_chan_open_ack(
        self, src: MockChain, src_port: str, src_chan: ChannelId, dst_port: str, dst_chan: ChannelId, height: Height
    ) -> MsgChannelOpenAck:
        end = self.channel_at(src, src_port, src_chan, height)
        return MsgChannelOpenAck(
            port_id=dst_port,
            channel_id=dst_chan,
            counterparty_channel_id=src_chan,
            counterparty_version=end.version,
            proof_height=height,
            proof_try=src.prove(ChannelEndPath(port_id=src_port, channel_id=src_chan), height),
        )

    def build_chan_open_confirm(
        self, src: MockChain, src_port: str, src_chan: ChannelId, dst_port: str, dst_chan: ChannelId, height: Height
    ) -> MsgChannelOpenConfirm:
        return MsgChannelOpenConfirm(
            port_id=dst_port,
            channel_id=dst_chan,
            proof_height=height,
            proof_ack=src.prove(ChannelEndPath(port_id=src_port, channel_id=src_chan), height),
        )

    def open_channel(
        self,
        conn_a: ConnectionId,
        conn_b: ConnectionId,
        port_a: str = "ping",
        port_b: str = "ping",
        ordering: Order = Order.UNORDERED,
    ) -> ChannelPair:
        a, b = self.a, self.b
        chan_a = self.chan_open_init(a, conn_a, port_a, port_b, ordering)

        height = self.sync(a)
        chan_b = b.deliver(self.build_chan_open_try(a, port_a, chan_a, port_b, conn_b, height)).result

        height = self.sync(b)
        a.deliver(self.build_chan_open_ack(b, port_b, chan_b, port_a, chan_a, height))

        height = self.sync(a)
        b.deliver(self.build_chan_open_confirm(a, port_a, chan_a, port_b, chan_b, height))
        return ChannelPair(PortId(port_a), chan_a, PortId(port_b), chan_b)

    def close_channel(self, src: MockChain, src_port: str, src_chan: ChannelId, dst_port: str, dst_chan: ChannelId) -> None:
        """ChanCloseInit on `src`, then ChanCloseConfirm on the other chain."""
        src.deliver(MsgChannelCloseInit(port_id=src_port, channel_id=src_chan))
        height = self.sync(src)
        self.other(src).deliver(
            MsgChannelCloseConfirm(
                port_id=dst_port,
                channel_id=dst_chan,
                proof_height=height,
                proof_init=src.prove(ChannelEndPath(port_id=src_port, channel_id=src_chan), height),
            )
        )

    # ------------------------------------------------------------------
    # Packets
    # ------------------------------------------------------------------

    def build_recv(self, src: MockChain, packet: Packet, height: Height) -> MsgRecvPacket:
        path = CommitmentPath(port_id=packet.source_port, channel_id=packet.source_channel, sequence=packet.sequence)
        return MsgRecvPacket(packet=packet, proof_commitment=src.prove(path, height), proof_height=height)

    def relay_packet(self, src: MockChain, packet: Packet) -> HandlerOutput:
        height = self.sync(src)
        return self.other(src).deliver(self.build_recv(src, packet, height))

    def build_ack(self, dst: MockChain, packet: Packet, ack: bytes, height: Height) -> MsgAcknowledgement:
        """Acknowledgement message for the sender, proving `dst`'s stored ack."""
        path = AckPath(port_id=packet.destination_port, channel_id=packet.destination_channel, sequence=packet.sequence)
        return MsgAcknowledgement(
            packet=packet, acknowledgement=ack, proof_acked=dst.prove(path, height), proof_height=height
        )

    def relay_ack(self, dst: MockChain, packet: Packet, ack: bytes) -> HandlerOutput:
        height = self.sync(dst)
        return self.other(dst).deliver(self.build_ack(dst, packet, ack, height))

    def build_timeout(self, dst: MockChain, packet: Packet, ordering: Order, height: Height) -> MsgTimeout:
        port, chan = packet.destination_port, packet.destination_channel
        if ordering == Order.ORDERED:
            path = SeqRecvPath(port_id=port, channel_id=chan)
            next_recv = decode_u64(dst.ctx.state_at(path, height))
            return MsgTimeout(
                packet=packet,
                next_sequence_recv=next_recv,
                proof_unreceived=dst.prove(path, height),
                proof_height=height,
            )
        path = ReceiptPath(port_id=port, channel_id=chan, sequence=packet.sequence)
        return MsgTimeout(packet=packet, proof_unreceived=dst.prove(path, height), proof_height=height)

    def relay_timeout(self, dst: MockChain, packet: Packet, ordering: Order) -> HandlerOutput:
        height = self.sync(dst)
        return self.other(dst).deliver(self.build_timeout(dst, packet, ordering, height))

    def build_timeout_on_close(self, dst: MockChain, packet: Packet, ordering: Order, height: Height) -> MsgTimeoutOnClose:
        timeout = self.build_timeout(dst, packet, ordering, height)
        close_path = ChannelEndPath(port_id=packet.destination_port, channel_id=packet.destination_channel)
        return MsgTimeoutOnClose(
            packet=packet,
            next_sequence_recv=timeout.next_sequence_recv,
            proof_unreceived=timeout.proof_unreceived,
            proof_close=dst.prove(close_path, height),
            proof_height=height,
        )


def send(chain: MockChain, port: str, chan: ChannelId, data: bytes, **timeouts) -> Packet:
    return chain.dispatcher.send_packet(PortId(port), chan, data, **timeouts).result
