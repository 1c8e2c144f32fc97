"""
Two chains, one relayer: packets crossing a live channel, timing out,
racing their own timeouts, and meeting frozen clients and delayed
connections.
"""
from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from harness import Relayer, send, single_event
from ibc.channel.msgs import MsgChannelCloseInit
from ibc.channel.types import Acknowledgement
from ibc.clients.mock import MockHeader, MockMisbehaviour
from ibc.clients.msgs import MsgSubmitMisbehaviour
from ibc.commitment.proof import CommitmentRoot
from ibc.config import IbcSettings
from ibc.core.enums import ChannelState, EventKind, Order
from ibc.core.errors import (
    ChannelError,
    ChannelErrorKind,
    ClientError,
    ClientErrorKind,
    PacketError,
    PacketErrorKind,
)
from ibc.core.height import NANOS_PER_SECOND
from ibc.mock import MockChain, PingModule

DELAY = 60 * NANOS_PER_SECOND


def far_height(chain):
    return chain.ctx.current_height().increment(1000)


# ======================================================================
# Happy path
# ======================================================================

class TestRoundTrip:
    @pytest.mark.parametrize("ordering", [Order.UNORDERED, Order.ORDERED])
    def test_send_recv_ack(self, relayer, connection, ping_modules, chain_a, chain_b, ordering):
        module_a, module_b = ping_modules
        pair = relayer.open_channel(*connection, ordering=ordering)

        packet = send(chain_a, "ping", pair.chan_a, b"hello", timeout_height=far_height(chain_b))
        out = relayer.relay_packet(chain_a, packet)
        assert module_b.received == [packet]
        assert Acknowledgement.decode(out.result).result == b"pong:hello"

        relayer.relay_ack(chain_b, packet, out.result)
        assert module_a.acknowledged == [(packet, out.result)]
        assert chain_a.ctx.packet_commitment("ping", pair.chan_a, 1) is None

    def test_both_directions(self, relayer, unordered, ping_modules, chain_a, chain_b):
        module_a, module_b = ping_modules
        to_b = send(chain_a, "ping", unordered.chan_a, b"ab", timeout_height=far_height(chain_b))
        to_a = send(chain_b, "ping", unordered.chan_b, b"ba", timeout_height=far_height(chain_a))

        ack_b = relayer.relay_packet(chain_a, to_b).result
        ack_a = relayer.relay_packet(chain_b, to_a).result
        relayer.relay_ack(chain_b, to_b, ack_b)
        relayer.relay_ack(chain_a, to_a, ack_a)

        assert [p.data for p in module_a.received] == [b"ba"]
        assert [p.data for p in module_b.received] == [b"ab"]
        assert len(module_a.acknowledged) == len(module_b.acknowledged) == 1

    def test_failure_ack_round_trip(self, relayer, unordered, ping_modules, chain_a, chain_b):
        module_a, _ = ping_modules
        packet = send(chain_a, "ping", unordered.chan_a, b"fail", timeout_height=far_height(chain_b))
        ack = relayer.relay_packet(chain_a, packet).result
        relayer.relay_ack(chain_b, packet, ack)

        ((_, delivered),) = module_a.acknowledged
        assert not Acknowledgement.decode(delivered).is_success()

    def test_async_ack_relayed_later(self, relayer, unordered, ping_modules, chain_a, chain_b):
        module_a, _ = ping_modules
        packet = send(chain_a, "ping", unordered.chan_a, b"async", timeout_height=far_height(chain_b))
        assert relayer.relay_packet(chain_a, packet).result is None

        ack = Acknowledgement.success(b"late").encode()
        chain_b.dispatcher.write_acknowledgement(packet, ack)
        relayer.relay_ack(chain_b, packet, ack)
        assert module_a.acknowledged == [(packet, ack)]


# ======================================================================
# Timeouts
# ======================================================================

class TestTimeout:
    @pytest.mark.parametrize("ordering", [Order.UNORDERED, Order.ORDERED])
    def test_height_timeout(self, relayer, connection, ping_modules, chain_a, chain_b, ordering):
        module_a, module_b = ping_modules
        pair = relayer.open_channel(*connection, ordering=ordering)
        deadline = chain_b.ctx.current_height().increment(2)
        packet = send(chain_a, "ping", pair.chan_a, b"late", timeout_height=deadline)

        chain_b.advance_blocks(3)
        out = relayer.relay_timeout(chain_b, packet, ordering)

        single_event(out, EventKind.TIMEOUT_PACKET)
        assert module_a.timed_out == [packet]
        assert module_b.received == []
        assert chain_a.ctx.packet_commitment("ping", pair.chan_a, 1) is None

        channel = chain_a.ctx.lookup_channel("ping", pair.chan_a)
        if ordering == Order.ORDERED:
            single_event(out, EventKind.CHANNEL_CLOSED)
            assert channel.state == ChannelState.CLOSED
        else:
            assert channel.state == ChannelState.OPEN

    def test_recv_after_height_deadline(self, relayer, unordered, chain_a, chain_b):
        deadline = chain_b.ctx.current_height().increment(2)
        packet = send(chain_a, "ping", unordered.chan_a, b"late", timeout_height=deadline)
        chain_b.advance_blocks(3)
        with pytest.raises(PacketError) as info:
            relayer.relay_packet(chain_a, packet)
        assert info.value.kind == PacketErrorKind.TIMEOUT_HEIGHT_ELAPSED

    def test_timestamp_timeout(self, relayer, unordered, ping_modules, chain_a, chain_b):
        module_a, _ = ping_modules
        deadline = chain_b.ctx.current_timestamp() + 10 * NANOS_PER_SECOND
        packet = send(chain_a, "ping", unordered.chan_a, b"late", timeout_timestamp=deadline)

        chain_b.ctx.advance_time(60 * NANOS_PER_SECOND)
        with pytest.raises(PacketError) as info:
            relayer.relay_packet(chain_a, packet)
        assert info.value.kind == PacketErrorKind.TIMEOUT_TIMESTAMP_ELAPSED

        relayer.relay_timeout(chain_b, packet, Order.UNORDERED)
        assert module_a.timed_out == [packet]

    def test_not_elapsed(self, relayer, unordered, chain_a, chain_b):
        packet = send(chain_a, "ping", unordered.chan_a, b"early", timeout_height=far_height(chain_b))
        with pytest.raises(PacketError) as info:
            relayer.relay_timeout(chain_b, packet, Order.UNORDERED)
        assert info.value.kind == PacketErrorKind.TIMEOUT_NOT_ELAPSED

    def test_repeated_timeout(self, relayer, unordered, chain_a, chain_b):
        packet = send(chain_a, "ping", unordered.chan_a, b"late", timeout_height=chain_b.ctx.current_height().increment(1))
        chain_b.advance_blocks(2)
        relayer.relay_timeout(chain_b, packet, Order.UNORDERED)
        with pytest.raises(PacketError) as info:
            relayer.relay_timeout(chain_b, packet, Order.UNORDERED)
        assert info.value.kind == PacketErrorKind.COMMITMENT_NOT_FOUND


class TestReceiveExcludesTimeout:
    """A packet is either received or timed out, never both."""

    def _received_then_expired(self, relayer, pair, chain_a, chain_b):
        deadline = chain_b.ctx.current_height().increment(3)
        packet = send(chain_a, "ping", pair.chan_a, b"race", timeout_height=deadline)
        ack = relayer.relay_packet(chain_a, packet).result
        chain_b.advance_blocks(4)
        return packet, ack

    def test_unordered_receipt_blocks_timeout(self, relayer, unordered, ping_modules, chain_a, chain_b):
        module_a, _ = ping_modules
        packet, _ = self._received_then_expired(relayer, unordered, chain_a, chain_b)
        with pytest.raises(PacketError) as info:
            relayer.relay_timeout(chain_b, packet, Order.UNORDERED)
        assert info.value.kind == PacketErrorKind.PROOF_VERIFICATION_FAILED
        assert module_a.timed_out == []

    def test_ordered_receipt_blocks_timeout(self, relayer, ordered, ping_modules, chain_a, chain_b):
        module_a, _ = ping_modules
        packet, _ = self._received_then_expired(relayer, ordered, chain_a, chain_b)
        with pytest.raises(PacketError) as info:
            relayer.relay_timeout(chain_b, packet, Order.ORDERED)
        assert info.value.kind == PacketErrorKind.ALREADY_RECEIVED
        assert chain_a.ctx.lookup_channel("ping", ordered.chan_a).state == ChannelState.OPEN
        assert module_a.timed_out == []

    def test_acknowledged_packet_cannot_time_out(self, relayer, unordered, chain_a, chain_b):
        packet, ack = self._received_then_expired(relayer, unordered, chain_a, chain_b)
        relayer.relay_ack(chain_b, packet, ack)
        with pytest.raises(PacketError) as info:
            relayer.relay_timeout(chain_b, packet, Order.UNORDERED)
        assert info.value.kind == PacketErrorKind.COMMITMENT_NOT_FOUND

    def test_timed_out_packet_cannot_be_acknowledged(self, relayer, unordered, chain_a, chain_b):
        deadline = chain_b.ctx.current_height().increment(1)
        packet = send(chain_a, "ping", unordered.chan_a, b"late", timeout_height=deadline)
        chain_b.advance_blocks(2)
        relayer.relay_timeout(chain_b, packet, Order.UNORDERED)
        with pytest.raises(PacketError) as info:
            relayer.relay_ack(chain_b, packet, Acknowledgement.success(b"x").encode())
        assert info.value.kind == PacketErrorKind.COMMITMENT_NOT_FOUND


class TestTimeoutOnClose:
    def test_closed_destination(self, relayer, unordered, ping_modules, chain_a, chain_b):
        module_a, _ = ping_modules
        packet = send(chain_a, "ping", unordered.chan_a, b"orphan", timeout_height=far_height(chain_b))

        chain_b.deliver(MsgChannelCloseInit(port_id="ping", channel_id=unordered.chan_b))
        height = relayer.sync(chain_b)
        out = chain_a.deliver(relayer.build_timeout_on_close(chain_b, packet, Order.UNORDERED, height))

        single_event(out, EventKind.TIMEOUT_ON_CLOSE)
        assert module_a.timed_out == [packet]
        assert chain_a.ctx.packet_commitment("ping", unordered.chan_a, 1) is None

    def test_open_destination(self, relayer, unordered, chain_a, chain_b):
        packet = send(chain_a, "ping", unordered.chan_a, b"orphan", timeout_height=far_height(chain_b))
        height = relayer.sync(chain_b)
        with pytest.raises(ChannelError) as info:
            chain_a.deliver(relayer.build_timeout_on_close(chain_b, packet, Order.UNORDERED, height))
        assert info.value.kind == ChannelErrorKind.PROOF_VERIFICATION_FAILED


# ======================================================================
# Clients and connections under packets
# ======================================================================

class TestFrozenClient:
    def test_frozen_client_stops_packets(self, relayer, unordered, chain_a, chain_b):
        height = relayer.sync(chain_a)
        cs = chain_a.consensus_state(height)
        forged = MockHeader(height=height, timestamp=cs.timestamp, root=CommitmentRoot(hash=b"\x13" * 32))
        evidence = MockMisbehaviour(client_id=relayer.client_b, header1=chain_a.header(height), header2=forged)
        out = chain_b.deliver(MsgSubmitMisbehaviour(misbehaviour=evidence))
        assert out.result.frozen_height == height

        packet = send(chain_a, "ping", unordered.chan_a, b"hi", timeout_height=far_height(chain_b))
        with pytest.raises(ClientError) as info:
            relayer.relay_packet(chain_a, packet)
        assert info.value.kind == ClientErrorKind.FROZEN

        with pytest.raises(ClientError):
            send(chain_b, "ping", unordered.chan_b, b"hi", timeout_height=far_height(chain_a))


class TestDelayPeriod:
    @pytest.fixture
    def delayed(self, relayer, ping_modules):
        conn_a, conn_b = relayer.open_connection(delay_period=DELAY)
        return relayer.open_channel(conn_a, conn_b)

    def _pending_recv(self, relayer, delayed, chain_a, chain_b):
        packet = send(chain_a, "ping", delayed.chan_a, b"slow", timeout_height=far_height(chain_b))
        height = relayer.sync(chain_a)
        return relayer.build_recv(chain_a, packet, height)

    def test_delay_enforced(self, relayer, delayed, chain_a, chain_b):
        msg = self._pending_recv(relayer, delayed, chain_a, chain_b)
        with pytest.raises(PacketError) as info:
            chain_b.deliver(msg)
        assert info.value.kind == PacketErrorKind.DELAY_NOT_PASSED

        # 12 blocks of 5s: the full minute and well over the two-block delay
        chain_b.advance_blocks(12)
        out = chain_b.deliver(msg)
        assert Acknowledgement.decode(out.result).is_success()

    def test_time_alone_is_not_enough(self, relayer, delayed, chain_a, chain_b):
        msg = self._pending_recv(relayer, delayed, chain_a, chain_b)
        chain_b.ctx.advance_time(2 * DELAY)
        with pytest.raises(PacketError) as info:
            chain_b.deliver(msg)
        assert info.value.kind == PacketErrorKind.DELAY_NOT_PASSED
        assert "block delay" in info.value.message


# ======================================================================
# Ordered delivery
# ======================================================================

def ordered_setup():
    cfg = IbcSettings(_env_file=None, commitment_prefix="ibc", max_expected_time_per_block=30 * NANOS_PER_SECOND)
    a, b = MockChain("chainA-1", settings=cfg), MockChain("chainB-1", settings=cfg)
    module_b = PingModule()
    a.bind_port("ping", PingModule())
    b.bind_port("ping", module_b)
    relayer = Relayer(a, b)
    relayer.create_clients()
    pair = relayer.open_channel(*relayer.open_connection(), ordering=Order.ORDERED)
    return relayer, pair, module_b


@settings(max_examples=10)
@given(st.permutations([1, 2, 3, 4]))
def test_ordered_channel_delivers_in_sequence(arrival):
    relayer, pair, module_b = ordered_setup()
    a, b = relayer.a, relayer.b
    far = b.ctx.current_height().increment(1000)
    packets = {p.sequence: p for p in (send(a, "ping", pair.chan_a, bytes([n]), timeout_height=far) for n in range(4))}
    height = relayer.sync(a)
    msgs = {seq: relayer.build_recv(a, packet, height) for seq, packet in packets.items()}

    expected = 1
    while expected <= len(msgs):
        for seq in arrival:
            if seq < expected:
                continue
            if seq == expected:
                b.deliver(msgs[seq])
                expected += 1
            else:
                with pytest.raises(PacketError) as info:
                    b.deliver(msgs[seq])
                assert info.value.kind == PacketErrorKind.SEQUENCE_MISMATCH

    assert [p.sequence for p in module_b.received] == [1, 2, 3, 4]
    with pytest.raises(PacketError) as info:
        b.deliver(msgs[arrival[0]])
    assert info.value.kind == PacketErrorKind.ALREADY_RECEIVED
