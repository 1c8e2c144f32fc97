"""
Host contexts: the in-memory block model and the write overlay used for
atomic message execution.
"""
from __future__ import annotations

import pytest

from ibc.clients.mock import MockClientState
from ibc.core.enums import EventKind
from ibc.core.errors import (
    ChannelError,
    ChannelErrorKind,
    ClientError,
    ClientErrorKind,
    ConnectionErrorKind,
    HostError,
    HostErrorKind,
    IbcConnectionError,
)
from ibc.core.height import NANOS_PER_SECOND, Height
from ibc.core.paths import ConnectionPath, PortPath
from ibc.host.cache import CachedContext
from ibc.host.memory import DEFAULT_BLOCK_TIME, DEFAULT_GENESIS_TIME, InMemoryHostContext

PATH = PortPath(port_id="ping")
OTHER = PortPath(port_id="pong")


@pytest.fixture
def host(ibc_settings) -> InMemoryHostContext:
    return InMemoryHostContext("chainA-1", settings=ibc_settings)


# ======================================================================
# In-memory host
# ======================================================================

class TestInMemoryHost:
    def test_genesis(self, host):
        assert host.current_height() == Height.new(1, 1)
        assert host.current_timestamp() == DEFAULT_GENESIS_TIME
        assert host.latest_sealed_height() is None

    def test_commit_block_seals_and_advances(self, host):
        host.set_state(PATH, b"v")
        sealed = host.commit_block()
        assert sealed == Height.new(1, 1)
        assert host.current_height() == Height.new(1, 2)
        assert host.current_timestamp() == DEFAULT_GENESIS_TIME + DEFAULT_BLOCK_TIME
        assert host.latest_sealed_height() == sealed

        cs = host.host_consensus_state(sealed)
        assert cs.timestamp == DEFAULT_GENESIS_TIME

    def test_snapshot_isolated_from_later_writes(self, host):
        host.set_state(PATH, b"v1")
        sealed = host.commit_block()
        host.set_state(PATH, b"v2")
        host.set_state(OTHER, b"x")
        assert host.state_at(PATH, sealed) == b"v1"
        assert host.state_at(OTHER, sealed) is None
        assert host.get_state(PATH) == b"v2"

    def test_roots_differ_when_state_differs(self, host):
        first = host.commit_block()
        host.set_state(PATH, b"v")
        second = host.commit_block()
        assert host.host_consensus_state(first).root != host.host_consensus_state(second).root

    def test_unknown_height(self, host):
        with pytest.raises(HostError) as info:
            host.host_consensus_state(Height.new(1, 5))
        assert info.value.kind == HostErrorKind.MISSING_HOST_CONSENSUS_STATE
        with pytest.raises(HostError):
            host.prove(PATH, Height.new(1, 5))

    def test_retained_snapshots(self, ibc_settings):
        host = InMemoryHostContext("chainA-1", settings=ibc_settings, retain_heights=2)
        host.set_state(PATH, b"v")
        first = host.commit_block()
        second = host.commit_block()
        third = host.commit_block()

        with pytest.raises(HostError) as info:
            host.prove(PATH, first)
        assert info.value.kind == HostErrorKind.MISSING_HOST_CONSENSUS_STATE
        assert host.state_at(PATH, second) == b"v"
        assert host.state_at(PATH, third) == b"v"
        assert host.latest_sealed_height() == third
        # consensus states outlive the pruned snapshot
        assert host.host_consensus_state(first).root == host.host_consensus_state(second).root

    def test_retention_must_be_positive(self, ibc_settings):
        with pytest.raises(ValueError):
            InMemoryHostContext("chainA-1", settings=ibc_settings, retain_heights=0)

    def test_advance_time(self, host):
        host.advance_time(7 * NANOS_PER_SECOND)
        assert host.current_timestamp() == DEFAULT_GENESIS_TIME + 7 * NANOS_PER_SECOND
        with pytest.raises(ValueError):
            host.advance_time(-1)

    def test_delete_state(self, host):
        host.set_state(PATH, b"v")
        host.delete_state(PATH)
        assert host.get_state(PATH) is None

    def test_events_recorded_with_height(self, host):
        host.emit_event(EventKind.CREATE_CLIENT, {"client_id": "9999-mock-0", "raw": b"\x01"})
        (event,) = host.events_of(EventKind.CREATE_CLIENT)
        assert event.height == Height.new(1, 1)
        assert event.get("raw") == "01"

    def test_revision_from_chain_id(self, ibc_settings):
        host = InMemoryHostContext("gaia-4", settings=ibc_settings)
        assert host.current_height() == Height.new(4, 1)


# ======================================================================
# Typed helpers
# ======================================================================

class TestTypedHelpers:
    def test_identifier_generation(self, host):
        assert host.generate_client_id("9999-mock") == "9999-mock-0"
        assert host.generate_client_id("99-committee") == "99-committee-1"
        assert host.generate_connection_id() == "connection-0"
        assert host.generate_connection_id() == "connection-1"
        assert host.generate_channel_id() == "channel-0"

    def test_unknown_client(self, host):
        with pytest.raises(ClientError) as info:
            host.lookup_client("9999-mock-3")
        assert info.value.kind == ClientErrorKind.UNKNOWN_CLIENT

    def test_unknown_connection(self, host):
        with pytest.raises(IbcConnectionError) as info:
            host.lookup_connection("connection-4")
        assert info.value.kind == ConnectionErrorKind.UNKNOWN_CONNECTION

    def test_unknown_channel(self, host):
        with pytest.raises(ChannelError) as info:
            host.lookup_channel("ping", "channel-4")
        assert info.value.kind == ChannelErrorKind.UNKNOWN_CHANNEL

    def test_uninitialised_sequence(self, host):
        with pytest.raises(ChannelError):
            host.next_sequence_send("ping", "channel-0")

    def test_receipts_and_commitments(self, host):
        assert host.packet_commitment("ping", "channel-0", 1) is None
        host.store_packet_commitment("ping", "channel-0", 1, b"c")
        assert host.packet_commitment("ping", "channel-0", 1) == b"c"
        host.delete_packet_commitment("ping", "channel-0", 1)
        assert host.packet_commitment("ping", "channel-0", 1) is None

        assert not host.has_packet_receipt("ping", "channel-0", 1)
        host.store_packet_receipt("ping", "channel-0", 1)
        assert host.has_packet_receipt("ping", "channel-0", 1)

    def test_client_connections(self, host):
        host.add_client_connection("9999-mock-0", "connection-0")
        host.add_client_connection("9999-mock-0", "connection-0")
        host.add_client_connection("9999-mock-0", "connection-1")
        assert host.client_connections("9999-mock-0") == ["connection-0", "connection-1"]

    def test_processed_time_and_height(self, host):
        cs = host.host_consensus_state(host.commit_block())
        host.store_consensus_state("9999-mock-0", Height.new(2, 7), cs)
        assert host.processed_time("9999-mock-0", Height.new(2, 7)) == host.current_timestamp()
        assert host.processed_height("9999-mock-0", Height.new(2, 7)) == host.current_height()
        with pytest.raises(ClientError) as info:
            host.processed_time("9999-mock-0", Height.new(2, 8))
        assert info.value.kind == ClientErrorKind.CONSENSUS_STATE_NOT_FOUND


class TestValidateSelfClient:
    def _state(self, host, **overrides) -> MockClientState:
        data = dict(chain_id=host.chain_id, latest_height=Height.new(1, 1))
        data.update(overrides)
        return MockClientState(**data)

    def test_accepts_past_height(self, host):
        host.commit_block()
        host.validate_self_client(self._state(host))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"chain_id": "chainZ-1"},
            {"latest_height": Height.new(2, 1)},
            {"latest_height": Height.new(1, 50)},
            {"frozen_height": Height.new(1, 1)},
        ],
    )
    def test_rejects(self, host, overrides):
        host.commit_block()
        with pytest.raises(IbcConnectionError) as info:
            host.validate_self_client(self._state(host, **overrides))
        assert info.value.kind == ConnectionErrorKind.INVALID_CLIENT_STATE

    def test_current_height_is_not_past(self, host):
        with pytest.raises(IbcConnectionError):
            host.validate_self_client(self._state(host, latest_height=host.current_height()))


# ======================================================================
# Write overlay
# ======================================================================

class TestCachedContext:
    def test_reads_fall_through(self, host):
        host.set_state(PATH, b"parent")
        cache = CachedContext(host)
        assert cache.get_state(PATH) == b"parent"

    def test_writes_buffered_until_commit(self, host):
        cache = CachedContext(host)
        cache.set_state(PATH, b"v")
        assert cache.get_state(PATH) == b"v"
        assert host.get_state(PATH) is None
        assert cache.pending_writes() == 1
        cache.commit()
        assert host.get_state(PATH) == b"v"

    def test_delete_shadows_parent(self, host):
        host.set_state(PATH, b"parent")
        cache = CachedContext(host)
        cache.delete_state(PATH)
        assert cache.get_state(PATH) is None
        assert host.get_state(PATH) == b"parent"
        cache.commit()
        assert host.get_state(PATH) is None

    def test_discarded_overlay_leaves_parent_untouched(self, host):
        before = host.commit_block()
        cache = CachedContext(host)
        cache.set_state(PATH, b"v")
        cache.emit_event(EventKind.CREATE_CLIENT, {"client_id": "9999-mock-0"})
        del cache
        after = host.commit_block()
        assert host.get_state(PATH) is None
        assert host.events == []
        assert host.host_consensus_state(after).root == host.host_consensus_state(before).root

    def test_events_forwarded_on_commit(self, host):
        cache = CachedContext(host)
        cache.emit_event(EventKind.CREATE_CLIENT, {"client_id": "9999-mock-0"})
        assert len(cache.pending_events) == 1
        assert host.events == []
        cache.commit()
        assert [e.kind for e in host.events] == [EventKind.CREATE_CLIENT]

    def test_double_commit(self, host):
        cache = CachedContext(host)
        cache.commit()
        with pytest.raises(RuntimeError):
            cache.commit()

    def test_nested_overlay(self, host):
        outer = CachedContext(host)
        inner = CachedContext(outer)
        inner.set_state(ConnectionPath(connection_id="connection-0"), b"end")
        inner.commit()
        assert outer.get_state(ConnectionPath(connection_id="connection-0")) == b"end"
        assert host.get_state(ConnectionPath(connection_id="connection-0")) is None

    def test_pass_through(self, host):
        cache = CachedContext(host)
        assert cache.chain_id == host.chain_id
        assert cache.current_height() == host.current_height()
        assert cache.current_timestamp() == host.current_timestamp()
        assert cache.settings is host.settings
        assert cache.commitment_prefix() == host.commitment_prefix()
