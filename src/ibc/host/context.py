# src/ibc/host/context.py
"""
HostContext: everything the core needs from the embedding chain.

Handlers never touch storage directly. They read and write encoded values
at paths, read the host's height and time, and emit events, all through
this interface. The typed helpers in the second half of the class are
built purely on those primitives, so a host only has to implement the
abstract methods.

Conceptually this plays the role the StateManager plays for the
authorization pipeline: a single object through which all mutable state
is reached.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from ibc.channel.types import RECEIPT_VALUE, ChannelEnd
from ibc.clients.base import ClientDef, ClientState, ConsensusState
from ibc.clients.registry import ClientRegistry
from ibc.commitment.proof import CommitmentPrefix
from ibc.config import IbcSettings
from ibc.connection.types import ConnectionEnd
from ibc.core.enums import ClientStatus, EventKind
from ibc.core.errors import (
    ChannelError,
    ChannelErrorKind,
    ClientError,
    ClientErrorKind,
    ConnectionErrorKind,
    IbcConnectionError,
)
from ibc.core.height import Height
from ibc.core.identifiers import ChainId, ChannelId, ClientId, ConnectionId, PortId
from ibc.core.paths import (
    CHANNEL_COUNTER,
    CLIENT_COUNTER,
    CONNECTION_COUNTER,
    AckPath,
    ChannelEndPath,
    ClientConnectionsPath,
    ClientConsensusStatePath,
    ClientStatePath,
    ClientTypePath,
    CommitmentPath,
    ConnectionPath,
    CounterPath,
    Path,
    ProcessedHeightPath,
    ProcessedTimePath,
    ReceiptPath,
    SeqAckPath,
    SeqRecvPath,
    SeqSendPath,
)
from ibc.helper.encoding import decode_model, decode_u64, encode_model, encode_u64


class HostContext(ABC):
    # ==================================================================
    # 1. Primitives supplied by the host
    # ==================================================================

    @abstractmethod
    def get_state(self, path: Path) -> Optional[bytes]:
        raise NotImplementedError

    @abstractmethod
    def set_state(self, path: Path, value: bytes) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete_state(self, path: Path) -> None:
        raise NotImplementedError

    @abstractmethod
    def current_height(self) -> Height:
        raise NotImplementedError

    @abstractmethod
    def current_timestamp(self) -> int:
        """Host block time in unix nanoseconds."""
        raise NotImplementedError

    @abstractmethod
    def emit_event(self, kind: EventKind, attributes: Dict[str, object]) -> None:
        raise NotImplementedError

    @abstractmethod
    def host_consensus_state(self, height: Height) -> ConsensusState:
        """
        This chain's own consensus state at `height`, as a counterparty
        client of this chain would have stored it.

        Raises HostError(MISSING_HOST_CONSENSUS_STATE) if unknown.
        """
        raise NotImplementedError

    @property
    @abstractmethod
    def chain_id(self) -> ChainId:
        raise NotImplementedError

    @property
    @abstractmethod
    def client_registry(self) -> ClientRegistry:
        raise NotImplementedError

    @property
    @abstractmethod
    def settings(self) -> IbcSettings:
        raise NotImplementedError

    def commitment_prefix(self) -> CommitmentPrefix:
        return CommitmentPrefix.from_str(self.settings.commitment_prefix)

    # ==================================================================
    # 2. Identifier generation
    # ==================================================================

    def _next_counter(self, path: CounterPath) -> int:
        raw = self.get_state(path)
        counter = decode_u64(raw) if raw is not None else 0
        self.set_state(path, encode_u64(counter + 1))
        return counter

    def generate_client_id(self, client_type: str) -> ClientId:
        return ClientId.new(client_type, self._next_counter(CLIENT_COUNTER))

    def generate_connection_id(self) -> ConnectionId:
        return ConnectionId.new(self._next_counter(CONNECTION_COUNTER))

    def generate_channel_id(self) -> ChannelId:
        return ChannelId.new(self._next_counter(CHANNEL_COUNTER))

    # ==================================================================
    # 3. Clients
    # ==================================================================

    def client_type(self, client_id: ClientId) -> str:
        raw = self.get_state(ClientTypePath(client_id=client_id))
        if raw is None:
            raise ClientError(
                ClientErrorKind.UNKNOWN_CLIENT,
                f"client {client_id} not found",
                client_id=client_id,
            )
        return raw.decode("utf-8")

    def client_def(self, client_id: ClientId) -> ClientDef:
        return self.client_registry.get(self.client_type(client_id))

    def lookup_client(self, client_id: ClientId) -> ClientState:
        client_def = self.client_def(client_id)
        raw = self.get_state(ClientStatePath(client_id=client_id))
        if raw is None:
            raise ClientError(
                ClientErrorKind.UNKNOWN_CLIENT,
                f"client state of {client_id} not found",
                client_id=client_id,
            )
        return client_def.decode_client_state(raw)

    def store_client_type(self, client_id: ClientId, client_type: str) -> None:
        self.set_state(ClientTypePath(client_id=client_id), client_type.encode("utf-8"))

    def store_client_state(self, client_id: ClientId, client_state: ClientState) -> None:
        self.set_state(ClientStatePath(client_id=client_id), encode_model(client_state))

    def maybe_consensus_state(self, client_id: ClientId, height: Height) -> Optional[ConsensusState]:
        raw = self.get_state(ClientConsensusStatePath(client_id=client_id, height=height))
        if raw is None:
            return None
        return decode_model(ConsensusState, raw)

    def consensus_state(self, client_id: ClientId, height: Height) -> ConsensusState:
        cs = self.maybe_consensus_state(client_id, height)
        if cs is None:
            raise ClientError(
                ClientErrorKind.CONSENSUS_STATE_NOT_FOUND,
                f"no consensus state for {client_id} at {height}",
                client_id=client_id,
                height=height,
            )
        return cs

    def store_consensus_state(
        self, client_id: ClientId, height: Height, consensus_state: ConsensusState
    ) -> None:
        """Persist a consensus state together with when this host learned it."""
        self.set_state(
            ClientConsensusStatePath(client_id=client_id, height=height),
            encode_model(consensus_state),
        )
        self.set_state(
            ProcessedTimePath(client_id=client_id, height=height),
            encode_u64(self.current_timestamp()),
        )
        self.set_state(
            ProcessedHeightPath(client_id=client_id, height=height),
            encode_model(self.current_height()),
        )

    def processed_time(self, client_id: ClientId, height: Height) -> int:
        raw = self.get_state(ProcessedTimePath(client_id=client_id, height=height))
        if raw is None:
            raise ClientError(
                ClientErrorKind.CONSENSUS_STATE_NOT_FOUND,
                f"no processed time for {client_id} at {height}",
            )
        return decode_u64(raw)

    def processed_height(self, client_id: ClientId, height: Height) -> Height:
        raw = self.get_state(ProcessedHeightPath(client_id=client_id, height=height))
        if raw is None:
            raise ClientError(
                ClientErrorKind.CONSENSUS_STATE_NOT_FOUND,
                f"no processed height for {client_id} at {height}",
            )
        return decode_model(Height, raw)

    def client_status(self, client_id: ClientId) -> ClientStatus:
        client_def = self.client_def(client_id)
        client_state = self.lookup_client(client_id)
        latest = self.maybe_consensus_state(client_id, client_state.latest_height)
        return client_def.status(client_state, latest, self.current_timestamp())

    def ensure_client_active(self, client_id: ClientId) -> Tuple[ClientDef, ClientState]:
        """Return the client's plugin and state, or raise if it is not Active."""
        client_def = self.client_def(client_id)
        client_state = self.lookup_client(client_id)
        latest = self.maybe_consensus_state(client_id, client_state.latest_height)
        status = client_def.status(client_state, latest, self.current_timestamp())
        if status == ClientStatus.FROZEN:
            raise ClientError(
                ClientErrorKind.FROZEN,
                f"client {client_id} is frozen at {client_state.frozen_height}",
                client_id=client_id,
            )
        if status == ClientStatus.EXPIRED:
            raise ClientError(
                ClientErrorKind.EXPIRED,
                f"client {client_id} has expired",
                client_id=client_id,
            )
        return client_def, client_state

    def client_connections(self, client_id: ClientId) -> List[ConnectionId]:
        raw = self.get_state(ClientConnectionsPath(client_id=client_id))
        if raw is None:
            return []
        return [ConnectionId(c) for c in raw.decode("utf-8").split(",") if c]

    def add_client_connection(self, client_id: ClientId, connection_id: ConnectionId) -> None:
        connections = self.client_connections(client_id)
        if connection_id not in connections:
            connections.append(connection_id)
        self.set_state(ClientConnectionsPath(client_id=client_id), ",".join(connections).encode("utf-8"))

    def validate_self_client(self, client_state: ClientState) -> None:
        """
        Check the client state a counterparty claims to hold of this chain.

        Rejects frozen clients, clients for another chain or revision, and
        clients claiming a height this chain has not reached yet.
        """
        if client_state.is_frozen():
            raise IbcConnectionError(
                ConnectionErrorKind.INVALID_CLIENT_STATE,
                "counterparty client of this chain is frozen",
            )
        if client_state.chain_id != self.chain_id:
            raise IbcConnectionError(
                ConnectionErrorKind.INVALID_CLIENT_STATE,
                f"counterparty client tracks chain {client_state.chain_id}, this is {self.chain_id}",
            )
        current = self.current_height()
        if client_state.latest_height.revision_number != current.revision_number:
            raise IbcConnectionError(
                ConnectionErrorKind.INVALID_CLIENT_STATE,
                f"counterparty client revision {client_state.latest_height.revision_number} "
                f"does not match host revision {current.revision_number}",
            )
        if client_state.latest_height >= current:
            raise IbcConnectionError(
                ConnectionErrorKind.INVALID_CLIENT_STATE,
                f"counterparty client height {client_state.latest_height} is not below "
                f"host height {current}",
            )

    # ==================================================================
    # 4. Connections
    # ==================================================================

    def maybe_connection(self, connection_id: ConnectionId) -> Optional[ConnectionEnd]:
        raw = self.get_state(ConnectionPath(connection_id=connection_id))
        return decode_model(ConnectionEnd, raw) if raw is not None else None

    def lookup_connection(self, connection_id: ConnectionId) -> ConnectionEnd:
        conn = self.maybe_connection(connection_id)
        if conn is None:
            raise IbcConnectionError(
                ConnectionErrorKind.UNKNOWN_CONNECTION,
                f"connection {connection_id} not found",
                connection_id=connection_id,
            )
        return conn

    def store_connection(self, connection_id: ConnectionId, connection_end: ConnectionEnd) -> None:
        self.set_state(ConnectionPath(connection_id=connection_id), encode_model(connection_end))

    # ==================================================================
    # 5. Channels and sequences
    # ==================================================================

    def maybe_channel(self, port_id: PortId, channel_id: ChannelId) -> Optional[ChannelEnd]:
        raw = self.get_state(ChannelEndPath(port_id=port_id, channel_id=channel_id))
        return decode_model(ChannelEnd, raw) if raw is not None else None

    def lookup_channel(self, port_id: PortId, channel_id: ChannelId) -> ChannelEnd:
        channel = self.maybe_channel(port_id, channel_id)
        if channel is None:
            raise ChannelError(
                ChannelErrorKind.UNKNOWN_CHANNEL,
                f"channel {port_id}/{channel_id} not found",
                port_id=port_id,
                channel_id=channel_id,
            )
        return channel

    def store_channel(self, port_id: PortId, channel_id: ChannelId, channel_end: ChannelEnd) -> None:
        self.set_state(ChannelEndPath(port_id=port_id, channel_id=channel_id), encode_model(channel_end))

    def _get_sequence(self, path: Path) -> int:
        raw = self.get_state(path)
        if raw is None:
            raise ChannelError(
                ChannelErrorKind.UNKNOWN_CHANNEL,
                f"sequence {path} not initialised",
            )
        return decode_u64(raw)

    def next_sequence_send(self, port_id: PortId, channel_id: ChannelId) -> int:
        return self._get_sequence(SeqSendPath(port_id=port_id, channel_id=channel_id))

    def next_sequence_recv(self, port_id: PortId, channel_id: ChannelId) -> int:
        return self._get_sequence(SeqRecvPath(port_id=port_id, channel_id=channel_id))

    def next_sequence_ack(self, port_id: PortId, channel_id: ChannelId) -> int:
        return self._get_sequence(SeqAckPath(port_id=port_id, channel_id=channel_id))

    def store_next_sequence_send(self, port_id: PortId, channel_id: ChannelId, seq: int) -> None:
        self.set_state(SeqSendPath(port_id=port_id, channel_id=channel_id), encode_u64(seq))

    def store_next_sequence_recv(self, port_id: PortId, channel_id: ChannelId, seq: int) -> None:
        self.set_state(SeqRecvPath(port_id=port_id, channel_id=channel_id), encode_u64(seq))

    def store_next_sequence_ack(self, port_id: PortId, channel_id: ChannelId, seq: int) -> None:
        self.set_state(SeqAckPath(port_id=port_id, channel_id=channel_id), encode_u64(seq))

    # ==================================================================
    # 6. Packet commitments, receipts and acknowledgements
    # ==================================================================

    def packet_commitment(self, port_id: PortId, channel_id: ChannelId, sequence: int) -> Optional[bytes]:
        return self.get_state(CommitmentPath(port_id=port_id, channel_id=channel_id, sequence=sequence))

    def store_packet_commitment(
        self, port_id: PortId, channel_id: ChannelId, sequence: int, commitment: bytes
    ) -> None:
        self.set_state(CommitmentPath(port_id=port_id, channel_id=channel_id, sequence=sequence), commitment)

    def delete_packet_commitment(self, port_id: PortId, channel_id: ChannelId, sequence: int) -> None:
        self.delete_state(CommitmentPath(port_id=port_id, channel_id=channel_id, sequence=sequence))

    def has_packet_receipt(self, port_id: PortId, channel_id: ChannelId, sequence: int) -> bool:
        path = ReceiptPath(port_id=port_id, channel_id=channel_id, sequence=sequence)
        return self.get_state(path) is not None

    def store_packet_receipt(self, port_id: PortId, channel_id: ChannelId, sequence: int) -> None:
        self.set_state(ReceiptPath(port_id=port_id, channel_id=channel_id, sequence=sequence), RECEIPT_VALUE)

    def packet_acknowledgement(self, port_id: PortId, channel_id: ChannelId, sequence: int) -> Optional[bytes]:
        return self.get_state(AckPath(port_id=port_id, channel_id=channel_id, sequence=sequence))

    def store_packet_acknowledgement(
        self, port_id: PortId, channel_id: ChannelId, sequence: int, ack_commitment: bytes
    ) -> None:
        self.set_state(AckPath(port_id=port_id, channel_id=channel_id, sequence=sequence), ack_commitment)

