# src/ibc/clients/base.py
"""
Light-client abstraction.

Each counterparty consensus algorithm is supported by one ClientDef
implementation, selected by the client-type string stored next to every
client. Handshake and packet logic never branch on the client type: they
only call the capability set defined here.

A ClientDef is responsible for:

  * validating headers against a trusted consensus state and producing
    the updated (ClientState, ConsensusState) pair;
  * deciding whether a piece of evidence proves misbehaviour;
  * verifying commitment proofs against the roots of its consensus
    states.

The proof-verification half is shared by every plugin (it depends only on
the commitment scheme), so it is implemented once on the base class.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import ClassVar, Optional, Tuple, Type

from pydantic import BaseModel, Field, SerializeAsAny

from ibc.commitment.proof import (
    CommitmentPrefix,
    CommitmentRoot,
    apply_prefix,
    verify_membership,
    verify_non_membership,
)
from ibc.core.enums import ClientStatus
from ibc.core.errors import ClientError, ClientErrorKind
from ibc.core.height import NANOS_PER_SECOND, Height
from ibc.core.identifiers import ChainId, ChannelId, ClientId, ConnectionId, PortId
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
from ibc.helper.encoding import decode_model, encode_model, encode_u64

logger = logging.getLogger(__name__)

DEFAULT_TRUSTING_PERIOD = 14 * 24 * 3600 * NANOS_PER_SECOND
# mock chains derive time from block counts, so their clocks drift apart
DEFAULT_MAX_CLOCK_DRIFT = 10 * 60 * NANOS_PER_SECOND


# ======================================================================
# 1. Client data model
# ======================================================================

class ClientState(BaseModel):
    """
    Per-counterparty record holding what is needed to verify that chain.

    Concrete plugins subclass this and set `client_type`.
    """

    client_type: ClassVar[str] = ""

    chain_id: ChainId = Field(..., description="Counterparty chain tracked by this client.")
    latest_height: Height = Field(..., description="Latest verified counterparty height.")
    trusting_period: int = Field(
        default=DEFAULT_TRUSTING_PERIOD,
        gt=0,
        description="Nanoseconds a consensus state stays trusted after its timestamp.",
    )
    max_clock_drift: int = Field(
        default=DEFAULT_MAX_CLOCK_DRIFT,
        gt=0,
        description="Nanoseconds a header timestamp may lead the host clock.",
    )
    frozen_height: Optional[Height] = Field(
        default=None,
        description="Set once misbehaviour is proven; the client is then unusable.",
    )

    class Config:
        frozen = True

    def is_frozen(self) -> bool:
        return self.frozen_height is not None

    def with_frozen_height(self, height: Height) -> "ClientState":
        return self.model_copy(update={"frozen_height": height})

    def with_latest_height(self, height: Height) -> "ClientState":
        return self.model_copy(update={"latest_height": height})


class ConsensusState(BaseModel):
    """
    Immutable snapshot of a counterparty's commitment root and timestamp at
    one height. Shared by all plugins so that a chain can compare the
    consensus state a counterparty holds of it with its own history.
    """

    root: CommitmentRoot
    timestamp: int = Field(..., ge=0, description="Block time in unix nanoseconds.")

    class Config:
        frozen = True


class Header(BaseModel):
    """
    A counterparty block header as submitted in MsgUpdateClient.

    `trusted_height` names the consensus state the header is verified
    against; when omitted the client's latest height is used.
    """

    client_type: ClassVar[str] = ""

    height: Height
    timestamp: int = Field(..., ge=0)
    root: CommitmentRoot
    trusted_height: Optional[Height] = None

    class Config:
        frozen = True


class Misbehaviour(BaseModel):
    """Evidence of two conflicting headers."""

    client_type: ClassVar[str] = ""

    client_id: ClientId
    header1: SerializeAsAny[Header]
    header2: SerializeAsAny[Header]

    class Config:
        frozen = True

    @property
    def height(self) -> Height:
        return max(self.header1.height, self.header2.height)


# ======================================================================
# 2. ClientDef: the capability set a consensus plugin implements
# ======================================================================

class ClientDef(ABC):
    """
    Abstract interface for all light-client plugins.

    Concrete plugins must set `client_type`, `client_state_cls` and
    `header_cls`, and implement `verify_header` and `check_misbehaviour`.
    """

    client_type: ClassVar[str]
    client_state_cls: ClassVar[Type[ClientState]]
    header_cls: ClassVar[Type[Header]]

    # --------------------------------------------------------------
    # 2.1 Decoding
    # --------------------------------------------------------------

    def decode_client_state(self, raw: bytes) -> ClientState:
        return decode_model(self.client_state_cls, raw)

    def decode_consensus_state(self, raw: bytes) -> ConsensusState:
        return decode_model(ConsensusState, raw)

    # --------------------------------------------------------------
    # 2.2 Creation and status
    # --------------------------------------------------------------

    def validate_initial_state(self, client_state: ClientState, consensus_state: ConsensusState) -> None:
        """Checks applied by MsgCreateClient before anything is stored."""
        if not isinstance(client_state, self.client_state_cls):
            raise ClientError(
                ClientErrorKind.TYPE_MISMATCH,
                f"expected {self.client_state_cls.__name__}, got {type(client_state).__name__}",
            )
        if client_state.is_frozen():
            raise ClientError(ClientErrorKind.INVALID_CLIENT_STATE, "cannot create a frozen client")
        if client_state.latest_height.is_zero():
            raise ClientError(ClientErrorKind.INVALID_CLIENT_STATE, "latest height cannot be zero")
        if client_state.latest_height.revision_number != client_state.chain_id.revision_number:
            raise ClientError(
                ClientErrorKind.INVALID_CLIENT_STATE,
                f"latest height {client_state.latest_height} does not match revision of "
                f"chain {client_state.chain_id}",
            )

    def frozen_height(self, client_state: ClientState) -> Optional[Height]:
        return client_state.frozen_height

    def status(
        self,
        client_state: ClientState,
        latest_consensus_state: Optional[ConsensusState],
        now: int,
    ) -> ClientStatus:
        if client_state.is_frozen():
            return ClientStatus.FROZEN
        if latest_consensus_state is None:
            return ClientStatus.EXPIRED
        if latest_consensus_state.timestamp + client_state.trusting_period <= now:
            return ClientStatus.EXPIRED
        return ClientStatus.ACTIVE

    # --------------------------------------------------------------
    # 2.3 Header verification (plugin-specific)
    # --------------------------------------------------------------

    def check_header_time(
        self,
        client_state: ClientState,
        trusted_consensus_state: ConsensusState,
        header: Header,
        now: int,
    ) -> None:
        """Trusting period, monotonic time and clock drift, common to every plugin."""
        if trusted_consensus_state.timestamp + client_state.trusting_period <= now:
            raise ClientError(
                ClientErrorKind.HEADER_VERIFICATION_FAILED,
                "trusted consensus state is outside the trusting period",
            )
        if header.timestamp <= trusted_consensus_state.timestamp:
            raise ClientError(
                ClientErrorKind.HEADER_VERIFICATION_FAILED,
                f"header timestamp {header.timestamp} is not after trusted timestamp "
                f"{trusted_consensus_state.timestamp}",
            )
        if header.timestamp >= now + client_state.max_clock_drift:
            raise ClientError(
                ClientErrorKind.HEADER_VERIFICATION_FAILED,
                f"header timestamp {header.timestamp} is too far ahead of host time {now}",
            )

    @abstractmethod
    def verify_header(
        self,
        client_state: ClientState,
        trusted_consensus_state: ConsensusState,
        header: Header,
        now: int,
    ) -> None:
        """
        Check that `header` is well formed, within the trusting period of
        `trusted_consensus_state`, and was produced by the counterparty's
        consensus. Raise ClientError(HEADER_VERIFICATION_FAILED) otherwise.
        """
        raise NotImplementedError

    @abstractmethod
    def check_misbehaviour(self, client_state: ClientState, misbehaviour: Misbehaviour) -> bool:
        """
        Return True iff `misbehaviour` proves the counterparty's consensus
        signed two conflicting headers. Malformed or unverifiable evidence
        raises ClientError.
        """
        raise NotImplementedError

    def consensus_state_from_header(self, header: Header) -> ConsensusState:
        return ConsensusState(root=header.root, timestamp=header.timestamp)

    def check_header_and_update_state(
        self,
        client_state: ClientState,
        trusted_consensus_state: ConsensusState,
        header: Header,
        now: int,
    ) -> Tuple[ClientState, ConsensusState]:
        """
        Verify `header` and return the advanced client state plus the new
        consensus state to persist.

        Headers at or below the latest verified height are rejected here;
        conflicting headers at an already-trusted height are handled by the
        update handler as misbehaviour.
        """
        if client_state.is_frozen():
            raise ClientError(ClientErrorKind.FROZEN, "client is frozen")
        if not isinstance(header, self.header_cls):
            raise ClientError(
                ClientErrorKind.TYPE_MISMATCH,
                f"expected {self.header_cls.__name__}, got {type(header).__name__}",
            )
        if header.height <= client_state.latest_height:
            raise ClientError(
                ClientErrorKind.HEADER_NOT_NEWER,
                f"header height {header.height} is not above latest height "
                f"{client_state.latest_height}",
                header_height=header.height,
                latest_height=client_state.latest_height,
            )
        self.verify_header(client_state, trusted_consensus_state, header, now)
        return (
            client_state.with_latest_height(header.height),
            self.consensus_state_from_header(header),
        )

    # --------------------------------------------------------------
    # 2.4 Proof verification (shared by all plugins)
    # --------------------------------------------------------------

    @staticmethod
    def _ensure_not_frozen(client_state: ClientState) -> None:
        if client_state.is_frozen():
            raise ClientError(
                ClientErrorKind.FROZEN,
                f"client of {client_state.chain_id} is frozen at {client_state.frozen_height}",
            )

    def _verify_membership(
        self,
        client_state: ClientState,
        consensus_state: ConsensusState,
        prefix: CommitmentPrefix,
        proof: bytes,
        path,
        value: bytes,
    ) -> None:
        self._ensure_not_frozen(client_state)
        verify_membership(consensus_state.root, proof, apply_prefix(prefix, path), value)

    def _verify_non_membership(
        self,
        client_state: ClientState,
        consensus_state: ConsensusState,
        prefix: CommitmentPrefix,
        proof: bytes,
        path,
    ) -> None:
        self._ensure_not_frozen(client_state)
        verify_non_membership(consensus_state.root, proof, apply_prefix(prefix, path))

    def verify_client_full_state(
        self,
        client_state: ClientState,
        consensus_state: ConsensusState,
        prefix: CommitmentPrefix,
        proof: bytes,
        counterparty_client_id: ClientId,
        expected_client_state: ClientState,
    ) -> None:
        """The counterparty stores `expected_client_state` for its client of us."""
        self._verify_membership(
            client_state,
            consensus_state,
            prefix,
            proof,
            ClientStatePath(client_id=counterparty_client_id),
            encode_model(expected_client_state),
        )

    def verify_client_consensus_state(
        self,
        client_state: ClientState,
        consensus_state: ConsensusState,
        prefix: CommitmentPrefix,
        proof: bytes,
        counterparty_client_id: ClientId,
        consensus_height: Height,
        expected_consensus_state: ConsensusState,
    ) -> None:
        """The counterparty holds `expected_consensus_state` of us at `consensus_height`."""
        self._verify_membership(
            client_state,
            consensus_state,
            prefix,
            proof,
            ClientConsensusStatePath(client_id=counterparty_client_id, height=consensus_height),
            encode_model(expected_consensus_state),
        )

    def verify_connection_state(
        self,
        client_state: ClientState,
        consensus_state: ConsensusState,
        prefix: CommitmentPrefix,
        proof: bytes,
        connection_id: ConnectionId,
        expected_connection_end: BaseModel,
    ) -> None:
        self._verify_membership(
            client_state,
            consensus_state,
            prefix,
            proof,
            ConnectionPath(connection_id=connection_id),
            encode_model(expected_connection_end),
        )

    def verify_channel_state(
        self,
        client_state: ClientState,
        consensus_state: ConsensusState,
        prefix: CommitmentPrefix,
        proof: bytes,
        port_id: PortId,
        channel_id: ChannelId,
        expected_channel_end: BaseModel,
    ) -> None:
        self._verify_membership(
            client_state,
            consensus_state,
            prefix,
            proof,
            ChannelEndPath(port_id=port_id, channel_id=channel_id),
            encode_model(expected_channel_end),
        )

    def verify_packet_data(
        self,
        client_state: ClientState,
        consensus_state: ConsensusState,
        prefix: CommitmentPrefix,
        proof: bytes,
        port_id: PortId,
        channel_id: ChannelId,
        sequence: int,
        commitment: bytes,
    ) -> None:
        self._verify_membership(
            client_state,
            consensus_state,
            prefix,
            proof,
            CommitmentPath(port_id=port_id, channel_id=channel_id, sequence=sequence),
            commitment,
        )

    def verify_packet_acknowledgement(
        self,
        client_state: ClientState,
        consensus_state: ConsensusState,
        prefix: CommitmentPrefix,
        proof: bytes,
        port_id: PortId,
        channel_id: ChannelId,
        sequence: int,
        ack_commitment: bytes,
    ) -> None:
        self._verify_membership(
            client_state,
            consensus_state,
            prefix,
            proof,
            AckPath(port_id=port_id, channel_id=channel_id, sequence=sequence),
            ack_commitment,
        )

    def verify_next_sequence_recv(
        self,
        client_state: ClientState,
        consensus_state: ConsensusState,
        prefix: CommitmentPrefix,
        proof: bytes,
        port_id: PortId,
        channel_id: ChannelId,
        next_sequence_recv: int,
    ) -> None:
        self._verify_membership(
            client_state,
            consensus_state,
            prefix,
            proof,
            SeqRecvPath(port_id=port_id, channel_id=channel_id),
            encode_u64(next_sequence_recv),
        )

    def verify_packet_receipt_absence(
        self,
        client_state: ClientState,
        consensus_state: ConsensusState,
        prefix: CommitmentPrefix,
        proof: bytes,
        port_id: PortId,
        channel_id: ChannelId,
        sequence: int,
    ) -> None:
        self._verify_non_membership(
            client_state,
            consensus_state,
            prefix,
            proof,
            ReceiptPath(port_id=port_id, channel_id=channel_id, sequence=sequence),
        )
