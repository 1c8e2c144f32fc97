# src/ibc/core/errors.py
"""
Error taxonomy for the protocol core.

Every public operation either completes or raises one of the exceptions
below. There is no local recovery: each verification is a one-shot check
against immutable proof data, so retrying is the relayer's business.

Each exception carries a machine-readable ``kind`` (a category-specific
enum) plus optional structured ``data`` so that the embedding chain can
decide whether to abort the enclosing transaction or only reject the
message.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ClientErrorKind(str, Enum):
    UNKNOWN_CLIENT = "unknown_client"
    UNKNOWN_CLIENT_TYPE = "unknown_client_type"
    CLIENT_TYPE_NOT_ALLOWED = "client_type_not_allowed"
    CONSENSUS_STATE_NOT_FOUND = "consensus_state_not_found"
    FROZEN = "client_frozen"
    EXPIRED = "client_expired"
    HEADER_VERIFICATION_FAILED = "header_verification_failed"
    HEADER_NOT_NEWER = "header_not_newer"
    MISBEHAVIOUR_VERIFICATION_FAILED = "misbehaviour_verification_failed"
    MISBEHAVIOUR_NOT_PROVEN = "misbehaviour_not_proven"
    INVALID_CLIENT_STATE = "invalid_client_state"
    TYPE_MISMATCH = "client_type_mismatch"


class ConnectionErrorKind(str, Enum):
    UNKNOWN_CONNECTION = "unknown_connection"
    WRONG_STATE = "wrong_connection_state"
    NO_COMMON_VERSION = "no_common_version"
    INVALID_VERSION = "invalid_version"
    INVALID_COUNTERPARTY = "invalid_counterparty"
    INVALID_CLIENT_STATE = "invalid_self_client_state"
    INVALID_CONSENSUS_HEIGHT = "invalid_consensus_height"
    PROOF_VERIFICATION_FAILED = "connection_proof_verification_failed"


class ChannelErrorKind(str, Enum):
    UNKNOWN_CHANNEL = "unknown_channel"
    UNKNOWN_PORT = "unknown_port"
    PORT_ALREADY_BOUND = "port_already_bound"
    WRONG_STATE = "wrong_channel_state"
    CHANNEL_CLOSED = "channel_closed"
    ORDERING_MISMATCH = "ordering_mismatch"
    ORDERING_NOT_SUPPORTED = "ordering_not_supported"
    INVALID_CONNECTION_HOPS = "invalid_connection_hops"
    CONNECTION_NOT_OPEN = "connection_not_open"
    INVALID_COUNTERPARTY = "invalid_counterparty"
    CALLBACK_REJECTED = "callback_rejected"
    PROOF_VERIFICATION_FAILED = "channel_proof_verification_failed"


class PacketErrorKind(str, Enum):
    INVALID_PACKET = "invalid_packet"
    SEQUENCE_MISMATCH = "sequence_mismatch"
    INVALID_DESTINATION = "invalid_packet_destination"
    INVALID_SOURCE = "invalid_packet_source"
    MISSING_TIMEOUT = "missing_timeout"
    TIMEOUT_HEIGHT_ELAPSED = "timeout_height_elapsed"
    TIMEOUT_TIMESTAMP_ELAPSED = "timeout_timestamp_elapsed"
    TIMEOUT_NOT_ELAPSED = "timeout_not_elapsed"
    COMMITMENT_NOT_FOUND = "packet_commitment_not_found"
    COMMITMENT_MISMATCH = "packet_commitment_mismatch"
    ALREADY_RECEIVED = "packet_already_received"
    ACK_ALREADY_WRITTEN = "acknowledgement_already_written"
    EMPTY_ACKNOWLEDGEMENT = "empty_acknowledgement"
    DELAY_NOT_PASSED = "delay_period_not_passed"
    PROOF_VERIFICATION_FAILED = "packet_proof_verification_failed"


class ProofErrorKind(str, Enum):
    MALFORMED_PROOF = "malformed_proof"
    EMPTY_PROOF = "empty_proof"
    KEY_MISMATCH = "key_mismatch"
    VALUE_MISMATCH = "value_mismatch"
    ROOT_MISMATCH = "root_mismatch"
    UNEXPECTED_MEMBERSHIP = "unexpected_membership"


class IdentifierErrorKind(str, Enum):
    INVALID = "invalid_identifier"


class HostErrorKind(str, Enum):
    MISSING_HOST_CONSENSUS_STATE = "missing_host_consensus_state"
    CORRUPTED_STATE = "corrupted_state"
    UNKNOWN_MESSAGE = "unknown_message"


class IbcError(Exception):
    """
    Root of every error raised by the core.

    Attributes
    ----------
    kind : Enum
        Category-specific error kind.
    message : str
        Human-readable explanation.
    data : dict
        Structured context (identifiers, heights, sequences).
    """

    category = "ibc"

    def __init__(self, kind: Enum, message: Optional[str] = None, **data: Any) -> None:
        self.kind = kind
        self.message = message or kind.value
        self.data = data
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "kind": self.kind.value,
            "message": self.message,
            "data": {k: str(v) for k, v in self.data.items()},
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value!r}, {self.message!r})"


class ClientError(IbcError):
    category = "client"


class IbcConnectionError(IbcError):
    category = "connection"


class ChannelError(IbcError):
    category = "channel"


class PacketError(IbcError):
    category = "packet"


class ProofError(IbcError):
    category = "proof"


class HostError(IbcError):
    category = "host"


class IdentifierError(IbcError, ValueError):
    """
    Raised for malformed identifiers.

    Also a ValueError so that pydantic reports it as a regular validation
    error when identifiers are used as model fields.
    """

    category = "identifier"

    def __init__(self, message: str, **data: Any) -> None:
        super().__init__(IdentifierErrorKind.INVALID, message, **data)
