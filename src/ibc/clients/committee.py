# src/ibc/clients/committee.py
"""
Static-committee client (`99-committee`).

Models a permissioned counterparty whose blocks are attested by a fixed
committee. A header is trusted iff strictly more than two thirds of the
committee produced a valid signature over its canonical bytes, the
trusted consensus state it builds on is still inside the trusting period,
and time moves forward.

Misbehaviour is two quorum-signed headers for the same height that commit
to different roots or timestamps: a quorum signing both means at least a
third of the committee equivocated.

Signatures use HmacCommitteeKeys, so this client is meant for tests and
local simulations rather than production.
"""
from __future__ import annotations

import logging
from typing import ClassVar, Dict, Iterable, Mapping, Optional

from pydantic import Field, field_validator

from ibc.clients.base import ClientDef, ClientState, ConsensusState, Header, Misbehaviour
from ibc.core.errors import ClientError, ClientErrorKind
from ibc.core.height import Height
from ibc.core.identifiers import ChainId
from ibc.helper.crypto import HmacCommitteeKeys, has_quorum, sha256
from ibc.helper.encoding import HexBytes, canonical_json

logger = logging.getLogger(__name__)

COMMITTEE_CLIENT_TYPE = "99-committee"


def _expect(obj, cls) -> None:
    if not isinstance(obj, cls):
        raise ClientError(
            ClientErrorKind.TYPE_MISMATCH,
            f"expected {cls.__name__}, got {type(obj).__name__}",
        )


class CommitteeClientState(ClientState):
    client_type: ClassVar[str] = COMMITTEE_CLIENT_TYPE

    members: Dict[str, HexBytes] = Field(..., description="Committee member name -> HMAC key.")

    @field_validator("members")
    @classmethod
    def _non_empty(cls, v: Dict[str, bytes]) -> Dict[str, bytes]:
        if not v:
            raise ValueError("committee cannot be empty")
        return v

    def keys(self) -> HmacCommitteeKeys:
        return HmacCommitteeKeys(self.members)


class CommitteeHeader(Header):
    client_type: ClassVar[str] = COMMITTEE_CLIENT_TYPE

    chain_id: ChainId
    signatures: Dict[str, str] = Field(default_factory=dict)

    def signed_bytes(self) -> bytes:
        """Canonical bytes the committee signs: everything except the signatures."""
        body = self.model_dump(mode="json", exclude={"signatures", "trusted_height"})
        return canonical_json(body).encode("utf-8")


class CommitteeMisbehaviour(Misbehaviour):
    client_type: ClassVar[str] = COMMITTEE_CLIENT_TYPE

    header1: CommitteeHeader
    header2: CommitteeHeader


class CommitteeClient(ClientDef):
    client_type = COMMITTEE_CLIENT_TYPE
    client_state_cls = CommitteeClientState
    header_cls = CommitteeHeader

    @staticmethod
    def _check_quorum(client_state: CommitteeClientState, header: CommitteeHeader, kind: ClientErrorKind) -> None:
        keys = client_state.keys()
        valid = keys.count_valid(header.signed_bytes(), header.signatures)
        if not has_quorum(valid, len(keys.members)):
            raise ClientError(
                kind,
                f"header at {header.height} has {valid} valid signatures out of "
                f"{len(keys.members)} committee members",
                height=header.height,
                valid=valid,
            )

    def verify_header(
        self,
        client_state: ClientState,
        trusted_consensus_state: ConsensusState,
        header: Header,
        now: int,
    ) -> None:
        _expect(client_state, CommitteeClientState)
        _expect(header, CommitteeHeader)

        if header.chain_id != client_state.chain_id:
            raise ClientError(
                ClientErrorKind.HEADER_VERIFICATION_FAILED,
                f"header is for chain {header.chain_id}, client tracks {client_state.chain_id}",
            )
        if header.height.revision_number != client_state.chain_id.revision_number:
            raise ClientError(
                ClientErrorKind.HEADER_VERIFICATION_FAILED,
                f"header revision {header.height.revision_number} does not match chain "
                f"{client_state.chain_id}",
            )
        self.check_header_time(client_state, trusted_consensus_state, header, now)
        self._check_quorum(client_state, header, ClientErrorKind.HEADER_VERIFICATION_FAILED)

    def check_misbehaviour(self, client_state: ClientState, misbehaviour: Misbehaviour) -> bool:
        _expect(client_state, CommitteeClientState)
        h1, h2 = misbehaviour.header1, misbehaviour.header2
        if not isinstance(h1, CommitteeHeader) or not isinstance(h2, CommitteeHeader):
            raise ClientError(ClientErrorKind.TYPE_MISMATCH, "committee misbehaviour needs committee headers")
        if h1.chain_id != client_state.chain_id or h2.chain_id != client_state.chain_id:
            raise ClientError(
                ClientErrorKind.MISBEHAVIOUR_VERIFICATION_FAILED,
                "misbehaviour headers are for a different chain",
            )
        if h1.height != h2.height:
            raise ClientError(
                ClientErrorKind.MISBEHAVIOUR_VERIFICATION_FAILED,
                f"headers are at different heights {h1.height} and {h2.height}",
            )
        # Both headers must carry a quorum, otherwise anyone could forge evidence.
        self._check_quorum(client_state, h1, ClientErrorKind.MISBEHAVIOUR_VERIFICATION_FAILED)
        self._check_quorum(client_state, h2, ClientErrorKind.MISBEHAVIOUR_VERIFICATION_FAILED)

        conflicting = h1.root != h2.root or h1.timestamp != h2.timestamp
        if conflicting:
            logger.info("committee of %s equivocated at %s", client_state.chain_id, h1.height)
        return conflicting


class CommitteeSigner:
    """
    Holds a committee's keys on the producing side and signs headers.

    Used by mock chains and tests to create headers a CommitteeClient on the
    counterparty accepts.
    """

    def __init__(self, chain_id: ChainId, keys: Mapping[str, bytes]) -> None:
        self.chain_id = ChainId(chain_id)
        self._raw_keys = {m: bytes(k) for m, k in keys.items()}
        self.keys = HmacCommitteeKeys(self._raw_keys)

    @classmethod
    def deterministic(cls, chain_id: ChainId, size: int = 4) -> "CommitteeSigner":
        """A committee whose member keys are derived from the chain id."""
        keys = {f"member-{i}": sha256(f"{chain_id}/member-{i}".encode("utf-8")) for i in range(size)}
        return cls(chain_id, keys)

    def client_state(
        self,
        latest_height: Height,
        trusting_period: Optional[int] = None,
    ) -> CommitteeClientState:
        data = {"chain_id": self.chain_id, "latest_height": latest_height, "members": self._raw_keys}
        if trusting_period is not None:
            data["trusting_period"] = trusting_period
        return CommitteeClientState(**data)

    def sign_header(
        self,
        header: CommitteeHeader,
        members: Optional[Iterable[str]] = None,
    ) -> CommitteeHeader:
        signatures = self.keys.sign_all(header.signed_bytes(), members)
        return header.model_copy(update={"signatures": signatures})
