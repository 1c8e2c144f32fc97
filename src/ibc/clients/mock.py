# src/ibc/clients/mock.py
"""
Development mock client (`9999-mock`).

A mock header is accepted as long as it is well formed and moves time
forward: there is no signature check. It exists so that embedding chains
and tests can exercise the handshake and packet logic without simulating
a consensus algorithm.
"""
from __future__ import annotations

import logging
from typing import ClassVar

from ibc.clients.base import ClientDef, ClientState, ConsensusState, Header, Misbehaviour
from ibc.core.errors import ClientError, ClientErrorKind

logger = logging.getLogger(__name__)

MOCK_CLIENT_TYPE = "9999-mock"


class MockClientState(ClientState):
    client_type: ClassVar[str] = MOCK_CLIENT_TYPE


class MockHeader(Header):
    client_type: ClassVar[str] = MOCK_CLIENT_TYPE


class MockMisbehaviour(Misbehaviour):
    client_type: ClassVar[str] = MOCK_CLIENT_TYPE

    header1: MockHeader
    header2: MockHeader


class MockClient(ClientDef):
    client_type = MOCK_CLIENT_TYPE
    client_state_cls = MockClientState
    header_cls = MockHeader

    def verify_header(
        self,
        client_state: ClientState,
        trusted_consensus_state: ConsensusState,
        header: Header,
        now: int,
    ) -> None:
        if header.height.revision_number != client_state.latest_height.revision_number:
            raise ClientError(
                ClientErrorKind.HEADER_VERIFICATION_FAILED,
                f"header revision {header.height.revision_number} does not match client revision "
                f"{client_state.latest_height.revision_number}",
            )
        self.check_header_time(client_state, trusted_consensus_state, header, now)

    def check_misbehaviour(self, client_state: ClientState, misbehaviour: Misbehaviour) -> bool:
        h1, h2 = misbehaviour.header1, misbehaviour.header2
        if not isinstance(h1, MockHeader) or not isinstance(h2, MockHeader):
            raise ClientError(ClientErrorKind.TYPE_MISMATCH, "mock misbehaviour needs mock headers")
        if h1.height != h2.height:
            raise ClientError(
                ClientErrorKind.MISBEHAVIOUR_VERIFICATION_FAILED,
                f"headers are at different heights {h1.height} and {h2.height}",
            )
        conflicting = h1.root != h2.root or h1.timestamp != h2.timestamp
        logger.debug("mock misbehaviour at %s: conflicting=%s", h1.height, conflicting)
        return conflicting
