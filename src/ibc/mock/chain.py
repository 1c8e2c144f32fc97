# src/ibc/mock/chain.py
"""
MockChain: an in-memory chain for embedding tests.

Bundles an InMemoryHostContext, a Router and a Dispatcher, and knows how
to describe itself to a counterparty: the client state a counterparty
should create for it and the headers to update that client with. Headers
are either plain mock headers or committee-signed ones, depending on
`client_type`.
"""
from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel

from ibc.clients.base import ClientState, ConsensusState, Header
from ibc.clients.committee import COMMITTEE_CLIENT_TYPE, CommitteeHeader, CommitteeSigner
from ibc.clients.mock import MOCK_CLIENT_TYPE, MockClientState, MockHeader
from ibc.clients.msgs import MsgCreateClient, MsgUpdateClient
from ibc.config import IbcSettings
from ibc.core.height import Height
from ibc.core.identifiers import ClientId, PortId
from ibc.core.paths import Path
from ibc.engine.dispatcher import Dispatcher, HandlerOutput
from ibc.host.memory import DEFAULT_BLOCK_TIME, DEFAULT_GENESIS_TIME, InMemoryHostContext
from ibc.router.module import Module, Router

logger = logging.getLogger(__name__)


class MockChain:
    def __init__(
        self,
        chain_id: str,
        client_type: str = MOCK_CLIENT_TYPE,
        settings: Optional[IbcSettings] = None,
        committee_size: int = 4,
        genesis_time: int = DEFAULT_GENESIS_TIME,
        block_time: int = DEFAULT_BLOCK_TIME,
    ) -> None:
        if client_type not in (MOCK_CLIENT_TYPE, COMMITTEE_CLIENT_TYPE):
            raise ValueError(f"mock chains produce headers for {MOCK_CLIENT_TYPE} or {COMMITTEE_CLIENT_TYPE}")
        self.ctx = InMemoryHostContext(
            chain_id, settings=settings, genesis_time=genesis_time, block_time=block_time
        )
        self.router = Router()
        self.dispatcher = Dispatcher(self.ctx, self.router)
        self.client_type = client_type
        self.signer: Optional[CommitteeSigner] = None
        if client_type == COMMITTEE_CLIENT_TYPE:
            self.signer = CommitteeSigner.deterministic(self.ctx.chain_id, committee_size)

        # Genesis: seal one block so that a counterparty can start tracking us.
        self.ctx.commit_block()

    def __repr__(self) -> str:
        return f"MockChain({self.chain_id!s}, height={self.ctx.current_height()})"

    @property
    def chain_id(self):
        return self.ctx.chain_id

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def deliver(self, msg: BaseModel) -> HandlerOutput:
        return self.dispatcher.deliver(msg)

    def bind_port(self, port_id: str, module: Module) -> None:
        self.dispatcher.bind_port(PortId(port_id), module)

    def commit_block(self) -> Height:
        return self.ctx.commit_block()

    def advance_blocks(self, n: int) -> Height:
        sealed = self.latest_height()
        for _ in range(n):
            sealed = self.commit_block()
        return sealed

    def latest_height(self) -> Height:
        """Latest sealed height, i.e. the latest height proofs can be made at."""
        return self.ctx.latest_sealed_height()

    def prove(self, path: Path, height: Optional[Height] = None) -> bytes:
        return self.ctx.prove(path, height or self.latest_height())

    # ------------------------------------------------------------------
    # Describing this chain to a counterparty
    # ------------------------------------------------------------------

    def consensus_state(self, height: Optional[Height] = None) -> ConsensusState:
        return self.ctx.host_consensus_state(height or self.latest_height())

    def client_state(self, height: Optional[Height] = None, trusting_period: Optional[int] = None) -> ClientState:
        """Client state a counterparty should create to track this chain."""
        height = height or self.latest_height()
        if self.signer is not None:
            return self.signer.client_state(height, trusting_period)
        data = {"chain_id": self.chain_id, "latest_height": height}
        if trusting_period is not None:
            data["trusting_period"] = trusting_period
        return MockClientState(**data)

    def header(self, height: Optional[Height] = None, trusted_height: Optional[Height] = None) -> Header:
        height = height or self.latest_height()
        cs = self.consensus_state(height)
        if self.signer is not None:
            header = CommitteeHeader(
                chain_id=self.chain_id,
                height=height,
                timestamp=cs.timestamp,
                root=cs.root,
                trusted_height=trusted_height,
            )
            return self.signer.sign_header(header)
        return MockHeader(height=height, timestamp=cs.timestamp, root=cs.root, trusted_height=trusted_height)

    def create_client_msg(self, trusting_period: Optional[int] = None) -> MsgCreateClient:
        height = self.latest_height()
        return MsgCreateClient(
            client_state=self.client_state(height, trusting_period),
            consensus_state=self.consensus_state(height),
        )

    def update_client_msg(self, client_id: ClientId, height: Optional[Height] = None) -> MsgUpdateClient:
        return MsgUpdateClient(client_id=client_id, header=self.header(height))
