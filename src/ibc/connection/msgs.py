# src/ibc/connection/msgs.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, SerializeAsAny

from ibc.clients.base import ClientState
from ibc.connection.types import Counterparty, Version
from ibc.core.height import Height
from ibc.core.identifiers import ClientId, ConnectionId
from ibc.helper.encoding import HexBytes


class MsgConnectionOpenInit(BaseModel):
    client_id: ClientId
    counterparty: Counterparty
    version: Optional[Version] = None
    delay_period: int = Field(default=0, ge=0)
    signer: str = ""


class MsgConnectionOpenTry(BaseModel):
    """
    Sent to B once A's ConnOpenInit is committed.

    `client_state` is A's client of B; `consensus_height` is the height of
    the consensus state of B that A's client holds and that
    `proof_consensus` proves.
    """

    client_id: ClientId
    client_state: SerializeAsAny[ClientState]
    counterparty: Counterparty
    counterparty_versions: List[Version]
    delay_period: int = Field(default=0, ge=0)
    proof_height: Height
    proof_init: HexBytes
    proof_client: HexBytes
    proof_consensus: HexBytes
    consensus_height: Height
    signer: str = ""


class MsgConnectionOpenAck(BaseModel):
    connection_id: ConnectionId
    counterparty_connection_id: ConnectionId
    client_state: SerializeAsAny[ClientState]
    version: Version
    proof_height: Height
    proof_try: HexBytes
    proof_client: HexBytes
    proof_consensus: HexBytes
    consensus_height: Height
    signer: str = ""


class MsgConnectionOpenConfirm(BaseModel):
    connection_id: ConnectionId
    proof_height: Height
    proof_ack: HexBytes
    signer: str = ""
