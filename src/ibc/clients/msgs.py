# src/ibc/clients/msgs.py
from __future__ import annotations

from pydantic import BaseModel, SerializeAsAny

from ibc.clients.base import ClientState, ConsensusState, Header, Misbehaviour
from ibc.core.identifiers import ClientId


class MsgCreateClient(BaseModel):
    client_state: SerializeAsAny[ClientState]
    consensus_state: ConsensusState
    signer: str = ""


class MsgUpdateClient(BaseModel):
    client_id: ClientId
    header: SerializeAsAny[Header]
    signer: str = ""


class MsgSubmitMisbehaviour(BaseModel):
    misbehaviour: SerializeAsAny[Misbehaviour]
    signer: str = ""

    @property
    def client_id(self) -> ClientId:
        return self.misbehaviour.client_id
