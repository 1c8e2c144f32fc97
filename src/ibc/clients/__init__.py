from ibc.clients.base import ClientDef, ClientState, ConsensusState, Header, Misbehaviour
from ibc.clients.committee import (
    COMMITTEE_CLIENT_TYPE,
    CommitteeClient,
    CommitteeClientState,
    CommitteeHeader,
    CommitteeMisbehaviour,
    CommitteeSigner,
)
from ibc.clients.mock import MOCK_CLIENT_TYPE, MockClient, MockClientState, MockHeader, MockMisbehaviour
from ibc.clients.msgs import MsgCreateClient, MsgSubmitMisbehaviour, MsgUpdateClient
from ibc.clients.registry import ClientRegistry, default_registry

__all__ = [
    "COMMITTEE_CLIENT_TYPE",
    "ClientDef",
    "ClientRegistry",
    "ClientState",
    "CommitteeClient",
    "CommitteeClientState",
    "CommitteeHeader",
    "CommitteeMisbehaviour",
    "CommitteeSigner",
    "ConsensusState",
    "Header",
    "MOCK_CLIENT_TYPE",
    "Misbehaviour",
    "MockClient",
    "MockClientState",
    "MockHeader",
    "MockMisbehaviour",
    "MsgCreateClient",
    "MsgSubmitMisbehaviour",
    "MsgUpdateClient",
    "default_registry",
]
