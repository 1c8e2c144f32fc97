"""
Shared pytest fixtures:
- IbcSettings isolated from the process environment
- Two mock chains (chainA-1, chainB-1), each with a PingModule on port "ping"
- A relayer with clients created in both directions
- Open connections and channels (unordered and ordered)
- Hypothesis profile with deadlines disabled
"""
from __future__ import annotations

from typing import Tuple

import pytest
from hypothesis import HealthCheck, settings as hypothesis_settings

from harness import ChannelPair, Relayer
from ibc.clients.committee import COMMITTEE_CLIENT_TYPE
from ibc.config import IbcSettings
from ibc.core.enums import Order
from ibc.core.height import NANOS_PER_SECOND
from ibc.core.identifiers import ConnectionId
from ibc.mock import MockChain, PingModule

CHAIN_A = "chainA-1"
CHAIN_B = "chainB-1"
PING_PORT = "ping"

hypothesis_settings.register_profile(
    "ibc",
    deadline=None,
    max_examples=50,
    suppress_health_check=[HealthCheck.too_slow],
)
hypothesis_settings.load_profile("ibc")


# ---------- SETTINGS ----------

@pytest.fixture
def ibc_settings() -> IbcSettings:
    """Defaults only: no `.env`, no IBC_* variables leaking in."""
    return IbcSettings(
        _env_file=None,
        commitment_prefix="ibc",
        allowed_client_types=["9999-mock", "99-committee"],
        max_expected_time_per_block=30 * NANOS_PER_SECOND,
        log_level="DEBUG",
    )


# ---------- CHAINS ----------

def make_pair(client_type: str, settings: IbcSettings) -> Tuple[MockChain, MockChain]:
    a = MockChain(CHAIN_A, client_type=client_type, settings=settings)
    b = MockChain(CHAIN_B, client_type=client_type, settings=settings)
    return a, b


@pytest.fixture
def chains(ibc_settings: IbcSettings) -> Tuple[MockChain, MockChain]:
    return make_pair("9999-mock", ibc_settings)


@pytest.fixture
def committee_chains(ibc_settings: IbcSettings) -> Tuple[MockChain, MockChain]:
    return make_pair(COMMITTEE_CLIENT_TYPE, ibc_settings)


@pytest.fixture
def chain_a(chains) -> MockChain:
    return chains[0]


@pytest.fixture
def chain_b(chains) -> MockChain:
    return chains[1]


@pytest.fixture
def ping_modules(chain_a: MockChain, chain_b: MockChain) -> Tuple[PingModule, PingModule]:
    module_a, module_b = PingModule(), PingModule()
    chain_a.bind_port(PING_PORT, module_a)
    chain_b.bind_port(PING_PORT, module_b)
    return module_a, module_b


# ---------- RELAYED SETUP ----------

@pytest.fixture
def relayer(chain_a: MockChain, chain_b: MockChain) -> Relayer:
    r = Relayer(chain_a, chain_b)
    r.create_clients()
    return r


@pytest.fixture
def connection(relayer: Relayer) -> Tuple[ConnectionId, ConnectionId]:
    return relayer.open_connection()


@pytest.fixture
def unordered(relayer: Relayer, connection, ping_modules) -> ChannelPair:
    conn_a, conn_b = connection
    return relayer.open_channel(conn_a, conn_b, ordering=Order.UNORDERED)


@pytest.fixture
def ordered(relayer: Relayer, connection, ping_modules) -> ChannelPair:
    conn_a, conn_b = connection
    return relayer.open_channel(conn_a, conn_b, ordering=Order.ORDERED)
