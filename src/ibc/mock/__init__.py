from ibc.mock.app import ASYNC_PAYLOAD, FAIL_PAYLOAD, PING_VERSION, PingModule
from ibc.mock.chain import MockChain

__all__ = ["ASYNC_PAYLOAD", "FAIL_PAYLOAD", "MockChain", "PING_VERSION", "PingModule"]
