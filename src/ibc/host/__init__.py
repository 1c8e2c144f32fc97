from ibc.host.cache import CachedContext
from ibc.host.context import HostContext
from ibc.host.memory import InMemoryHostContext

__all__ = ["CachedContext", "HostContext", "InMemoryHostContext"]
