# src/ibc/clients/registry.py
"""
ClientRegistry: maps client-type strings to ClientDef plugins.

The core dispatches every verification call to the plugin registered for
the type stored next to the client, so adding a consensus algorithm means
registering one more ClientDef; nothing else changes.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from ibc.clients.base import ClientDef
from ibc.core.errors import ClientError, ClientErrorKind


class ClientRegistry:
    """
    Registry for light-client plugins, keyed by `ClientDef.client_type`.
    """

    def __init__(self, plugins: Optional[List[ClientDef]] = None) -> None:
        self._plugins: Dict[str, ClientDef] = {}
        for plugin in plugins or []:
            self.register(plugin)

    def register(self, plugin: ClientDef) -> None:
        client_type = plugin.client_type
        if client_type in self._plugins:
            raise ValueError(f"client type {client_type!r} is already registered")
        self._plugins[client_type] = plugin

    def get(self, client_type: str) -> ClientDef:
        plugin = self._plugins.get(client_type)
        if plugin is None:
            raise ClientError(
                ClientErrorKind.UNKNOWN_CLIENT_TYPE,
                f"no light client registered for type {client_type!r}",
                client_type=client_type,
            )
        return plugin

    def __contains__(self, client_type: str) -> bool:
        return client_type in self._plugins

    def types(self) -> List[str]:
        return sorted(self._plugins)


def default_registry() -> ClientRegistry:
    """Registry with the plugins shipped in this package."""
    from ibc.clients.committee import CommitteeClient
    from ibc.clients.mock import MockClient

    return ClientRegistry([MockClient(), CommitteeClient()])
