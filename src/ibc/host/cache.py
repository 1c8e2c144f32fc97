# src/ibc/host/cache.py
"""
Write-overlay over a HostContext.

Handlers run against a CachedContext; reads fall through to the parent,
writes and deletes are buffered, and events are held back. Only `commit()`
pushes the buffered changes into the parent. A failed message therefore
leaves the parent exactly as it was: the overlay is simply discarded.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from ibc.clients.base import ConsensusState
from ibc.clients.registry import ClientRegistry
from ibc.config import IbcSettings
from ibc.core.enums import EventKind
from ibc.core.height import Height
from ibc.core.identifiers import ChainId
from ibc.core.paths import Path
from ibc.host.context import HostContext

# Marks a key deleted in the overlay.
_DELETED = None


class CachedContext(HostContext):
    def __init__(self, parent: HostContext) -> None:
        self._parent = parent
        self._writes: Dict[str, Tuple[Path, Optional[bytes]]] = {}
        self._events: List[Tuple[EventKind, Dict[str, object]]] = []
        self._committed = False

    # --------------------------------------------------------------
    # State
    # --------------------------------------------------------------

    def get_state(self, path: Path) -> Optional[bytes]:
        key = str(path)
        if key in self._writes:
            return self._writes[key][1]
        return self._parent.get_state(path)

    def set_state(self, path: Path, value: bytes) -> None:
        self._writes[str(path)] = (path, bytes(value))

    def delete_state(self, path: Path) -> None:
        self._writes[str(path)] = (path, _DELETED)

    # --------------------------------------------------------------
    # Pass-through
    # --------------------------------------------------------------

    def current_height(self) -> Height:
        return self._parent.current_height()

    def current_timestamp(self) -> int:
        return self._parent.current_timestamp()

    def host_consensus_state(self, height: Height) -> ConsensusState:
        return self._parent.host_consensus_state(height)

    @property
    def chain_id(self) -> ChainId:
        return self._parent.chain_id

    @property
    def client_registry(self) -> ClientRegistry:
        return self._parent.client_registry

    @property
    def settings(self) -> IbcSettings:
        return self._parent.settings

    # --------------------------------------------------------------
    # Events and commit
    # --------------------------------------------------------------

    def emit_event(self, kind: EventKind, attributes: Dict[str, object]) -> None:
        self._events.append((kind, dict(attributes)))

    @property
    def pending_events(self) -> List[Tuple[EventKind, Dict[str, object]]]:
        return list(self._events)

    def pending_writes(self) -> int:
        return len(self._writes)

    def commit(self) -> None:
        """Apply buffered writes in order, then forward buffered events."""
        if self._committed:
            raise RuntimeError("cached context already committed")
        self._committed = True
        for path, value in self._writes.values():
            if value is _DELETED:
                self._parent.delete_state(path)
            else:
                self._parent.set_state(path, value)
        for kind, attributes in self._events:
            self._parent.emit_event(kind, attributes)
        self._writes.clear()
        self._events.clear()
