# src/ibc/host/memory.py
"""
Reference host backed by an in-memory sparse Merkle tree.

The block model is deliberately simple:

  * messages executed "during" height H write into the live tree;
  * `commit_block()` seals H: it snapshots the tree, records this chain's
    consensus state (root of the snapshot, block timestamp) at H, and
    moves on to H+1 with the clock advanced by `block_time`.

So a header for height H carries the root of the state *after* block H,
and `prove(path, H)` produces proofs against exactly that root.

Every sealed height keeps a full copy of the tree. Nothing is pruned unless
`retain_heights` is set, in which case only the newest snapshots stay
provable; consensus states are kept for all heights. This is a reference
and test host, not production storage.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ibc.clients.base import ConsensusState
from ibc.clients.registry import ClientRegistry, default_registry
from ibc.commitment.proof import CommitmentRoot, MerkleProof, apply_prefix
from ibc.config import IbcSettings, get_settings
from ibc.core.enums import EventKind
from ibc.core.errors import HostError, HostErrorKind
from ibc.core.events import IbcEvent, stringify_attributes
from ibc.core.height import NANOS_PER_SECOND, Height
from ibc.core.identifiers import ChainId
from ibc.core.paths import Path
from ibc.helper.merkle import SparseMerkleTree
from ibc.host.context import HostContext

logger = logging.getLogger(__name__)

DEFAULT_GENESIS_TIME = 1_700_000_000 * NANOS_PER_SECOND
DEFAULT_BLOCK_TIME = 5 * NANOS_PER_SECOND


class InMemoryHostContext(HostContext):
    def __init__(
        self,
        chain_id: str,
        settings: Optional[IbcSettings] = None,
        registry: Optional[ClientRegistry] = None,
        genesis_time: int = DEFAULT_GENESIS_TIME,
        block_time: int = DEFAULT_BLOCK_TIME,
        retain_heights: Optional[int] = None,
    ) -> None:
        if retain_heights is not None and retain_heights < 1:
            raise ValueError("retain_heights must be at least 1")
        self._chain_id = ChainId(chain_id)
        self._settings = settings or get_settings()
        self._registry = registry or default_registry()
        self._tree = SparseMerkleTree()
        self._height = Height.new(self._chain_id.revision_number, 1)
        self._timestamp = genesis_time
        self._block_time = block_time
        self._retain_heights = retain_heights

        # sealed height -> (snapshot, host consensus state)
        self._snapshots: Dict[Height, SparseMerkleTree] = {}
        self._consensus_states: Dict[Height, ConsensusState] = {}

        self.events: List[IbcEvent] = []

    # ==================================================================
    # HostContext primitives
    # ==================================================================

    def _key(self, path: Path) -> bytes:
        return apply_prefix(self.commitment_prefix(), path).key()

    def get_state(self, path: Path) -> Optional[bytes]:
        return self._tree.get(self._key(path))

    def set_state(self, path: Path, value: bytes) -> None:
        self._tree.set(self._key(path), value)

    def delete_state(self, path: Path) -> None:
        self._tree.delete(self._key(path))

    def current_height(self) -> Height:
        return self._height

    def current_timestamp(self) -> int:
        return self._timestamp

    def emit_event(self, kind: EventKind, attributes: Dict[str, object]) -> None:
        event = IbcEvent(kind=kind, attributes=stringify_attributes(attributes), height=self._height)
        logger.debug("[%s] event %s %s", self._chain_id, kind.value, event.attributes)
        self.events.append(event)

    def host_consensus_state(self, height: Height) -> ConsensusState:
        cs = self._consensus_states.get(height)
        if cs is None:
            raise HostError(
                HostErrorKind.MISSING_HOST_CONSENSUS_STATE,
                f"{self._chain_id} has no consensus state at {height}",
                height=height,
            )
        return cs

    @property
    def chain_id(self) -> ChainId:
        return self._chain_id

    @property
    def client_registry(self) -> ClientRegistry:
        return self._registry

    @property
    def settings(self) -> IbcSettings:
        return self._settings

    # ==================================================================
    # Block production
    # ==================================================================

    def commit_block(self) -> Height:
        """Seal the current height and start the next one. Returns the sealed height."""
        sealed = self._height
        snapshot = self._tree.copy()
        root = CommitmentRoot.from_bytes(snapshot.root())
        self._snapshots[sealed] = snapshot
        self._consensus_states[sealed] = ConsensusState(root=root, timestamp=self._timestamp)
        logger.debug("[%s] sealed %s root=%s", self._chain_id, sealed, root.hash.hex()[:16])
        if self._retain_heights is not None:
            for old in sorted(self._snapshots)[: -self._retain_heights]:
                del self._snapshots[old]

        self._height = sealed.increment()
        self._timestamp += self._block_time
        return sealed

    def advance_time(self, nanos: int) -> None:
        """Move the clock of the block being built forward."""
        if nanos < 0:
            raise ValueError("time cannot move backwards")
        self._timestamp += nanos

    def latest_sealed_height(self) -> Optional[Height]:
        if not self._snapshots:
            return None
        return max(self._snapshots)

    def _snapshot(self, height: Height) -> SparseMerkleTree:
        snapshot = self._snapshots.get(height)
        if snapshot is None:
            raise HostError(
                HostErrorKind.MISSING_HOST_CONSENSUS_STATE,
                f"{self._chain_id} has no snapshot at {height}",
                height=height,
            )
        return snapshot

    def prove(self, path: Path, height: Height) -> bytes:
        """Encoded membership or non-membership proof of `path` at sealed `height`."""
        smt_proof = self._snapshot(height).prove(self._key(path))
        return MerkleProof.from_smt(smt_proof).encode()

    def state_at(self, path: Path, height: Height) -> Optional[bytes]:
        return self._snapshot(height).get(self._key(path))

    def events_of(self, kind: EventKind) -> List[IbcEvent]:
        return [e for e in self.events if e.kind == kind]
