# src/ibc/helper/merkle.py
"""
Sparse Merkle tree over 256-bit key paths.

Every key is mapped to a leaf position by ``sha256(key)``; the tree is
conceptually 256 levels deep. Two rules keep it small in practice:

  * an empty subtree hashes to 32 zero bytes, and
  * a subtree that holds exactly one leaf hashes to that leaf's hash
    (the leaf is "lifted" to the highest level where it is alone).

So a proof carries one sibling hash per level down to the point where the
queried key's subtree holds at most one leaf, i.e. O(log n) siblings for n
stored keys.

Hashing is domain-separated:

    leaf(path, value) = H(0x00 || path || H(value))
    node(left, right) = H(0x01 || left || right)

Proof shapes:

  * membership:      siblings + the leaf at the queried path.
  * non-membership:  siblings + either nothing (the subtree is empty) or a
                     different leaf occupying the subtree; that leaf must
                     share the queried path's prefix for every level the
                     siblings cover.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

HASH_LEN = 32
TREE_DEPTH = 256
EMPTY_HASH = b"\x00" * HASH_LEN
LEAF_PREFIX = b"\x00"
NODE_PREFIX = b"\x01"


def _sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def key_path(key: bytes) -> bytes:
    """Leaf position of `key`."""
    return _sha256(key)


def value_digest(value: bytes) -> bytes:
    return _sha256(value)


def leaf_hash(path: bytes, digest: bytes) -> bytes:
    return _sha256(LEAF_PREFIX + path + digest)


def node_hash(left: bytes, right: bytes) -> bytes:
    """
    Hash two children. Two empty children collapse to the empty hash, so
    that an empty tree has the same root at every depth.
    """
    if left == EMPTY_HASH and right == EMPTY_HASH:
        return EMPTY_HASH
    return _sha256(NODE_PREFIX + left + right)


def bit_at(path: bytes, depth: int) -> int:
    """Bit of `path` at `depth`, most significant bit first."""
    return (path[depth // 8] >> (7 - depth % 8)) & 1


def common_prefix_bits(a: bytes, b: bytes) -> int:
    for depth in range(TREE_DEPTH):
        if bit_at(a, depth) != bit_at(b, depth):
            return depth
    return TREE_DEPTH


@dataclass(frozen=True)
class SmtProof:
    """
    Raw proof produced by SparseMerkleTree.prove.

    siblings:
        Sibling hashes from the root downwards; siblings[d] is the sibling
        of the queried path's node at depth d + 1.
    leaf:
        (path, value_digest) of the single leaf in the terminal subtree,
        or None when that subtree is empty.
    """
    siblings: Tuple[bytes, ...]
    leaf: Optional[Tuple[bytes, bytes]]


def compute_root(path: bytes, siblings: List[bytes], terminal: bytes) -> bytes:
    """
    Fold `terminal` up through `siblings` along `path`.

        h = terminal
        for depth from deepest to 0:
            h = node(sib, h) if bit(path, depth) else node(h, sib)
    """
    h = terminal
    for depth in range(len(siblings) - 1, -1, -1):
        sib = siblings[depth]
        if bit_at(path, depth):
            h = node_hash(sib, h)
        else:
            h = node_hash(h, sib)
    return h


class SparseMerkleTree:
    """
    In-memory sparse Merkle tree.

    The tree keeps a flat map path → (key, value) and recomputes hashes
    from it on demand, caching the root until the next write. This is the
    authenticated store behind InMemoryHostContext; a production host
    would back it with its own persistent commitment store.
    """

    def __init__(self) -> None:
        self._leaves: Dict[bytes, Tuple[bytes, bytes]] = {}
        self._root: Optional[bytes] = None

    def __len__(self) -> int:
        return len(self._leaves)

    def copy(self) -> "SparseMerkleTree":
        other = SparseMerkleTree()
        other._leaves = dict(self._leaves)
        other._root = self._root
        return other

    # --------------------------------------------------------------
    # Key/value access
    # --------------------------------------------------------------

    def get(self, key: bytes) -> Optional[bytes]:
        entry = self._leaves.get(key_path(key))
        return entry[1] if entry is not None else None

    def set(self, key: bytes, value: bytes) -> None:
        self._leaves[key_path(key)] = (bytes(key), bytes(value))
        self._root = None

    def delete(self, key: bytes) -> None:
        if self._leaves.pop(key_path(key), None) is not None:
            self._root = None

    def items(self) -> List[Tuple[bytes, bytes]]:
        return sorted(self._leaves.values())

    # --------------------------------------------------------------
    # Hashing
    # --------------------------------------------------------------

    def root(self) -> bytes:
        if self._root is None:
            self._root = self._subtree_hash(sorted(self._leaves), 0)
        return self._root

    def _leaf_hash_of(self, path: bytes) -> bytes:
        _, value = self._leaves[path]
        return leaf_hash(path, value_digest(value))

    @staticmethod
    def _split(paths: List[bytes], depth: int) -> Tuple[List[bytes], List[bytes]]:
        # `paths` is sorted and shares its first `depth` bits, so every
        # path with a 0 bit at `depth` comes first.
        for i, p in enumerate(paths):
            if bit_at(p, depth):
                return paths[:i], paths[i:]
        return paths, []

    def _subtree_hash(self, paths: List[bytes], depth: int) -> bytes:
        if not paths:
            return EMPTY_HASH
        if len(paths) == 1:
            return self._leaf_hash_of(paths[0])
        left, right = self._split(paths, depth)
        return node_hash(
            self._subtree_hash(left, depth + 1),
            self._subtree_hash(right, depth + 1),
        )

    # --------------------------------------------------------------
    # Proofs
    # --------------------------------------------------------------

    def prove(self, key: bytes) -> SmtProof:
        """
        Produce a membership proof if `key` is present, otherwise a
        non-membership proof.
        """
        target = key_path(key)
        paths = sorted(self._leaves)
        siblings: List[bytes] = []
        depth = 0

        while len(paths) > 1:
            left, right = self._split(paths, depth)
            if bit_at(target, depth):
                siblings.append(self._subtree_hash(left, depth + 1))
                paths = right
            else:
                siblings.append(self._subtree_hash(right, depth + 1))
                paths = left
            depth += 1

        leaf = None
        if paths:
            path = paths[0]
            leaf = (path, value_digest(self._leaves[path][1]))
        return SmtProof(siblings=tuple(siblings), leaf=leaf)
