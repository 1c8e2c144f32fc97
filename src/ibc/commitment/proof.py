# src/ibc/commitment/proof.py
"""
Commitment proof verification.

The verifier answers exactly one question: does `proof` demonstrate that
`path` maps to `value` (or to nothing) under the committed `root`? It is a
pure function of its arguments. Every failure is raised as a ProofError;
there is no code path on which a failed check is reported as success.
"""
from __future__ import annotations

import json
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from ibc.core.errors import ProofError, ProofErrorKind
from ibc.core.paths import Path
from ibc.helper.encoding import HexBytes, canonical_json
from ibc.helper.merkle import (
    EMPTY_HASH,
    HASH_LEN,
    TREE_DEPTH,
    SmtProof,
    common_prefix_bits,
    compute_root,
    key_path,
    leaf_hash,
    value_digest,
)

DEFAULT_PREFIX = b"ibc"


# ======================================================================
# 1. Roots, prefixes and merkle paths
# ======================================================================

class CommitmentRoot(BaseModel):
    """32-byte state-commitment root of a chain at some height."""

    hash: HexBytes

    class Config:
        frozen = True

    @field_validator("hash")
    @classmethod
    def _check_len(cls, v: bytes) -> bytes:
        if len(v) != HASH_LEN:
            raise ValueError(f"commitment root must be {HASH_LEN} bytes, got {len(v)}")
        return v

    @classmethod
    def from_bytes(cls, raw: bytes) -> "CommitmentRoot":
        return cls(hash=raw)


class CommitmentPrefix(BaseModel):
    """Store prefix under which a chain keeps its provable state."""

    key_prefix: HexBytes = Field(default=DEFAULT_PREFIX)

    class Config:
        frozen = True

    @field_validator("key_prefix")
    @classmethod
    def _non_empty(cls, v: bytes) -> bytes:
        if not v:
            raise ValueError("commitment prefix cannot be empty")
        return v

    @classmethod
    def from_str(cls, prefix: str) -> "CommitmentPrefix":
        return cls(key_prefix=prefix.encode("utf-8"))


class MerklePath(BaseModel):
    """A path qualified by the store prefix it lives under."""

    prefix: CommitmentPrefix
    path: str

    class Config:
        frozen = True

    def key(self) -> bytes:
        return self.prefix.key_prefix + b"/" + self.path.encode("utf-8")


def apply_prefix(prefix: CommitmentPrefix, path: Path | str) -> MerklePath:
    return MerklePath(prefix=prefix, path=str(path))


# ======================================================================
# 2. Serialized proof
# ======================================================================

class ProofLeaf(BaseModel):
    path: HexBytes
    value_hash: HexBytes


class MerkleProof(BaseModel):
    """
    Serializable form of a sparse-Merkle proof.

    Proofs travel inside messages as opaque bytes; `encode` and `decode`
    convert between those bytes and this model.
    """

    siblings: List[HexBytes] = Field(default_factory=list)
    leaf: Optional[ProofLeaf] = None

    @classmethod
    def from_smt(cls, proof: SmtProof) -> "MerkleProof":
        leaf = None
        if proof.leaf is not None:
            leaf = ProofLeaf(path=proof.leaf[0], value_hash=proof.leaf[1])
        return cls(siblings=list(proof.siblings), leaf=leaf)

    def encode(self) -> bytes:
        return canonical_json(self).encode("utf-8")

    @classmethod
    def decode(cls, raw: bytes) -> "MerkleProof":
        if not raw:
            raise ProofError(ProofErrorKind.EMPTY_PROOF, "proof bytes are empty")
        try:
            proof = cls.model_validate(json.loads(raw.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError, ValidationError, ValueError) as exc:
            raise ProofError(ProofErrorKind.MALFORMED_PROOF, f"cannot decode proof: {exc}") from exc
        proof._check_shape()
        return proof

    def _check_shape(self) -> None:
        if len(self.siblings) > TREE_DEPTH:
            raise ProofError(
                ProofErrorKind.MALFORMED_PROOF,
                f"proof has {len(self.siblings)} siblings, more than tree depth {TREE_DEPTH}",
            )
        for sib in self.siblings:
            if len(sib) != HASH_LEN:
                raise ProofError(ProofErrorKind.MALFORMED_PROOF, "sibling hash has wrong length")
        if self.leaf is not None:
            if len(self.leaf.path) != HASH_LEN or len(self.leaf.value_hash) != HASH_LEN:
                raise ProofError(ProofErrorKind.MALFORMED_PROOF, "leaf has wrong length")


# ======================================================================
# 3. Verification
# ======================================================================

def _check_root(root: CommitmentRoot, computed: bytes) -> None:
    if computed != root.hash:
        raise ProofError(
            ProofErrorKind.ROOT_MISMATCH,
            "proof does not hash to the committed root",
            expected=root.hash.hex(),
            computed=computed.hex(),
        )


def verify_membership(
    root: CommitmentRoot,
    proof: bytes,
    path: MerklePath,
    value: bytes,
) -> None:
    """
    Verify that `path` maps to exactly `value` under `root`.

    Raises ProofError on any mismatch; returns None on success.
    """
    if not value:
        raise ProofError(ProofErrorKind.VALUE_MISMATCH, "membership value cannot be empty")

    decoded = MerkleProof.decode(proof)
    target = key_path(path.key())

    if decoded.leaf is None:
        raise ProofError(
            ProofErrorKind.KEY_MISMATCH,
            f"proof shows no value at {path.path}",
            path=path.path,
        )
    if decoded.leaf.path != target:
        raise ProofError(
            ProofErrorKind.KEY_MISMATCH,
            f"proof is for a different key than {path.path}",
            path=path.path,
        )
    if decoded.leaf.value_hash != value_digest(value):
        raise ProofError(
            ProofErrorKind.VALUE_MISMATCH,
            f"proof commits a different value at {path.path}",
            path=path.path,
        )

    computed = compute_root(target, decoded.siblings, leaf_hash(target, decoded.leaf.value_hash))
    _check_root(root, computed)


def verify_non_membership(
    root: CommitmentRoot,
    proof: bytes,
    path: MerklePath,
) -> None:
    """
    Verify that nothing is stored at `path` under `root`.

    The terminal subtree named by the proof must either be empty or hold a
    single leaf at a different position that shares the queried path's
    prefix for every level the proof covers.
    """
    decoded = MerkleProof.decode(proof)
    target = key_path(path.key())
    depth = len(decoded.siblings)

    if decoded.leaf is None:
        terminal = EMPTY_HASH
    else:
        other = decoded.leaf.path
        if other == target:
            raise ProofError(
                ProofErrorKind.UNEXPECTED_MEMBERSHIP,
                f"a value is stored at {path.path}",
                path=path.path,
            )
        if common_prefix_bits(other, target) < depth:
            raise ProofError(
                ProofErrorKind.KEY_MISMATCH,
                "neighbouring leaf does not sit on the queried path",
                path=path.path,
            )
        terminal = leaf_hash(other, decoded.leaf.value_hash)

    computed = compute_root(target, decoded.siblings, terminal)
    _check_root(root, computed)


__all__ = [
    "CommitmentPrefix",
    "CommitmentRoot",
    "DEFAULT_PREFIX",
    "MerklePath",
    "MerkleProof",
    "ProofLeaf",
    "apply_prefix",
    "verify_membership",
    "verify_non_membership",
]
