from ibc.commitment.proof import (
    DEFAULT_PREFIX,
    CommitmentPrefix,
    CommitmentRoot,
    MerklePath,
    MerkleProof,
    apply_prefix,
    verify_membership,
    verify_non_membership,
)

__all__ = [
    "DEFAULT_PREFIX",
    "CommitmentPrefix",
    "CommitmentRoot",
    "MerklePath",
    "MerkleProof",
    "apply_prefix",
    "verify_membership",
    "verify_non_membership",
]
