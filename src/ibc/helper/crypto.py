# src/ibc/helper/crypto.py
from __future__ import annotations

import hashlib
import hmac
from typing import Dict, Iterable, Mapping, Set


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


class HmacCommitteeKeys:
    """
    HMAC-SHA256 committee keys used by the committee light client.

    This is a deterministic, replayable stand-in for threshold or aggregate
    signatures: each committee member holds a symmetric key and "signs" a
    message by computing

        HMAC_SHA256(member_key, message)

    The verifier holds the same keys (they live in the client state), so
    the scheme is only suitable for tests and local simulations. What it
    does model faithfully is the quorum rule: a header is accepted iff
    enough distinct members produced a valid signature over exactly the
    same bytes.
    """

    def __init__(self, keys: Mapping[str, bytes]) -> None:
        if not keys:
            raise ValueError("committee must have at least one member")
        self._keys: Dict[str, bytes] = {member: bytes(k) for member, k in keys.items()}

    @property
    def members(self) -> Set[str]:
        return set(self._keys)

    def sign(self, member: str, message: bytes) -> str:
        """Hex-encoded HMAC of `message` under `member`'s key."""
        key = self._keys.get(member)
        if key is None:
            raise KeyError(f"unknown committee member {member!r}")
        return hmac.new(key, message, hashlib.sha256).hexdigest()

    def sign_all(self, message: bytes, members: Iterable[str] | None = None) -> Dict[str, str]:
        chosen = sorted(self._keys) if members is None else list(members)
        return {m: self.sign(m, message) for m in chosen}

    def verify(self, member: str, message: bytes, signature: str) -> bool:
        """
        Constant-time check of one member's signature.

        Unknown members never verify.
        """
        key = self._keys.get(member)
        if key is None:
            return False
        expected = hmac.new(key, message, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature)

    def count_valid(self, message: bytes, signatures: Mapping[str, str]) -> int:
        """Number of distinct members with a valid signature over `message`."""
        return sum(1 for member, sig in signatures.items() if self.verify(member, message, sig))


def has_quorum(valid_signers: int, committee_size: int) -> bool:
    """Strictly more than two thirds of the committee."""
    return 3 * valid_signers > 2 * committee_size
