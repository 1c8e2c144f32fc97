# src/ibc/helper/encoding.py
"""
Canonical state encoding.

The wire format of protocol messages is an external concern, but values
stored in the host state must be encoded deterministically: a counterparty
proves "path P holds value V" and the verifier re-encodes the value it
expects, byte for byte. We use the same canonical JSON convention
everywhere (sorted keys, no whitespace, UTF-8).
"""
from __future__ import annotations

import json
from typing import Annotated, Any, Type, TypeVar

from pydantic import BaseModel, BeforeValidator, PlainSerializer, ValidationError

from ibc.core.errors import HostError, HostErrorKind

M = TypeVar("M", bound=BaseModel)


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        s = value.strip()
        if s.startswith(("0x", "0X")):
            s = s[2:]
        try:
            return bytes.fromhex(s)
        except ValueError as exc:
            raise ValueError(f"Not a valid hex string: {value!r}") from exc
    raise ValueError(f"Expected bytes or hex string, got {type(value).__name__}")


# Bytes field that serializes to lowercase hex in JSON mode.
HexBytes = Annotated[
    bytes,
    BeforeValidator(_to_bytes),
    PlainSerializer(lambda b: b.hex(), return_type=str, when_used="json"),
]


def canonical_json(obj: Any) -> str:
    """
    Serialize an object (including pydantic models) into canonical JSON.
    """
    data = obj
    if isinstance(obj, BaseModel):
        data = obj.model_dump(mode="json")
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def encode_model(model: BaseModel) -> bytes:
    return canonical_json(model).encode("utf-8")


def decode_model(cls: Type[M], raw: bytes) -> M:
    """
    Decode bytes produced by `encode_model` back into `cls`.

    A decoding failure means the store holds something it should not, so
    it is reported as corrupted host state.
    """
    try:
        return cls.model_validate(json.loads(raw.decode("utf-8")))
    except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
        raise HostError(
            HostErrorKind.CORRUPTED_STATE,
            f"cannot decode {cls.__name__} from stored bytes: {exc}",
        ) from exc


def encode_u64(value: int) -> bytes:
    return int(value).to_bytes(8, "big")


def decode_u64(raw: bytes) -> int:
    if len(raw) != 8:
        raise HostError(
            HostErrorKind.CORRUPTED_STATE,
            f"expected 8-byte big-endian integer, got {len(raw)} bytes",
        )
    return int.from_bytes(raw, "big")
