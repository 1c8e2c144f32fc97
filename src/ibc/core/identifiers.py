# src/ibc/core/identifiers.py
"""
Validated identifiers.

Identifiers are plain ``str`` subclasses so that they can be used directly
in paths, dictionaries and log lines, while still being validated once at
construction time (and whenever pydantic builds a model field typed with
one of them).

Validation rules follow the host-requirements standard:

    * allowed characters: a-z A-Z 0-9 . _ + - # [ ] < >
    * no path separators
    * per-category length bounds (see each class)
"""
from __future__ import annotations

import re
from typing import Any, Optional

from pydantic_core import core_schema

from ibc.core.errors import IdentifierError

_VALID_CHARS = re.compile(r"^[a-zA-Z0-9._+\-#\[\]<>]+$")
_REVISION_SUFFIX = re.compile(r"^(?P<name>.*[^\n-])-(?P<revision>[1-9][0-9]*)$")


def validate_identifier(value: str, min_length: int, max_length: int, kind: str) -> None:
    """
    Check `value` against the generic identifier rules.

    Raises IdentifierError naming the identifier `kind` on failure.
    """
    if not isinstance(value, str):
        raise IdentifierError(f"{kind} must be a string, got {type(value).__name__}")
    if not value.strip():
        raise IdentifierError(f"{kind} cannot be blank")
    if "/" in value:
        raise IdentifierError(f"{kind} {value!r} cannot contain '/'", identifier=value)
    if not (min_length <= len(value) <= max_length):
        raise IdentifierError(
            f"{kind} {value!r} has invalid length {len(value)}, "
            f"must be between {min_length} and {max_length}",
            identifier=value,
        )
    if not _VALID_CHARS.match(value):
        raise IdentifierError(
            f"{kind} {value!r} contains invalid characters", identifier=value
        )


class Identifier(str):
    """
    Base class for validated identifiers.

    Subclasses set `min_length`, `max_length` and `kind`.
    """

    min_length = 1
    max_length = 64
    kind = "identifier"

    def __new__(cls, value: Any) -> "Identifier":
        if isinstance(value, cls):
            return value
        validate_identifier(value, cls.min_length, cls.max_length, cls.kind)
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r})"

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_after_validator_function(
            cls,
            core_schema.str_schema(),
            serialization=core_schema.to_string_ser_schema(),
        )


class ClientId(Identifier):
    """Client identifier, `{client_type}-{counter}`, e.g. `9999-mock-0`."""

    min_length = 9
    max_length = 64
    kind = "client identifier"

    @classmethod
    def new(cls, client_type: str, counter: int) -> "ClientId":
        if counter < 0:
            raise IdentifierError(f"client counter must be non-negative, got {counter}")
        return cls(f"{client_type}-{counter}")


class ConnectionId(Identifier):
    """Connection identifier, `connection-{n}`."""

    min_length = 10
    max_length = 64
    kind = "connection identifier"
    prefix = "connection"

    @classmethod
    def new(cls, counter: int) -> "ConnectionId":
        if counter < 0:
            raise IdentifierError(f"connection counter must be non-negative, got {counter}")
        return cls(f"{cls.prefix}-{counter}")


class ChannelId(Identifier):
    """Channel identifier, `channel-{n}`."""

    min_length = 8
    max_length = 64
    kind = "channel identifier"
    prefix = "channel"

    @classmethod
    def new(cls, counter: int) -> "ChannelId":
        if counter < 0:
            raise IdentifierError(f"channel counter must be non-negative, got {counter}")
        return cls(f"{cls.prefix}-{counter}")


class PortId(Identifier):
    """Port identifier; ports are bound to application modules."""

    min_length = 2
    max_length = 128
    kind = "port identifier"


class ChainId(str):
    """
    Chain identifier with an optional revision suffix.

    `chainA-2` has revision number 2; an identifier without a numeric
    suffix is at revision 0. The revision number must match the
    revision_number of every Height produced by that chain.
    """

    def __new__(cls, value: Any) -> "ChainId":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            raise IdentifierError("chain identifier cannot be blank")
        if len(value) > 64:
            raise IdentifierError(f"chain identifier {value!r} is longer than 64 characters")
        return super().__new__(cls, value)

    @classmethod
    def from_name(cls, name: str, revision: int) -> "ChainId":
        return cls(f"{name}-{revision}")

    @property
    def revision_number(self) -> int:
        match = _REVISION_SUFFIX.match(self)
        return int(match.group("revision")) if match else 0

    @property
    def name(self) -> str:
        match = _REVISION_SUFFIX.match(self)
        return match.group("name") if match else str(self)

    def __repr__(self) -> str:
        return f"ChainId({str(self)!r})"

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_after_validator_function(
            cls,
            core_schema.str_schema(),
            serialization=core_schema.to_string_ser_schema(),
        )


def validate_sequence(sequence: Optional[int]) -> int:
    """Packet sequences start at 1; 0 is never a valid sequence."""
    if sequence is None or isinstance(sequence, bool) or not isinstance(sequence, int):
        raise IdentifierError(f"sequence must be an integer, got {sequence!r}")
    if sequence < 1:
        raise IdentifierError(f"sequence must be >= 1, got {sequence}")
    return sequence
