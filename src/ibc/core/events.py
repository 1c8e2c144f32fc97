# src/ibc/core/events.py
from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, Field

from ibc.core.enums import EventKind
from ibc.core.height import Height


class IbcEvent(BaseModel):
    """
    An event emitted by a handler through HostContext.emit_event.

    Attributes are flattened to strings, the way a host chain's event bus
    usually exposes them to off-chain observers such as relayers.
    """

    kind: EventKind
    attributes: Dict[str, str] = Field(default_factory=dict)
    height: Optional[Height] = Field(
        default=None,
        description="Host height at which the event was emitted.",
    )

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.attributes.get(key, default)


def stringify_attributes(attributes: Dict[str, object]) -> Dict[str, str]:
    """Convert attribute values to strings; bytes are rendered as hex."""
    out: Dict[str, str] = {}
    for key, value in attributes.items():
        if value is None:
            continue
        if isinstance(value, (bytes, bytearray)):
            out[key] = bytes(value).hex()
        elif hasattr(value, "value") and isinstance(getattr(value, "value"), str):
            # str-valued enums
            out[key] = value.value
        else:
            out[key] = str(value)
    return out
