from ibc.connection.msgs import (
    MsgConnectionOpenAck,
    MsgConnectionOpenConfirm,
    MsgConnectionOpenInit,
    MsgConnectionOpenTry,
)
from ibc.connection.types import (
    ConnectionEnd,
    Counterparty,
    Version,
    get_compatible_versions,
    pick_version,
)

__all__ = [
    "ConnectionEnd",
    "Counterparty",
    "MsgConnectionOpenAck",
    "MsgConnectionOpenConfirm",
    "MsgConnectionOpenInit",
    "MsgConnectionOpenTry",
    "Version",
    "get_compatible_versions",
    "pick_version",
]
