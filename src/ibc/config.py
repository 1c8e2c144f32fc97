# src/ibc/config.py
"""
Configuration for the protocol core.

- Reads environment variables (prefix ``IBC_``, optionally from `.env`) via
  pydantic-settings.
- Exposes a cached `get_settings()` accessor.
- `configure_logging()` installs one stream handler on the `ibc` logger.

Environment variables:
    IBC_COMMITMENT_PREFIX              (str, default "ibc")
    IBC_ALLOWED_CLIENT_TYPES           (csv|json list, default mock + committee)
    IBC_MAX_EXPECTED_TIME_PER_BLOCK    (int ns, default 30s)
    IBC_LOG_LEVEL                      (str, default "INFO")

Settings are read by the host context, not by handlers directly: two
chains simulated in one process each carry their own IbcSettings.
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from ibc.core.height import NANOS_PER_SECOND

DEFAULT_ALLOWED_CLIENT_TYPES = ["9999-mock", "99-committee"]

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def _parse_list(val: Optional[str | List[str]], *, default: List[str]) -> List[str]:
    if val is None:
        return list(default)
    if isinstance(val, list):
        return [str(x) for x in val]
    s = val.strip()
    if not s:
        return []
    if s.startswith("[") and s.endswith("]"):
        try:
            return [str(x) for x in json.loads(s)]
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid JSON list: {s!r}") from exc
    return [x.strip() for x in s.split(",") if x.strip()]


class IbcSettings(BaseSettings):
    commitment_prefix: str = Field(
        "ibc", description="Store prefix under which provable state is kept."
    )
    allowed_client_types: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_CLIENT_TYPES),
        description="Client types accepted by MsgCreateClient.",
    )
    max_expected_time_per_block: int = Field(
        30 * NANOS_PER_SECOND,
        gt=0,
        description="Used to derive the block delay from a connection's time delay.",
    )
    log_level: str = Field("INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")

    model_config = SettingsConfigDict(
        env_prefix="IBC_", env_file=".env", case_sensitive=False, extra="ignore"
    )

    @field_validator("allowed_client_types", mode="before")
    @classmethod
    def _coerce_list(cls, v):
        return _parse_list(v, default=DEFAULT_ALLOWED_CLIENT_TYPES)

    @field_validator("commitment_prefix")
    @classmethod
    def _non_empty_prefix(cls, v: str) -> str:
        if not v or "/" in v:
            raise ValueError("commitment prefix must be non-empty and contain no '/'")
        return v

    @field_validator("log_level")
    @classmethod
    def _valid_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {v!r}")
        return level

    def is_client_type_allowed(self, client_type: str) -> bool:
        return client_type in self.allowed_client_types


@lru_cache(maxsize=1)
def get_settings() -> IbcSettings:
    return IbcSettings()


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Attach a single stream handler to the `ibc` logger.

    Embedding chains that manage logging themselves should simply not call
    this; every module logs through `logging.getLogger(__name__)`.
    """
    logger = logging.getLogger("ibc")
    logger.setLevel((level or get_settings().log_level).upper())
    if not any(getattr(h, "_ibc_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._ibc_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
