"""
Token Vesting Configuration

Settings are read from environment variables and collected into an explicit
``LedgerConfig`` that is passed to the ledger. Nothing here is process-wide
mutable state: call ``LedgerConfig.from_env()`` where the ledger is built.

Environment variables:
- VESTING_NETWORK: "testnet" (default) or "mainnet"
- VESTING_PROGRAM_ID: program identifier stamped on ledger ids
- VESTING_TOKEN_DECIMALS: display decimals for base-unit amounts (default 9)
- VESTING_STRICT_MILESTONE_SUM: "1" rejects milestone sets above 100%
- VESTING_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default INFO)
- VESTING_LOG_JSON: "1" emits JSON log lines
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from token_vesting.constants import (
    DEFAULT_NETWORK,
    DEFAULT_PROGRAM_ID,
    DEFAULT_TOKEN_DECIMALS,
    MAX_TOKEN_DECIMALS,
)

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class NetworkType(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_flag(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    if raw not in ("0", "1"):
        raise ConfigurationError(f"{name} must be 0 or 1, got {raw!r}")
    return raw == "1"


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class LedgerConfig:
    """Explicit configuration for a ledger instance."""

    network: NetworkType = NetworkType.TESTNET
    program_id: str = DEFAULT_PROGRAM_ID
    token_decimals: int = DEFAULT_TOKEN_DECIMALS
    strict_milestone_sum: bool = False
    log_level: str = "INFO"
    log_json: bool = False

    def __post_init__(self) -> None:
        if not self.program_id:
            raise ConfigurationError("Program id cannot be empty")
        if not 0 <= self.token_decimals <= MAX_TOKEN_DECIMALS:
            raise ConfigurationError(
                f"Token decimals must be between 0 and {MAX_TOKEN_DECIMALS}"
            )
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(f"Unknown log level: {self.log_level}")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "LedgerConfig":
        """Build a config from ``env`` (defaults to ``os.environ``)."""
        env = os.environ if env is None else env

        network_name = env.get("VESTING_NETWORK", DEFAULT_NETWORK).strip().lower()
        try:
            network = NetworkType(network_name)
        except ValueError as exc:
            raise ConfigurationError(
                f"VESTING_NETWORK must be 'testnet' or 'mainnet', got {network_name!r}"
            ) from exc

        config = cls(
            network=network,
            program_id=env.get("VESTING_PROGRAM_ID", DEFAULT_PROGRAM_ID).strip(),
            token_decimals=_get_int(env, "VESTING_TOKEN_DECIMALS", DEFAULT_TOKEN_DECIMALS),
            strict_milestone_sum=_get_flag(env, "VESTING_STRICT_MILESTONE_SUM"),
            log_level=env.get("VESTING_LOG_LEVEL", "INFO").strip().upper() or "INFO",
            log_json=_get_flag(env, "VESTING_LOG_JSON"),
        )
        logger.debug(
            "Ledger configuration loaded for %s",
            config.network.value,
            extra={"event": "config.loaded", "program_id": config.program_id},
        )
        return config
