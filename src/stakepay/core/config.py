"""
stakepay Configuration

Values are read once from environment variables at import time. Components
take these as constructor defaults, so tests and embedders can override
them per instance without touching the environment.
"""

from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_int(env_var: str, default: int, minimum: int = 0) -> int:
    """Read a non-negative integer setting from the environment."""
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{env_var} must be >= {minimum}, got {value}")
    return value


def _get_log_level(env_var: str, default: str) -> str:
    level = os.getenv(env_var, default).strip().upper() or default
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ConfigurationError(f"{env_var} is not a valid log level: {level!r}")
    return level


NETWORK = os.getenv("STAKEPAY_NETWORK", "testnet")
CHAIN_ID = _get_int("STAKEPAY_CHAIN_ID", 1, minimum=1)

# Verification gas the paymaster reserves for its own settlement step.
# Operations must declare strictly more than this.
COST_OF_POST = _get_int("STAKEPAY_COST_OF_POST", 35_000)

ENTRY_POINT_ADDRESS = os.getenv(
    "STAKEPAY_ENTRY_POINT_ADDRESS",
    "0x5ff137d4b0fdcd49dca30c7cf57e578a026d2789",
).strip().lower()

LOG_LEVEL = _get_log_level("STAKEPAY_LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("STAKEPAY_LOG_FILE", "").strip()

if NETWORK.lower() == "mainnet" and COST_OF_POST == 0:
    logger.warning(
        "COST_OF_POST is 0 on mainnet; settlement gas will not be reserved",
        extra={"event": "config.cost_of_post_zero", "network": NETWORK},
    )
