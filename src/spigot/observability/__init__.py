"""Observability module for spigot."""

from .logging import clear_call_id, configure_logging, get_logger, set_call_id
from .metrics import (
    BLOCK_HEIGHT,
    CALL_DURATION,
    CALLS,
    CONTRACT_BALANCE,
    TOKENS_DRIPPED,
)

__all__ = [
    # Logging
    "clear_call_id",
    "configure_logging",
    "get_logger",
    "set_call_id",
    # Metrics
    "BLOCK_HEIGHT",
    "CALL_DURATION",
    "CALLS",
    "CONTRACT_BALANCE",
    "TOKENS_DRIPPED",
]
