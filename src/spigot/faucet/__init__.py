"""Faucet state machine for spigot."""

from .errors import (
    FaucetError,
    FaucetErrorKind,
    InCoolDownError,
    NotActiveError,
    NotEnoughFundsError,
    NotOwnerError,
    ValueTooLargeError,
)
from .machine import RESERVED_BALANCE, FaucetState, FaucetStateMachine

__all__ = [
    "FaucetError",
    "FaucetErrorKind",
    "FaucetState",
    "FaucetStateMachine",
    "InCoolDownError",
    "NotActiveError",
    "NotEnoughFundsError",
    "NotOwnerError",
    "RESERVED_BALANCE",
    "ValueTooLargeError",
]
