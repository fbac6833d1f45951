"""Execution context handed to every faucet operation."""

from dataclasses import dataclass

from spigot.types import AccountId


@dataclass(frozen=True)
class ExecutionContext:
    """Read-only snapshot of the host environment taken at call entry."""

    caller: AccountId
    block_number: int
    balance: int  # Contract balance
    contract: AccountId
