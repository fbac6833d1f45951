"""Pytest configuration and fixtures for spigot tests."""

import os

import pytest

from spigot.faucet import FaucetStateMachine
from spigot.host import EventLog, ExecutionContext, InMemoryLedger, LedgerAccount
from spigot.runtime import ContractHost

OWNER = "0x1111111111111111111111111111111111111111"
ALICE = "0x2222222222222222222222222222222222222222"
BOB = "0x3333333333333333333333333333333333333333"
CONTRACT = "0x9999999999999999999999999999999999999999"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Clear spigot-related environment variables before each test."""
    for key in list(os.environ.keys()):
        if key.startswith("SPIGOT_"):
            monkeypatch.delenv(key, raising=False)


class FaucetHarness:
    """Faucet wired to an in-memory ledger, with a settable block height."""

    def __init__(self, cooldown: int = 10, drip_amount: int = 100, funding: int = 1000):
        self.ledger = InMemoryLedger({CONTRACT: funding} if funding else None)
        self.events = EventLog()
        self.block_number = 0
        self.faucet = FaucetStateMachine.create(
            self.ctx(OWNER),
            cooldown=cooldown,
            drip_amount=drip_amount,
            ledger=LedgerAccount(self.ledger, CONTRACT),
            events=self.events,
        )

    @property
    def balance(self) -> int:
        return self.ledger.balance_of(CONTRACT)

    def ctx(self, caller: str, block_number: int | None = None) -> ExecutionContext:
        return ExecutionContext(
            caller=caller,
            block_number=self.block_number if block_number is None else block_number,
            balance=self.ledger.balance_of(CONTRACT),
            contract=CONTRACT,
        )


@pytest.fixture
def harness():
    """Inactive faucet with cooldown 10, drip amount 100, funded with 1000."""
    return FaucetHarness()


@pytest.fixture
def active_harness(harness):
    """Funded faucet switched on by its owner."""
    harness.faucet.start_stop(harness.ctx(OWNER))
    return harness


@pytest.fixture
def host():
    """Host with a deployed, funded and active faucet (cooldown 10, drip 100)."""
    contract_host = ContractHost()
    contract_host.mint(OWNER, 5000)
    contract_host.deploy(OWNER, cooldown=10, drip_amount=100, endowment=1000)
    contract_host.call(OWNER, "start_stop")
    return contract_host
