"""Native asset ledger for the contract host.

Transfers are all-or-nothing: a transfer either moves the full amount or
raises ``TransferError`` without touching any balance.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from spigot.types import BALANCE_MAX, AccountId, ensure_balance, to_account_id

logger = logging.getLogger(__name__)


class TransferError(Exception):
    """The ledger refused a transfer."""


class LedgerTransfer(ABC):
    """Capability to move value out of the contract's balance."""

    @abstractmethod
    def transfer(self, to: AccountId, amount: int) -> None:
        """Move ``amount`` from the contract to ``to``.

        Raises
        ------
        TransferError
            If the transfer cannot be completed in full.
        """
        ...


class InMemoryLedger:
    """Balances of every account known to the host."""

    def __init__(self, balances: dict[AccountId, int] | None = None):
        self._balances: dict[AccountId, int] = {}
        for account, amount in (balances or {}).items():
            self._balances[to_account_id(account)] = ensure_balance(amount)

    def balance_of(self, account: AccountId) -> int:
        return self._balances.get(to_account_id(account), 0)

    def mint(self, account: AccountId, amount: int) -> None:
        """Create new value in an account (development networks only).

        Raises
        ------
        TransferError
            If the resulting balance would exceed the Amount domain.
        """
        account = to_account_id(account)
        ensure_balance(amount)
        new_balance = self.balance_of(account) + amount
        if new_balance > BALANCE_MAX:
            raise TransferError(f"Minting {amount} would overflow balance of {account}")
        self._balances[account] = new_balance
        logger.debug("Minted", extra={"account": account, "amount": amount})

    def move(self, sender: AccountId, to: AccountId, amount: int) -> None:
        """Move value between two accounts atomically.

        Raises
        ------
        TransferError
            If the sender's balance is insufficient or the recipient's balance
            would overflow.
        """
        sender = to_account_id(sender)
        to = to_account_id(to)
        try:
            ensure_balance(amount)
        except ValueError as e:
            raise TransferError(str(e)) from None

        sender_balance = self.balance_of(sender)
        if amount > sender_balance:
            raise TransferError(
                f"Insufficient balance: {sender} holds {sender_balance}, needs {amount}"
            )
        if sender == to:
            return
        recipient_balance = self.balance_of(to)
        if recipient_balance + amount > BALANCE_MAX:
            raise TransferError(f"Transfer of {amount} would overflow balance of {to}")

        self._balances[sender] = sender_balance - amount
        self._balances[to] = recipient_balance + amount

    def balances(self) -> dict[AccountId, int]:
        return dict(self._balances)

    @dataclass(frozen=True)
    class Snapshot:
        data: tuple[tuple[AccountId, int], ...]

    def snapshot(self) -> "InMemoryLedger.Snapshot":
        return InMemoryLedger.Snapshot(tuple(self._balances.items()))

    def restore(self, snap: "InMemoryLedger.Snapshot") -> None:
        self._balances = dict(snap.data)


class LedgerAccount(LedgerTransfer):
    """LedgerTransfer bound to one contract account.

    Parameters
    ----------
    ledger : InMemoryLedger
        The host ledger.
    address : AccountId
        The contract account that funds transfers.
    """

    def __init__(self, ledger: InMemoryLedger, address: AccountId):
        self._ledger = ledger
        self._address = to_account_id(address)

    @property
    def address(self) -> AccountId:
        return self._address

    @property
    def balance(self) -> int:
        return self._ledger.balance_of(self._address)

    def transfer(self, to: AccountId, amount: int) -> None:
        self._ledger.move(self._address, to, amount)
