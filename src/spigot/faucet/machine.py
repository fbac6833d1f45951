"""Faucet state machine.

Owns all faucet state and exposes the state transitions:
- drip: pay ``drip_amount`` to the caller, subject to activation, funding
  and per-account cooldown
- owner-gated administration (cooldown, drip amount, activation switch,
  ownership transfer and renunciation)

Each operation reads the ``ExecutionContext`` snapshot it is given, raises a
``FaucetError`` before touching state if a guard fails, and otherwise applies
every effect. Atomicity across calls (reverting a transfer when a later step
fails) is the host's job.
"""

from dataclasses import dataclass, field

from spigot.host.context import ExecutionContext
from spigot.host.events import DripEvent, EventLog
from spigot.host.ledger import LedgerTransfer
from spigot.host.storage import BoundedMapping, StorageSizeError
from spigot.types import (
    BALANCE_MAX,
    BLOCK_NUMBER_MAX,
    AccountId,
    Owned,
    Ownerless,
    Ownership,
    ensure_balance,
    ensure_block_number,
    saturating_add,
    to_account_id,
)

from .errors import (
    InCoolDownError,
    NotActiveError,
    NotEnoughFundsError,
    NotOwnerError,
    ValueTooLargeError,
)

# Balance the contract always keeps back after a drip
RESERVED_BALANCE = 1


@dataclass
class FaucetState:
    """Persistent faucet fields."""

    cooldown: int
    drip_amount: int
    ownership: Ownership
    active: bool = False
    last_request_of: BoundedMapping = field(default_factory=BoundedMapping)

    @dataclass(frozen=True)
    class Snapshot:
        cooldown: int
        drip_amount: int
        ownership: Ownership
        active: bool
        last_request_of: BoundedMapping.Snapshot

    def snapshot(self) -> "FaucetState.Snapshot":
        return FaucetState.Snapshot(
            cooldown=self.cooldown,
            drip_amount=self.drip_amount,
            ownership=self.ownership,
            active=self.active,
            last_request_of=self.last_request_of.snapshot(),
        )

    def restore(self, snap: "FaucetState.Snapshot") -> None:
        self.cooldown = snap.cooldown
        self.drip_amount = snap.drip_amount
        self.ownership = snap.ownership
        self.active = snap.active
        self.last_request_of.restore(snap.last_request_of)


class FaucetStateMachine:
    """Rate-limited native token faucet.

    Parameters
    ----------
    state : FaucetState
        The faucet's persistent state.
    ledger : LedgerTransfer
        Capability to pay out of the contract balance.
    events : EventLog
        Sink for ``Drip`` notifications.
    """

    def __init__(self, state: FaucetState, ledger: LedgerTransfer, events: EventLog):
        self._state = state
        self._ledger = ledger
        self._events = events

    @classmethod
    def create(
        cls,
        ctx: ExecutionContext,
        cooldown: int,
        drip_amount: int,
        ledger: LedgerTransfer,
        events: EventLog,
        storage: BoundedMapping | None = None,
    ) -> "FaucetStateMachine":
        """Instantiate an inactive faucet owned by the caller.

        Parameters
        ----------
        ctx : ExecutionContext
            Context of the deploying call; its caller becomes the owner.
        cooldown : int
            Blocks an account must wait between drips. Zero disables waiting.
        drip_amount : int
            Amount paid per drip.
        ledger : LedgerTransfer
            Capability to pay out of the contract balance.
        events : EventLog
            Sink for ``Drip`` notifications.
        storage : BoundedMapping | None
            Backing store for last request heights; a default one if None.

        Returns
        -------
        FaucetStateMachine
            The new faucet.
        """
        state = FaucetState(
            cooldown=ensure_block_number(cooldown, "cooldown"),
            drip_amount=ensure_balance(drip_amount, "drip_amount"),
            ownership=Owned(to_account_id(ctx.caller)),
            active=False,
            last_request_of=storage if storage is not None else BoundedMapping(),
        )
        return cls(state, ledger, events)

    @property
    def state(self) -> FaucetState:
        return self._state

    # Guards

    def _ensure_active(self) -> None:
        if not self._state.active:
            raise NotActiveError()

    def _ensure_owner(self, ctx: ExecutionContext) -> None:
        ownership = self._state.ownership
        if isinstance(ownership, Ownerless):
            raise NotOwnerError("Faucet ownership has been renounced")
        if isinstance(ownership, Owned):
            if ownership.account != to_account_id(ctx.caller):
                raise NotOwnerError()
            return
        raise TypeError(f"Unknown ownership variant: {ownership!r}")

    def _can_request(self, ctx: ExecutionContext) -> None:
        try:
            last_drip = self._state.last_request_of.try_get(ctx.caller)
        except StorageSizeError as e:
            raise ValueTooLargeError(str(e)) from e

        if last_drip is None:
            return
        next_allowed = saturating_add(last_drip, self._state.cooldown, BLOCK_NUMBER_MAX)
        if next_allowed > ctx.block_number:
            raise InCoolDownError(
                f"Caller may request again at block {next_allowed} "
                f"(current block {ctx.block_number})"
            )

    def _can_withdraw(self, ctx: ExecutionContext) -> None:
        required = saturating_add(self._state.drip_amount, RESERVED_BALANCE, BALANCE_MAX)
        if required >= ctx.balance:
            raise NotEnoughFundsError(
                f"Faucet balance {ctx.balance} cannot cover drip of {self._state.drip_amount}"
            )

    # Queries

    def get_cooldown(self) -> int:
        return self._state.cooldown

    def get_drip_amount(self) -> int:
        return self._state.drip_amount

    def is_active(self) -> bool:
        return self._state.active

    def get_owner(self) -> AccountId | None:
        """Faucet owner account, or None once ownership is renounced."""
        ownership = self._state.ownership
        if isinstance(ownership, Owned):
            return ownership.account
        return None

    def last_request_of(self, ctx: ExecutionContext) -> int | None:
        """Block number of the caller's last successful drip, if any."""
        return self._state.last_request_of.get(ctx.caller)

    # Transitions

    def drip(self, ctx: ExecutionContext) -> DripEvent:
        """Transfer ``drip_amount`` to the caller.

        Checks run in order: activation, funding, cooldown. The first failure
        is raised and nothing changes.

        Parameters
        ----------
        ctx : ExecutionContext
            Context of the requesting call.

        Returns
        -------
        DripEvent
            The emitted notification.

        Raises
        ------
        NotActiveError, NotEnoughFundsError, InCoolDownError, ValueTooLargeError
            If the drip is not allowed.
        TransferError
            If the ledger refuses the payout. The host must abort the call.
        """
        self._ensure_active()
        self._can_withdraw(ctx)
        self._can_request(ctx)

        caller = to_account_id(ctx.caller)
        last_request_of = self._state.last_request_of

        # Reject before paying out
        try:
            last_request_of.ensure_fits(caller, ctx.block_number)
        except StorageSizeError as e:
            raise ValueTooLargeError(str(e)) from e

        self._ledger.transfer(caller, self._state.drip_amount)

        try:
            last_request_of.try_insert(caller, ctx.block_number)
        except StorageSizeError as e:
            raise ValueTooLargeError(str(e)) from e

        event = DripEvent(value=self._state.drip_amount, to=caller)
        self._events.emit(event)
        return event

    def set_cooldown(self, ctx: ExecutionContext, cooldown: int) -> None:
        self._ensure_owner(ctx)
        ensure_block_number(cooldown, "cooldown")
        self._state.cooldown = cooldown

    def start_stop(self, ctx: ExecutionContext) -> None:
        """Toggle the faucet on or off.

        There is no separate start or stop: two calls in a row restore the
        original state.
        """
        self._ensure_owner(ctx)
        self._state.active = not self._state.active

    def remove_ownership(self, ctx: ExecutionContext) -> None:
        """Renounce ownership. Every owner-gated call fails afterwards."""
        self._ensure_owner(ctx)
        self._state.ownership = self._state.ownership.renounce()

    def set_drip_amount(self, ctx: ExecutionContext, drip_amount: int) -> None:
        self._ensure_owner(ctx)
        ensure_balance(drip_amount, "drip_amount")
        self._state.drip_amount = drip_amount

    def transfer_ownership(self, ctx: ExecutionContext, new_owner: AccountId) -> None:
        self._ensure_owner(ctx)
        new_owner = to_account_id(new_owner)
        self._state.ownership = self._state.ownership.transfer(new_owner)
