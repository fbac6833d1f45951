"""Deterministic contract host for the spigot faucet.

The host plays the part of the execution environment:
- keeps the block height, the native asset ledger and the event log
- builds an ``ExecutionContext`` snapshot for every call
- runs each mutating call atomically, reverting state, balances and events
  when the call fails
- persists the whole world through ``HostRecord``
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from web3 import Web3

from spigot.faucet import FaucetError, FaucetErrorKind, FaucetState, FaucetStateMachine
from spigot.host import (
    BoundedMapping,
    DripEvent,
    EventLog,
    ExecutionContext,
    InMemoryLedger,
    LedgerAccount,
    StorageSizeError,
    TransferError,
)
from spigot.host.storage import DEFAULT_MAX_KEY_SIZE, DEFAULT_MAX_VALUE_SIZE
from spigot.observability.logging import clear_call_id, set_call_id
from spigot.observability.metrics import (
    BLOCK_HEIGHT,
    CALL_DURATION,
    CALLS,
    CONTRACT_BALANCE,
    TOKENS_DRIPPED,
)
from spigot.persistence import EventRecord, FaucetRecord, HostRecord
from spigot.types import (
    BLOCK_NUMBER_MAX,
    AccountId,
    Owned,
    Ownerless,
    ensure_balance,
    ensure_block_number,
    to_account_id,
)

logger = logging.getLogger(__name__)

MUTATING_OPERATIONS = frozenset(
    {
        "drip",
        "set_cooldown",
        "start_stop",
        "remove_ownership",
        "set_drip_amount",
        "transfer_ownership",
    }
)

# External query name -> state machine accessor
QUERY_OPERATIONS = {
    "cooldown": "get_cooldown",
    "drip_amount": "get_drip_amount",
    "is_active": "is_active",
    "owner": "get_owner",
    "last_request_of": "last_request_of",
}


class ExecutionAborted(Exception):
    """A call trapped for a non-business reason and was fully reverted."""


class FaucetNotDeployedError(RuntimeError):
    """No faucet instance exists on this host."""


def contract_address_for(creator: AccountId, block_number: int) -> AccountId:
    """Derive the faucet contract address from its creator and deploy block."""
    creator_bytes = bytes.fromhex(to_account_id(creator)[2:])
    digest = Web3.keccak(creator_bytes + block_number.to_bytes(4, "big"))
    return Web3.to_checksum_address(digest[-20:])


@dataclass
class CallResult:
    """Outcome of a mutating faucet call."""

    success: bool
    operation: str
    caller: AccountId
    block_number: int
    error: FaucetErrorKind | None = None
    message: str | None = None
    events: list[DripEvent] = field(default_factory=list)
    dry_run: bool = False

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        result: dict[str, Any] = {
            "success": self.success,
            "operation": self.operation,
            "caller": self.caller,
            "block_number": self.block_number,
        }
        if self.error is not None:
            result["error"] = self.error.value
            result["message"] = self.message
        if self.events:
            result["events"] = [event.to_dict() for event in self.events]
        if self.dry_run:
            result["dry_run"] = True
        return result


@dataclass(frozen=True)
class _Checkpoint:
    faucet: FaucetState.Snapshot | None
    ledger: InMemoryLedger.Snapshot
    events: int


class ContractHost:
    """Single-faucet contract host.

    Parameters
    ----------
    ledger : InMemoryLedger | None
        Native asset balances. A new empty ledger if None.
    block_number : int
        Current block height.
    events : EventLog | None
        Event log. A new empty log if None.
    max_key_size : int
        Storage key buffer size for a faucet deployed on this host.
    max_value_size : int
        Storage value buffer size for a faucet deployed on this host.
    """

    def __init__(
        self,
        ledger: InMemoryLedger | None = None,
        block_number: int = 0,
        events: EventLog | None = None,
        max_key_size: int = DEFAULT_MAX_KEY_SIZE,
        max_value_size: int = DEFAULT_MAX_VALUE_SIZE,
    ):
        self._ledger = ledger if ledger is not None else InMemoryLedger()
        self._block_number = ensure_block_number(block_number)
        self._events = events if events is not None else EventLog()
        self._max_key_size = max_key_size
        self._max_value_size = max_value_size
        self._contract: AccountId | None = None
        self._faucet: FaucetStateMachine | None = None

    @property
    def ledger(self) -> InMemoryLedger:
        return self._ledger

    @property
    def events(self) -> EventLog:
        return self._events

    @property
    def block_number(self) -> int:
        return self._block_number

    @property
    def deployed(self) -> bool:
        return self._faucet is not None

    @property
    def contract(self) -> AccountId:
        if self._contract is None:
            raise FaucetNotDeployedError("No faucet deployed")
        return self._contract

    @property
    def faucet(self) -> FaucetStateMachine:
        if self._faucet is None:
            raise FaucetNotDeployedError("No faucet deployed")
        return self._faucet

    @property
    def contract_balance(self) -> int:
        return self._ledger.balance_of(self.contract)

    def context_for(self, caller: AccountId) -> ExecutionContext:
        """Snapshot the environment for a call made by ``caller``."""
        return ExecutionContext(
            caller=to_account_id(caller),
            block_number=self._block_number,
            balance=self.contract_balance,
            contract=self.contract,
        )

    def _update_gauges(self) -> None:
        BLOCK_HEIGHT.set(self._block_number)
        if self._contract is not None:
            CONTRACT_BALANCE.set(self.contract_balance)

    def deploy(
        self,
        creator: AccountId,
        cooldown: int,
        drip_amount: int,
        endowment: int = 0,
    ) -> AccountId:
        """Create the faucet, optionally funded by the creator.

        Parameters
        ----------
        creator : AccountId
            Deploying account; becomes the faucet owner.
        cooldown : int
            Blocks between drips per account.
        drip_amount : int
            Amount paid per drip.
        endowment : int
            Value moved from the creator to the contract as part of creation.

        Returns
        -------
        AccountId
            The contract address.

        Raises
        ------
        RuntimeError
            If a faucet is already deployed.
        ExecutionAborted
            If the creator cannot pay the endowment.
        """
        if self._faucet is not None:
            raise RuntimeError(f"Faucet already deployed at {self._contract}")

        creator = to_account_id(creator)
        ensure_block_number(cooldown, "cooldown")
        ensure_balance(drip_amount, "drip_amount")
        ensure_balance(endowment, "endowment")
        contract = contract_address_for(creator, self._block_number)

        if endowment:
            try:
                self._ledger.move(creator, contract, endowment)
            except TransferError as e:
                raise ExecutionAborted(f"deploy aborted: {e}") from e

        ctx = ExecutionContext(
            caller=creator,
            block_number=self._block_number,
            balance=self._ledger.balance_of(contract),
            contract=contract,
        )
        self._contract = contract
        self._faucet = FaucetStateMachine.create(
            ctx,
            cooldown=cooldown,
            drip_amount=drip_amount,
            ledger=LedgerAccount(self._ledger, contract),
            events=self._events,
            storage=BoundedMapping(self._max_key_size, self._max_value_size),
        )
        self._update_gauges()

        logger.info(
            "Faucet deployed",
            extra={
                "contract": contract,
                "owner": creator,
                "cooldown": cooldown,
                "drip_amount": drip_amount,
                "endowment": endowment,
            },
        )
        return contract

    def mint(self, account: AccountId, amount: int) -> None:
        """Credit new value to an account (development networks only)."""
        self._ledger.mint(account, amount)
        self._update_gauges()
        logger.info("Minted", extra={"account": to_account_id(account), "amount": amount})

    def fund(self, sender: AccountId, amount: int) -> None:
        """Move value from ``sender`` into the faucet contract.

        Raises
        ------
        ExecutionAborted
            If the sender cannot pay.
        """
        contract = self.contract
        try:
            self._ledger.move(sender, contract, amount)
        except TransferError as e:
            raise ExecutionAborted(f"fund aborted: {e}") from e
        self._update_gauges()
        logger.info(
            "Faucet funded",
            extra={"sender": to_account_id(sender), "amount": amount},
        )

    def advance_blocks(self, count: int = 1) -> int:
        """Move the block height forward.

        Returns
        -------
        int
            The new block height.

        Raises
        ------
        ValueError
            If ``count`` is negative or the height would leave the BlockHeight domain.
        """
        if count < 0:
            raise ValueError("Block count must not be negative")
        new_height = self._block_number + count
        if new_height > BLOCK_NUMBER_MAX:
            raise ValueError(f"Block height {new_height} exceeds {BLOCK_NUMBER_MAX}")
        self._block_number = new_height
        self._update_gauges()
        return new_height

    def query(self, caller: AccountId, name: str) -> Any:
        """Run a read-only accessor.

        Raises
        ------
        ValueError
            If ``name`` is not a known query.
        """
        accessor = QUERY_OPERATIONS.get(name)
        if accessor is None:
            raise ValueError(f"Unknown query: {name}")
        method = getattr(self.faucet, accessor)
        if name == "last_request_of":
            return method(self.context_for(caller))
        return method()

    def _checkpoint(self) -> _Checkpoint:
        return _Checkpoint(
            faucet=self._faucet.state.snapshot() if self._faucet else None,
            ledger=self._ledger.snapshot(),
            events=len(self._events),
        )

    def _revert(self, checkpoint: _Checkpoint) -> None:
        if self._faucet is not None and checkpoint.faucet is not None:
            self._faucet.state.restore(checkpoint.faucet)
        self._ledger.restore(checkpoint.ledger)
        self._events.truncate(checkpoint.events)

    def call(
        self,
        caller: AccountId,
        operation: str,
        *args: Any,
        dry_run: bool = False,
    ) -> CallResult:
        """Execute one mutating faucet operation atomically.

        Parameters
        ----------
        caller : AccountId
            Account making the call.
        operation : str
            One of ``MUTATING_OPERATIONS``.
        *args
            Operation arguments.
        dry_run : bool
            Report the outcome, then revert every effect.

        Returns
        -------
        CallResult
            Success, or the faucet error kind that rejected the call.

        Raises
        ------
        ValueError
            If the operation is unknown or an argument is malformed.
        ExecutionAborted
            If the call trapped (failed transfer or storage fault).
        """
        if operation not in MUTATING_OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")

        faucet = self.faucet
        ctx = self.context_for(caller)
        handler = getattr(faucet, operation)
        checkpoint = self._checkpoint()

        set_call_id(uuid.uuid4().hex)
        start = time.perf_counter()
        try:
            handler(ctx, *args)
        except FaucetError as e:
            self._revert(checkpoint)
            CALLS.labels(operation=operation, status=e.kind.value).inc()
            logger.info(
                "Call rejected",
                extra={"operation": operation, "caller": ctx.caller, "error": e.kind.value},
            )
            return CallResult(
                success=False,
                operation=operation,
                caller=ctx.caller,
                block_number=ctx.block_number,
                error=e.kind,
                message=e.message,
                dry_run=dry_run,
            )
        except (TransferError, StorageSizeError) as e:
            self._revert(checkpoint)
            CALLS.labels(operation=operation, status="aborted").inc()
            logger.error(
                "Call aborted",
                extra={"operation": operation, "caller": ctx.caller, "error": str(e)},
            )
            raise ExecutionAborted(f"{operation} aborted: {e}") from e
        except Exception:
            self._revert(checkpoint)
            raise
        finally:
            CALL_DURATION.labels(operation=operation).observe(time.perf_counter() - start)
            clear_call_id()

        emitted = self._events.events[checkpoint.events :]
        result = CallResult(
            success=True,
            operation=operation,
            caller=ctx.caller,
            block_number=ctx.block_number,
            events=emitted,
            dry_run=dry_run,
        )

        if dry_run:
            self._revert(checkpoint)
            logger.info("Dry run", extra={"operation": operation, "caller": ctx.caller})
            return result

        self._events.publish(checkpoint.events)
        CALLS.labels(operation=operation, status="success").inc()
        for event in emitted:
            TOKENS_DRIPPED.inc(event.value)
        self._update_gauges()
        logger.info("Call succeeded", extra={"operation": operation, "caller": ctx.caller})
        return result

    def to_record(self) -> HostRecord:
        """Serialize the host and its faucet."""
        faucet_record = None
        if self._faucet is not None:
            state = self._faucet.state
            faucet_record = FaucetRecord(
                active=state.active,
                cooldown=state.cooldown,
                drip_amount=state.drip_amount,
                owner=self._faucet.get_owner(),
                last_request_of=dict(state.last_request_of.items()),
                max_key_size=state.last_request_of.max_key_size,
                max_value_size=state.last_request_of.max_value_size,
            )
        return HostRecord(
            block_number=self._block_number,
            contract=self._contract,
            balances=self._ledger.balances(),
            events=[EventRecord(value=e.value, to=e.to) for e in self._events.events],
            faucet=faucet_record,
        )

    @classmethod
    def from_record(
        cls,
        record: HostRecord,
        max_key_size: int = DEFAULT_MAX_KEY_SIZE,
        max_value_size: int = DEFAULT_MAX_VALUE_SIZE,
    ) -> "ContractHost":
        """Rebuild a host from a record.

        Storage limits stored with a deployed faucet take precedence over the
        ``max_key_size`` / ``max_value_size`` arguments.
        """
        host = cls(
            ledger=InMemoryLedger(record.balances),
            block_number=record.block_number,
            events=EventLog([DripEvent(value=e.value, to=e.to) for e in record.events]),
            max_key_size=max_key_size,
            max_value_size=max_value_size,
        )
        if record.faucet is None:
            return host
        if record.contract is None:
            raise ValueError("Faucet record without a contract address")

        faucet = record.faucet
        storage = BoundedMapping(faucet.max_key_size, faucet.max_value_size)
        for account, block_number in faucet.last_request_of.items():
            storage.try_insert(account, block_number)

        state = FaucetState(
            cooldown=faucet.cooldown,
            drip_amount=faucet.drip_amount,
            ownership=Owned(faucet.owner) if faucet.owner is not None else Ownerless(),
            active=faucet.active,
            last_request_of=storage,
        )
        host._contract = to_account_id(record.contract)
        host._faucet = FaucetStateMachine(
            state,
            LedgerAccount(host._ledger, host._contract),
            host._events,
        )
        host._update_gauges()
        return host
