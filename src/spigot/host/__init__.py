"""Host environment collaborators for spigot."""

from .context import ExecutionContext
from .events import DripEvent, EventLog
from .ledger import InMemoryLedger, LedgerAccount, LedgerTransfer, TransferError
from .storage import BoundedMapping, StorageSizeError

__all__ = [
    "BoundedMapping",
    "DripEvent",
    "EventLog",
    "ExecutionContext",
    "InMemoryLedger",
    "LedgerAccount",
    "LedgerTransfer",
    "StorageSizeError",
    "TransferError",
]
