"""Serialization contract for host and faucet state.

The host persists its whole world (block height, balances, event log and the
faucet instance) as one JSON document validated by pydantic models.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from spigot.host.storage import DEFAULT_MAX_KEY_SIZE, DEFAULT_MAX_VALUE_SIZE
from spigot.types import BALANCE_MAX, BLOCK_NUMBER_MAX, to_account_id

logger = logging.getLogger(__name__)

RECORD_VERSION = 1


class FaucetRecord(BaseModel):
    """Persisted faucet fields. ``owner`` is None once ownership is renounced."""

    active: bool = False
    cooldown: int = Field(ge=0, le=BLOCK_NUMBER_MAX)
    drip_amount: int = Field(ge=0, le=BALANCE_MAX)
    owner: str | None
    last_request_of: dict[str, int] = Field(default_factory=dict)
    max_key_size: int = Field(default=DEFAULT_MAX_KEY_SIZE, gt=0)
    max_value_size: int = Field(default=DEFAULT_MAX_VALUE_SIZE, gt=0)

    @field_validator("owner")
    @classmethod
    def _normalize_owner(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return to_account_id(value)

    @field_validator("last_request_of")
    @classmethod
    def _normalize_requests(cls, value: dict[str, int]) -> dict[str, int]:
        normalized = {}
        for account, block_number in value.items():
            if not 0 <= block_number <= BLOCK_NUMBER_MAX:
                raise ValueError(f"Block number out of range for {account}: {block_number}")
            normalized[to_account_id(account)] = block_number
        return normalized


class EventRecord(BaseModel):
    event: str = "Drip"
    value: int = Field(ge=0, le=BALANCE_MAX)
    to: str

    @field_validator("to")
    @classmethod
    def _normalize_to(cls, value: str) -> str:
        return to_account_id(value)


class HostRecord(BaseModel):
    """Whole-host snapshot."""

    version: int = RECORD_VERSION
    block_number: int = Field(default=0, ge=0, le=BLOCK_NUMBER_MAX)
    contract: str | None = None
    balances: dict[str, int] = Field(default_factory=dict)
    events: list[EventRecord] = Field(default_factory=list)
    faucet: FaucetRecord | None = None

    @field_validator("balances")
    @classmethod
    def _normalize_balances(cls, value: dict[str, int]) -> dict[str, int]:
        normalized = {}
        for account, amount in value.items():
            if not 0 <= amount <= BALANCE_MAX:
                raise ValueError(f"Balance out of range for {account}: {amount}")
            normalized[to_account_id(account)] = amount
        return normalized


class HostStore:
    """Load and save a HostRecord as a JSON file.

    Parameters
    ----------
    path : str
        Location of the state file. Parent directories are created on save.
    """

    def __init__(self, path: str):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> HostRecord:
        """Read the stored record, or an empty one if no file exists yet."""
        if not self._path.exists():
            return HostRecord()
        # stdlib json keeps arbitrarily large integers intact
        data = json.loads(self._path.read_text())
        return HostRecord.model_validate(data)

    def save(self, record: HostRecord) -> None:
        """Write the record atomically (temp file plus rename)."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=self._path.parent, prefix=".spigot-state-")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(record.model_dump(), f, indent=2)
            os.replace(temp_path, self._path)
        except Exception:
            Path(temp_path).unlink(missing_ok=True)
            raise
        logger.debug("State saved", extra={"path": str(self._path)})
