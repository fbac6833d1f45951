"""Bounded key/value storage for per-account block heights.

Mirrors the contract host's storage mapping: keys and values are encoded to
bytes and must fit fixed-size buffers. Oversized keys or values fail with
``StorageSizeError`` instead of being silently dropped.

Encoding:
- key: the 20 raw address bytes
- value: unsigned 32-bit little-endian block number
"""

from dataclasses import dataclass
from typing import Iterator

from spigot.types import AccountId, ensure_block_number, to_account_id

# Contract host static buffer size
DEFAULT_MAX_KEY_SIZE = 16 * 1024
DEFAULT_MAX_VALUE_SIZE = 16 * 1024

_VALUE_WIDTH = 4


class StorageSizeError(Exception):
    """Encoded key or value does not fit the storage buffer."""


def encode_key(account: AccountId) -> bytes:
    return bytes.fromhex(to_account_id(account)[2:])


def decode_key(raw: bytes) -> AccountId:
    return to_account_id("0x" + raw.hex())


def encode_value(block_number: int) -> bytes:
    return ensure_block_number(block_number).to_bytes(_VALUE_WIDTH, "little")


def decode_value(raw: bytes) -> int:
    return int.from_bytes(raw, "little")


class BoundedMapping:
    """Mapping from AccountId to block height with encoded size limits.

    Parameters
    ----------
    max_key_size : int
        Maximum encoded key length in bytes.
    max_value_size : int
        Maximum encoded value length in bytes.
    """

    def __init__(
        self,
        max_key_size: int = DEFAULT_MAX_KEY_SIZE,
        max_value_size: int = DEFAULT_MAX_VALUE_SIZE,
    ):
        if max_key_size <= 0 or max_value_size <= 0:
            raise ValueError("Storage size limits must be positive")
        self._max_key_size = max_key_size
        self._max_value_size = max_value_size
        self._entries: dict[bytes, bytes] = {}

    @property
    def max_key_size(self) -> int:
        return self._max_key_size

    @property
    def max_value_size(self) -> int:
        return self._max_value_size

    def _encode_key_checked(self, account: AccountId) -> bytes:
        key = encode_key(account)
        if len(key) > self._max_key_size:
            raise StorageSizeError(
                f"Encoded key of {len(key)} bytes exceeds {self._max_key_size}"
            )
        return key

    def _encode_value_checked(self, block_number: int) -> bytes:
        value = encode_value(block_number)
        if len(value) > self._max_value_size:
            raise StorageSizeError(
                f"Encoded value of {len(value)} bytes exceeds {self._max_value_size}"
            )
        return value

    def try_get(self, account: AccountId) -> int | None:
        """Look up an account's block height.

        Returns
        -------
        int | None
            The stored block height, or None if the account has no entry.

        Raises
        ------
        StorageSizeError
            If the key does not fit, or the stored value exceeds the buffer.
        """
        key = self._encode_key_checked(account)
        raw = self._entries.get(key)
        if raw is None:
            return None
        if len(raw) > self._max_value_size:
            raise StorageSizeError(
                f"Stored value of {len(raw)} bytes exceeds {self._max_value_size}"
            )
        return decode_value(raw)

    def get(self, account: AccountId) -> int | None:
        """Look up an account's block height, treating unreadable entries as absent."""
        try:
            return self.try_get(account)
        except StorageSizeError:
            return None

    def ensure_fits(self, account: AccountId, block_number: int) -> None:
        """Check that an entry could be written, without writing it.

        Raises
        ------
        StorageSizeError
            If the encoded key or value would not fit.
        """
        self._encode_key_checked(account)
        self._encode_value_checked(block_number)

    def try_insert(self, account: AccountId, block_number: int) -> None:
        """Write an account's block height.

        Raises
        ------
        StorageSizeError
            If the encoded key or value does not fit.
        """
        key = self._encode_key_checked(account)
        self._entries[key] = self._encode_value_checked(block_number)

    def __contains__(self, account: AccountId) -> bool:
        return encode_key(account) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def items(self) -> Iterator[tuple[AccountId, int]]:
        """Iterate decoded entries. Used for persistence only."""
        for key, value in self._entries.items():
            yield decode_key(key), decode_value(value)

    @dataclass(frozen=True)
    class Snapshot:
        data: tuple[tuple[bytes, bytes], ...]

    def snapshot(self) -> "BoundedMapping.Snapshot":
        return BoundedMapping.Snapshot(tuple(self._entries.items()))

    def restore(self, snap: "BoundedMapping.Snapshot") -> None:
        self._entries = dict(snap.data)
