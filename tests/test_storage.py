"""Tests for bounded storage."""

import pytest
from conftest import ALICE, BOB

from spigot.host.storage import (
    BoundedMapping,
    StorageSizeError,
    decode_key,
    decode_value,
    encode_key,
    encode_value,
)


class TestEncoding:
    """Tests for key and value encoding."""

    def test_key_is_raw_address_bytes(self):
        """Keys encode to the 20 address bytes."""
        key = encode_key(ALICE)
        assert key == bytes.fromhex("22" * 20)
        assert decode_key(key) == ALICE

    def test_value_is_little_endian_u32(self):
        """Values encode as 4-byte little-endian integers."""
        assert encode_value(1) == b"\x01\x00\x00\x00"
        assert decode_value(b"\x00\x01\x00\x00") == 256

    def test_value_out_of_domain(self):
        """Values outside u32 cannot be encoded."""
        with pytest.raises(ValueError):
            encode_value(2**32)


class TestBoundedMapping:
    """Tests for BoundedMapping."""

    def test_absent_key(self):
        """Unknown accounts have no entry."""
        storage = BoundedMapping()

        assert storage.try_get(ALICE) is None
        assert storage.get(ALICE) is None
        assert ALICE not in storage

    def test_insert_and_get(self):
        """Inserted values can be read back, keyed per account."""
        storage = BoundedMapping()
        storage.try_insert(ALICE, 12)

        assert storage.try_get(ALICE) == 12
        assert storage.try_get(BOB) is None
        assert ALICE in storage
        assert len(storage) == 1

    def test_insert_overwrites(self):
        """Inserting again replaces the previous value."""
        storage = BoundedMapping()
        storage.try_insert(ALICE, 1)
        storage.try_insert(ALICE, 2)

        assert storage.try_get(ALICE) == 2
        assert len(storage) == 1

    def test_lowercase_key_matches(self):
        """Keys are matched regardless of address casing."""
        storage = BoundedMapping()
        storage.try_insert("0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed", 3)

        assert storage.try_get("0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed") == 3

    def test_key_too_large(self):
        """Keys larger than the buffer fail on every access path."""
        storage = BoundedMapping(max_key_size=8)

        with pytest.raises(StorageSizeError):
            storage.try_get(ALICE)
        with pytest.raises(StorageSizeError):
            storage.try_insert(ALICE, 1)
        with pytest.raises(StorageSizeError):
            storage.ensure_fits(ALICE, 1)
        assert storage.get(ALICE) is None
        assert len(storage) == 0

    def test_value_too_large(self):
        """Values larger than the buffer cannot be written."""
        storage = BoundedMapping(max_value_size=2)

        with pytest.raises(StorageSizeError):
            storage.try_insert(ALICE, 1)
        assert storage.try_get(ALICE) is None

    def test_ensure_fits_does_not_write(self):
        """ensure_fits only checks."""
        storage = BoundedMapping()
        storage.ensure_fits(ALICE, 5)

        assert storage.try_get(ALICE) is None

    def test_invalid_limits(self):
        """Limits must be positive."""
        with pytest.raises(ValueError):
            BoundedMapping(max_key_size=0)

    def test_items(self):
        """items yields decoded entries."""
        storage = BoundedMapping()
        storage.try_insert(ALICE, 4)
        storage.try_insert(BOB, 9)

        assert dict(storage.items()) == {ALICE: 4, BOB: 9}

    def test_snapshot_restore(self):
        """restore returns the mapping to the snapshot."""
        storage = BoundedMapping()
        storage.try_insert(ALICE, 1)
        snap = storage.snapshot()

        storage.try_insert(ALICE, 2)
        storage.try_insert(BOB, 3)
        storage.restore(snap)

        assert storage.try_get(ALICE) == 1
        assert storage.try_get(BOB) is None
