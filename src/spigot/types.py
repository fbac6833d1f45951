"""Value domains and ownership model for the faucet.

Domains mirror the contract host:
- BlockHeight: unsigned 32-bit block number
- Amount: unsigned 128-bit balance
- AccountId: 20-byte address as an EIP-55 checksummed string
"""

from dataclasses import dataclass

from web3 import Web3

BLOCK_NUMBER_MAX = 2**32 - 1
BALANCE_MAX = 2**128 - 1

ACCOUNT_ID_SIZE = 20

AccountId = str


def saturating_add(a: int, b: int, maximum: int) -> int:
    """Add two unsigned values, clamping at ``maximum`` instead of wrapping."""
    return min(a + b, maximum)


def _ensure_unsigned(name: str, value: int, maximum: int) -> int:
    # bool is an int subclass and never a valid height or amount
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or value > maximum:
        raise ValueError(f"{name} out of range: {value} (expected 0..{maximum})")
    return value


def ensure_block_number(value: int, name: str = "block number") -> int:
    """Validate a value in the BlockHeight domain."""
    return _ensure_unsigned(name, value, BLOCK_NUMBER_MAX)


def ensure_balance(value: int, name: str = "amount") -> int:
    """Validate a value in the Amount domain."""
    return _ensure_unsigned(name, value, BALANCE_MAX)


def to_account_id(value: str) -> AccountId:
    """Normalize an address to a checksummed AccountId.

    Parameters
    ----------
    value : str
        Hex address, with or without checksum casing.

    Returns
    -------
    AccountId
        The checksummed address.

    Raises
    ------
    ValueError
        If the value is not a well-formed 20-byte address.
    """
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ValueError(f"Invalid account id: {value!r}")
    return Web3.to_checksum_address(value)


@dataclass(frozen=True)
class Owned:
    """Ownership held by a single account."""

    account: AccountId

    def transfer(self, new_owner: AccountId) -> "Owned":
        return Owned(new_owner)

    def renounce(self) -> "Ownerless":
        """Give up ownership. There is no way back from ``Ownerless``."""
        return Ownerless()


@dataclass(frozen=True)
class Ownerless:
    """Ownership permanently renounced."""


Ownership = Owned | Ownerless
