"""Faucet error taxonomy.

Every guard failure surfaces as one of these exceptions. The hierarchy is
flat: each subclass maps to exactly one ``FaucetErrorKind``.
"""

from enum import Enum


class FaucetErrorKind(str, Enum):
    """Kind of faucet failure, as reported to callers."""

    IN_COOL_DOWN = "InCoolDown"
    NOT_ACTIVE = "NotActive"
    NOT_ENOUGH_FUNDS = "NotEnoughFunds"
    NOT_OWNER = "NotOwner"
    VALUE_TOO_LARGE = "ValueTooLarge"


class FaucetError(Exception):
    """Base class for faucet call failures."""

    kind: FaucetErrorKind
    recoverable: bool = True
    default_message: str = "Faucet call failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InCoolDownError(FaucetError):
    """Caller's last drip plus cooldown has not elapsed yet."""

    kind = FaucetErrorKind.IN_COOL_DOWN
    default_message = "Caller is in cooldown"


class NotActiveError(FaucetError):
    kind = FaucetErrorKind.NOT_ACTIVE
    default_message = "Faucet is not active"


class NotEnoughFundsError(FaucetError):
    kind = FaucetErrorKind.NOT_ENOUGH_FUNDS
    default_message = "Faucet balance too low to drip"


class NotOwnerError(FaucetError):
    """Caller is not the owner, or ownership has been renounced."""

    kind = FaucetErrorKind.NOT_OWNER
    recoverable = False
    default_message = "Caller is not the faucet owner"


class ValueTooLargeError(FaucetError):
    """Storage could not encode or fit the caller's record.

    This reflects a host storage limit, not a caller mistake.
    """

    kind = FaucetErrorKind.VALUE_TOO_LARGE
    recoverable = False
    default_message = "Value too large for storage"
