"""
Error taxonomy for TipVault.

Every rejection raised by the engine or its collaborators is a
TipVaultError. Four families mirror the ways a call can be refused:

- InitializationError: bad or repeated account setup
- AuthorizationError: caller is not allowed to perform the call
- ValidationError: arguments fail a precondition before any transfer
- StateError: the account or stake is in the wrong state or time window

Arithmetic faults (checked subtraction/addition) form a fifth family.
All rejections are total: the surrounding Runtime.atomic() scope rolls
back every effect of the rejected call.
"""

from typing import Any, Dict, Optional


class TipVaultError(Exception):
    """
    Base exception for all TipVault errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Optional additional context
    """

    error_code: str = "TIPVAULT_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a serializable error record."""
        result: Dict[str, Any] = {"error": self.error_code, "message": self.message}
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Initialization
# =============================================================================


class InitializationError(TipVaultError):
    error_code = "INITIALIZATION_ERROR"


class ZeroAddressError(InitializationError, ValueError):
    error_code = "ZERO_ADDRESS"

    def __init__(self, field: str) -> None:
        super().__init__(f"{field} must not be the zero address", {"field": field})


class FeeTooHighError(InitializationError, ValueError):
    error_code = "FEE_TOO_HIGH"

    def __init__(self, fee: int, precision: int) -> None:
        super().__init__(
            f"Fee {fee} exceeds precision {precision}",
            {"fee": fee, "precision": precision},
        )


class AlreadyInitializedError(InitializationError):
    error_code = "ALREADY_INITIALIZED"


class NotInitializedError(InitializationError):
    error_code = "NOT_INITIALIZED"


# =============================================================================
# Authorization
# =============================================================================


class AuthorizationError(TipVaultError):
    error_code = "UNAUTHORIZED"


class NotMerchantOwnerError(AuthorizationError):
    error_code = "NOT_MERCHANT_OWNER"


class NotPlatformError(AuthorizationError):
    error_code = "NOT_PLATFORM"


class NotStakerError(AuthorizationError):
    error_code = "NOT_STAKER"


class NotAuthorizedError(AuthorizationError):
    error_code = "NOT_AUTHORIZED"


# =============================================================================
# Validation
# =============================================================================


class ValidationError(TipVaultError, ValueError):
    error_code = "VALIDATION_ERROR"


class ZeroAmountError(ValidationError):
    error_code = "ZERO_AMOUNT"

    def __init__(self, message: str = "Amount must be greater than zero") -> None:
        super().__init__(message)


class StakeBelowMinimumError(ValidationError):
    error_code = "STAKE_BELOW_MINIMUM"

    def __init__(self, amount: int, minimum: int) -> None:
        super().__init__(
            f"Stake {amount} below premium threshold {minimum}",
            {"amount": amount, "minimum": minimum},
        )


class InvalidStakeTypeError(ValidationError):
    error_code = "INVALID_STAKE_TYPE"

    def __init__(self, stake_type: int, reason: str = "not configured") -> None:
        super().__init__(
            f"Invalid stake type {stake_type}: {reason}",
            {"stake_type": stake_type},
        )


class InsufficientBalanceError(ValidationError):
    error_code = "INSUFFICIENT_BALANCE"

    def __init__(self, available: int, requested: int) -> None:
        super().__init__(
            f"Insufficient balance: {available} < {requested}",
            {"available": available, "requested": requested},
        )


class InsufficientAllowanceError(ValidationError):
    error_code = "INSUFFICIENT_ALLOWANCE"

    def __init__(self, available: int, requested: int) -> None:
        super().__init__(
            f"Insufficient allowance: {available} < {requested}",
            {"available": available, "requested": requested},
        )


class InsufficientRewardReserveError(ValidationError):
    error_code = "INSUFFICIENT_REWARD_RESERVE"

    def __init__(self, available: int, requested: int) -> None:
        super().__init__(
            f"Reward reserve too small: {available} < {requested}",
            {"available": available, "requested": requested},
        )


class AccountExistsError(ValidationError):
    error_code = "ACCOUNT_EXISTS"


class AccountNotFoundError(ValidationError):
    error_code = "ACCOUNT_NOT_FOUND"


# =============================================================================
# State / Timing
# =============================================================================


class StateError(TipVaultError):
    error_code = "STATE_ERROR"


class NoActiveStakeError(StateError):
    error_code = "NO_ACTIVE_STAKE"


class StakeAlreadyActiveError(StateError):
    error_code = "STAKE_ALREADY_ACTIVE"


class LockNotExpiredError(StateError):
    error_code = "LOCK_NOT_EXPIRED"


class StakeNotFoundError(StateError):
    error_code = "STAKE_NOT_FOUND"

    def __init__(self, stake_id: int) -> None:
        super().__init__(f"Stake {stake_id} not found", {"stake_id": stake_id})


class StakeInactiveError(StateError):
    error_code = "STAKE_INACTIVE"

    def __init__(self, stake_id: int) -> None:
        super().__init__(f"Stake {stake_id} is not active", {"stake_id": stake_id})


class StakeLockedError(StateError):
    error_code = "STAKE_LOCKED"


class UnbondingNotOverError(StateError):
    error_code = "UNBONDING_NOT_OVER"


class StakeAlreadyUnlockedError(StateError):
    error_code = "STAKE_ALREADY_UNLOCKED"


class AlreadyUnbondingError(StateError):
    error_code = "ALREADY_UNBONDING"


class RewardAlreadyClaimedError(StateError):
    error_code = "REWARD_ALREADY_CLAIMED"


# =============================================================================
# Arithmetic
# =============================================================================


class ArithmeticFault(TipVaultError, ArithmeticError):
    error_code = "ARITHMETIC_FAULT"


class ArithmeticUnderflowError(ArithmeticFault):
    error_code = "UNDERFLOW"


class ArithmeticOverflowError(ArithmeticFault):
    error_code = "OVERFLOW"


__all__ = [name for name in dir() if name.endswith(("Error", "Fault"))]
