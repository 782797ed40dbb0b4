"""
Input Validation - sanitization of external inputs.

Used by the CLI (and anything else accepting untrusted values) before
they reach the engine. Validators return (is_valid, error_message);
`parse_*` helpers convert and raise ValueError instead.
"""

from typing import Any, List, Optional, Sequence, Tuple

from tipvault.core.arith import MAX_UINT256
from tipvault.crypto import ADDRESS_SIZE, hex_to_bytes

# =============================================================================
# Constants
# =============================================================================

MAX_ADDRESS_SIZE = ADDRESS_SIZE
MAX_ARRAY_LENGTH = 256
MAX_STRING_LENGTH = 1024

# Token amounts and timestamps are unsigned 256-bit integers
MIN_AMOUNT = 0
MAX_AMOUNT = MAX_UINT256


# =============================================================================
# Validation Functions
# =============================================================================


def validate_bytes(
    data: Any,
    name: str,
    expected_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> Tuple[bool, str]:
    """
    Validate bytes input.

    Args:
        data: Data to validate
        name: Field name for error messages
        expected_length: Exact expected length
        max_length: Maximum allowed length

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"

    if expected_length is not None and len(data) != expected_length:
        return False, f"{name} must be {expected_length} bytes, got {len(data)}"

    if max_length is not None and len(data) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(data)}"

    return True, ""


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate a 20-byte address."""
    return validate_bytes(address, name, expected_length=MAX_ADDRESS_SIZE)


def validate_integer(
    value: Any,
    name: str,
    min_val: int = MIN_AMOUNT,
    max_val: int = MAX_AMOUNT,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.

    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        (is_valid, error_message)
    """
    # bool is an int subclass but never a valid quantity
    if not isinstance(value, int) or isinstance(value, bool):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """Validate a token amount."""
    return validate_integer(amount, name, MIN_AMOUNT, MAX_AMOUNT)


def validate_fee(fee: Any, precision: int, name: str = "fee") -> Tuple[bool, str]:
    """Validate a fee rate in basis points of `precision`."""
    return validate_integer(fee, name, 0, precision)


def validate_stake_type(stake_type: Any, stake_type_count: int) -> Tuple[bool, str]:
    """Validate a stake-type index."""
    return validate_integer(stake_type, "stake_type", 0, stake_type_count - 1)


def validate_array(
    data: Any,
    name: str,
    max_length: int = MAX_ARRAY_LENGTH,
) -> Tuple[bool, str]:
    """Validate list/tuple input length."""
    if not isinstance(data, (list, tuple)):
        return False, f"{name} must be list/tuple, got {type(data).__name__}"

    if len(data) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(data)}"

    return True, ""


def validate_hex_string(value: Any, name: str, expected_bytes: Optional[int] = None) -> Tuple[bool, str]:
    """
    Validate a hex string (with or without 0x prefix).

    Args:
        value: Value to validate
        name: Field name
        expected_bytes: Expected byte length when decoded

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(value, str):
        return False, f"{name} must be str, got {type(value).__name__}"

    if len(value) > MAX_STRING_LENGTH:
        return False, f"{name} exceeds max length {MAX_STRING_LENGTH}"

    # Remove 0x prefix if present
    hex_str = value[2:] if value.startswith(("0x", "0X")) else value

    # Must be even length
    if len(hex_str) % 2 != 0:
        return False, f"{name} has odd length, invalid hex"

    # Must be valid hex
    try:
        bytes.fromhex(hex_str)
    except ValueError:
        return False, f"{name} contains invalid hex characters"

    if expected_bytes is not None:
        actual_bytes = len(hex_str) // 2
        if actual_bytes != expected_bytes:
            return False, f"{name} must be {expected_bytes} bytes, got {actual_bytes}"

    return True, ""


# =============================================================================
# Parsers
# =============================================================================


def _require(result: Tuple[bool, str]) -> None:
    valid, err = result
    if not valid:
        raise ValueError(err)


def parse_address(value: str, name: str = "address") -> bytes:
    """Decode a hex address, raising ValueError if malformed."""
    _require(validate_hex_string(value, name, expected_bytes=MAX_ADDRESS_SIZE))
    return hex_to_bytes(value)


def parse_amount_list(value: str, name: str = "volumes") -> List[int]:
    """
    Parse a comma-separated list of non-negative integers.

    Example:
        "1000000, 5000000" -> [1000000, 5000000]
    """
    items = [item.strip() for item in value.split(",") if item.strip()]
    amounts = []
    for item in items:
        try:
            amount = int(item)
        except ValueError:
            raise ValueError(f"{name} entry {item!r} is not an integer") from None
        _require(validate_amount(amount, name))
        amounts.append(amount)
    _require(validate_array(amounts, name))
    return amounts


def ensure_all_valid(results: Sequence[Tuple[bool, str]]) -> None:
    """Raise ValueError listing every failed validation."""
    errors = [err for valid, err in results if not valid]
    if errors:
        raise ValueError("; ".join(errors))


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "validate_bytes",
    "validate_address",
    "validate_integer",
    "validate_amount",
    "validate_fee",
    "validate_stake_type",
    "validate_array",
    "validate_hex_string",
    "parse_address",
    "parse_amount_list",
    "ensure_all_valid",
    "MAX_ADDRESS_SIZE",
    "MAX_ARRAY_LENGTH",
    "MAX_AMOUNT",
]
