"""
Input validation for walletguard.

Rejects malformed requests before they reach wallet state.
"""

from decimal import Decimal, InvalidOperation
from typing import Any
import re


class WalletGuardError(Exception):
    """Base error for walletguard operations."""
    pass


class ValidationError(WalletGuardError, ValueError):
    """Raised when input validation fails."""
    pass


STELLAR_ADDRESS_LENGTH = 56
_STELLAR_ADDRESS_RE = re.compile(r"^G[A-Z2-7]{55}$")


def validate_wallet_key(wallet_key: Any) -> str:
    """
    Validate a wallet public key.

    Raises:
        ValidationError: If the key is missing or not a string
    """
    if not isinstance(wallet_key, str) or not wallet_key.strip():
        raise ValidationError("Public key is required")
    return wallet_key.strip()


def validate_amount(amount: Any, field: str = "Amount") -> Decimal:
    """
    Validate and coerce a monetary amount.

    Args:
        amount: Decimal, int, or numeric string. Floats go through ``str``
            so 0.1 stays 0.1.
        field: Name used in error messages

    Returns:
        The amount as a Decimal

    Raises:
        ValidationError: If amount is missing, not numeric, or not positive
    """
    if amount is None or isinstance(amount, bool):
        raise ValidationError(f"{field} is required")

    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field} must be a number, got {amount!r}") from exc

    if not value.is_finite():
        raise ValidationError(f"{field} must be finite, got {amount!r}")

    if value <= 0:
        raise ValidationError(f"{field} must be positive, got {value}")

    return value


def validate_required(value: Any, message: str) -> str:
    """Require a non-empty string."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message)
    return value.strip()


def is_valid_stellar_address(address: str) -> bool:
    """Check the shape of a Stellar account ID (G..., 56 base32 chars)."""
    return (
        isinstance(address, str)
        and len(address) == STELLAR_ADDRESS_LENGTH
        and bool(_STELLAR_ADDRESS_RE.match(address))
    )


def validate_stellar_address(address: str) -> str:
    """
    Validate a Stellar account ID.

    Raises:
        ValidationError: If the address is malformed
    """
    if not is_valid_stellar_address(address):
        raise ValidationError("Invalid Stellar address format")
    return address
