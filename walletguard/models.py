"""Shared data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
import uuid


DEFAULT_DAILY_LIMIT = Decimal("1000")
DEFAULT_MONTHLY_LIMIT = Decimal("10000")
DEFAULT_MAX_TX_AMOUNT = Decimal("1000")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_amount(amount: Decimal) -> str:
    """Render an amount without exponent or trailing zeros (1000, 12.5)."""
    normalized = amount.normalize()
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal(1)))
    return format(normalized, "f")


@dataclass
class SpendingRecord:
    """Spend counters, limits and freeze flag for one wallet."""
    wallet_key: str
    daily_limit: Decimal
    monthly_limit: Decimal
    daily_spent: Decimal
    monthly_spent: Decimal
    day_start: datetime
    month_start: datetime
    is_frozen: bool = False

    @classmethod
    def new(
        cls,
        wallet_key: str,
        now: datetime,
        daily_limit: Decimal = DEFAULT_DAILY_LIMIT,
        monthly_limit: Decimal = DEFAULT_MONTHLY_LIMIT,
    ) -> "SpendingRecord":
        return cls(
            wallet_key=wallet_key,
            daily_limit=daily_limit,
            monthly_limit=monthly_limit,
            daily_spent=Decimal("0"),
            monthly_spent=Decimal("0"),
            day_start=now,
            month_start=now,
        )

    def to_info(self) -> dict:
        return {
            "dailyLimit": self.daily_limit,
            "dailySpent": self.daily_spent,
            "monthlyLimit": self.monthly_limit,
            "monthlySpent": self.monthly_spent,
            "isFrozen": self.is_frozen,
        }


@dataclass
class WalletSettings:
    """Wallet-level preferences read by the validation engine."""
    wallet_key: str
    auto_approve_trusted: bool = False
    require_memo: bool = False
    max_tx_amount: Decimal = DEFAULT_MAX_TX_AMOUNT
    emergency_contact: str = ""

    def __post_init__(self):
        if not self.emergency_contact:
            self.emergency_contact = self.wallet_key

    def to_dict(self) -> dict:
        return {
            "autoApproveTrusted": self.auto_approve_trusted,
            "requireMemo": self.require_memo,
            "maxTxAmount": self.max_tx_amount,
            "emergencyContact": self.emergency_contact,
        }


@dataclass
class Contact:
    """A named recipient in a wallet's address book."""
    wallet_key: str
    name: str
    address: str
    is_trusted: bool = False

    @property
    def key(self) -> str:
        return self.name.lower()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "address": self.address,
            "isTrusted": self.is_trusted,
        }


@dataclass
class TransactionLogEntry:
    """A completed outgoing transfer."""
    from_key: str
    to: str
    amount: Decimal
    memo: str = ""
    type: str = "send"
    timestamp: datetime = field(default_factory=utcnow)
    entry_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        return {
            "from": self.from_key,
            "to": self.to,
            "amount": self.amount,
            "timestamp": self.timestamp.isoformat(),
            "type": self.type,
            "memo": self.memo,
        }


@dataclass(frozen=True)
class SpendReservation:
    """Allowance consumed by an approved validation.

    Carries the window starts in effect at approval so a later release only
    touches counters that have not rolled over since. Storage tracks open
    reservations by ``reservation_id`` so each one is released at most once.
    """
    wallet_key: str
    amount: Decimal
    day_start: datetime
    month_start: datetime
    reservation_id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass
class ValidationResult:
    """Outcome of a validate_transaction call."""
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    reservation: Optional[SpendReservation] = None
