"""
Spending guard for walletguard.

Gates outgoing payments against per-wallet daily and monthly limits,
a per-transaction ceiling and a freeze flag, and exposes the owner-only
administrative operations that manage that state.

Example:
    ```python
    guard = SpendingGuard()

    guard.set_daily_limit("GABC...", 250)
    result = guard.validate_transaction("GABC...", 100, recipient="GXYZ...")
    if result.is_valid:
        submit_payment(...)
    else:
        show(result.errors)
    ```
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from walletguard.config import get_defaults, to_limit
from walletguard.log import get_logger
from walletguard.models import (
    Contact,
    SpendingRecord,
    SpendReservation,
    TransactionLogEntry,
    ValidationResult,
    WalletSettings,
    format_amount,
    utcnow,
)
from walletguard.storage import InMemoryStorage, StorageBackend
from walletguard.validation import (
    ValidationError,
    WalletGuardError,
    validate_amount,
    validate_required,
    validate_stellar_address,
    validate_wallet_key,
)
from walletguard.windows import apply_window_reset


logger = get_logger(__name__)


class ContactNotFoundError(WalletGuardError):
    """Raised when a named contact does not exist for the wallet."""
    def __init__(self, wallet_key: str, name: str):
        self.wallet_key = wallet_key
        self.name = name
        super().__init__(f'Contact "{name}" not found')


class UnauthorizedEmergencyContactError(WalletGuardError):
    """Raised when an emergency freeze comes from the wrong contact."""
    def __init__(self, wallet_key: str, contact: str):
        self.wallet_key = wallet_key
        self.contact = contact
        super().__init__("Unauthorized emergency contact")


class SpendingGuard:
    """
    Validation engine and administrative operations over a storage backend.

    Wallet state is created lazily on first access. Every operation that
    touches a wallet's spend counters runs inside ``storage.locked()`` for
    that wallet and applies the rolling-window reset first.
    """

    def __init__(
        self,
        storage: Optional[StorageBackend] = None,
        defaults: Optional[Dict[str, Any]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        strict_addresses: bool = False,
    ):
        """
        Args:
            storage: Storage backend. Defaults to InMemoryStorage.
            defaults: Limits for new wallets (daily_limit, monthly_limit,
                max_tx_amount). Defaults to ``config.get_defaults()``.
                Each value must be a positive number.
            clock: Returns the current time. Defaults to UTC now.
            strict_addresses: Reject contacts whose address is not a
                well-formed Stellar account ID.
        """
        self._storage = storage or InMemoryStorage()
        resolved = get_defaults()
        if defaults:
            resolved.update({k: to_limit(k, v) for k, v in defaults.items()})
        self._defaults = resolved
        self._clock = clock or utcnow
        self._strict_addresses = strict_addresses

    @property
    def storage(self) -> StorageBackend:
        return self._storage

    def now(self) -> datetime:
        return self._clock()

    # =========================================================================
    # Loading
    # =========================================================================

    def _load_record(self, wallet_key: str, now: datetime) -> SpendingRecord:
        record = self._storage.get_record(wallet_key)
        if record is None:
            record = SpendingRecord.new(
                wallet_key,
                now,
                daily_limit=self._defaults["daily_limit"],
                monthly_limit=self._defaults["monthly_limit"],
            )
            self._storage.put_record(record)
        return record

    def _load_settings(self, wallet_key: str) -> WalletSettings:
        settings = self._storage.get_settings(wallet_key)
        if settings is None:
            settings = WalletSettings(
                wallet_key=wallet_key,
                max_tx_amount=self._defaults["max_tx_amount"],
            )
            self._storage.put_settings(settings)
        return settings

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_transaction(
        self,
        wallet_key: str,
        amount: Any,
        recipient: str,
        memo: Optional[str] = None,
    ) -> ValidationResult:
        """
        Decide whether a transfer may proceed and consume allowance if so.

        Every rule is checked and every violation reported. On approval
        both counters are incremented together; on denial neither changes.
        The window-reset record is persisted either way.

        Args:
            wallet_key: Sending wallet.
            amount: Positive transfer amount.
            recipient: Destination account.
            memo: Optional memo (not part of the decision).

        Returns:
            ValidationResult with the reservation set when approved.

        Raises:
            ValidationError: On missing wallet key/recipient or a
                non-positive amount.
        """
        wallet_key = validate_wallet_key(wallet_key)
        amount = validate_amount(amount)
        validate_required(recipient, "Recipient and amount are required")

        with self._storage.locked(wallet_key):
            now = self._clock()
            record = apply_window_reset(self._load_record(wallet_key, now), now)
            settings = self._load_settings(wallet_key)

            errors: List[str] = []

            if record.is_frozen:
                errors.append("Wallet is frozen")

            if amount > settings.max_tx_amount:
                errors.append(
                    "Amount exceeds max transaction limit of "
                    f"{format_amount(settings.max_tx_amount)} XLM"
                )

            if record.daily_spent + amount > record.daily_limit:
                errors.append(
                    f"Amount {format_amount(amount)} XLM exceeds daily spending limit. "
                    f"Daily spent: {format_amount(record.daily_spent)}/"
                    f"{format_amount(record.daily_limit)} XLM"
                )

            if record.monthly_spent + amount > record.monthly_limit:
                errors.append(
                    f"Amount {format_amount(amount)} XLM exceeds monthly spending limit. "
                    f"Monthly spent: {format_amount(record.monthly_spent)}/"
                    f"{format_amount(record.monthly_limit)} XLM"
                )

            self._storage.prune_reservations(wallet_key, record.day_start, record.month_start)

            is_valid = not errors
            reservation = None

            if is_valid:
                record = replace(
                    record,
                    daily_spent=record.daily_spent + amount,
                    monthly_spent=record.monthly_spent + amount,
                )
                reservation = SpendReservation(
                    wallet_key=wallet_key,
                    amount=amount,
                    day_start=record.day_start,
                    month_start=record.month_start,
                )
                self._storage.add_reservation(reservation)

            self._storage.put_record(record)

        if not is_valid:
            logger.info(
                "Denied %s XLM from %s to %s: %s",
                format_amount(amount), wallet_key, recipient, "; ".join(errors),
            )

        return ValidationResult(is_valid=is_valid, errors=errors, reservation=reservation)

    def release_spend(self, reservation: SpendReservation) -> SpendingRecord:
        """
        Give back allowance consumed by an approved validation.

        Used when the ledger rejects a payment after validation. A counter
        whose window has rolled over since the approval is left alone.
        Releasing a reservation that was already released or settled is a
        no-op.
        """
        with self._storage.locked(reservation.wallet_key):
            now = self._clock()
            record = apply_window_reset(
                self._load_record(reservation.wallet_key, now), now
            )
            if not self._storage.take_reservation(
                reservation.wallet_key, reservation.reservation_id
            ):
                logger.debug(
                    "Reservation %s for %s is not open, nothing released",
                    reservation.reservation_id, reservation.wallet_key,
                )
                return record

            zero = Decimal("0")

            if record.day_start == reservation.day_start:
                record = replace(
                    record, daily_spent=max(record.daily_spent - reservation.amount, zero)
                )
            if record.month_start == reservation.month_start:
                record = replace(
                    record, monthly_spent=max(record.monthly_spent - reservation.amount, zero)
                )

            self._storage.put_record(record)

        logger.info(
            "Released %s XLM for %s",
            format_amount(reservation.amount), reservation.wallet_key,
        )
        return record

    def settle_spend(self, reservation: SpendReservation) -> bool:
        """Close a reservation whose payment went through; it can no longer be released."""
        with self._storage.locked(reservation.wallet_key):
            return self._storage.take_reservation(
                reservation.wallet_key, reservation.reservation_id
            )

    # =========================================================================
    # Limits and freeze
    # =========================================================================

    def set_daily_limit(self, wallet_key: str, limit: Any) -> SpendingRecord:
        """Set the daily limit. Spend above the new limit is clamped to it."""
        wallet_key = validate_wallet_key(wallet_key)
        limit = validate_amount(limit, "Daily limit")

        with self._storage.locked(wallet_key):
            now = self._clock()
            record = apply_window_reset(self._load_record(wallet_key, now), now)
            record = replace(
                record,
                daily_limit=limit,
                daily_spent=min(record.daily_spent, limit),
            )
            return self._storage.put_record(record)

    def set_monthly_limit(self, wallet_key: str, limit: Any) -> SpendingRecord:
        """Set the monthly limit. Spend above the new limit is clamped to it."""
        wallet_key = validate_wallet_key(wallet_key)
        limit = validate_amount(limit, "Monthly limit")

        with self._storage.locked(wallet_key):
            now = self._clock()
            record = apply_window_reset(self._load_record(wallet_key, now), now)
            record = replace(
                record,
                monthly_limit=limit,
                monthly_spent=min(record.monthly_spent, limit),
            )
            return self._storage.put_record(record)

    def _set_frozen(self, wallet_key: str, frozen: bool) -> SpendingRecord:
        with self._storage.locked(wallet_key):
            now = self._clock()
            record = replace(self._load_record(wallet_key, now), is_frozen=frozen)
            return self._storage.put_record(record)

    def freeze_wallet(self, wallet_key: str) -> SpendingRecord:
        wallet_key = validate_wallet_key(wallet_key)
        record = self._set_frozen(wallet_key, True)
        logger.info("Wallet %s frozen", wallet_key)
        return record

    def unfreeze_wallet(self, wallet_key: str) -> SpendingRecord:
        wallet_key = validate_wallet_key(wallet_key)
        record = self._set_frozen(wallet_key, False)
        logger.info("Wallet %s unfrozen", wallet_key)
        return record

    def emergency_freeze(self, wallet_key: str, emergency_contact: str) -> SpendingRecord:
        """
        Freeze on behalf of the wallet's emergency contact.

        There is no matching unfreeze; only the owner can unfreeze.

        Raises:
            UnauthorizedEmergencyContactError: If the contact does not match
                the wallet's configured emergency contact.
        """
        wallet_key = validate_wallet_key(wallet_key)
        emergency_contact = validate_required(
            emergency_contact, "Emergency contact is required"
        )

        with self._storage.locked(wallet_key):
            settings = self._load_settings(wallet_key)
            if settings.emergency_contact != emergency_contact:
                logger.warning(
                    "Rejected emergency freeze of %s by %s", wallet_key, emergency_contact
                )
                raise UnauthorizedEmergencyContactError(wallet_key, emergency_contact)
            record = self._set_frozen(wallet_key, True)

        logger.info("Wallet %s frozen by emergency contact", wallet_key)
        return record

    def reset_spending_limits(self, wallet_key: str) -> SpendingRecord:
        """Zero both counters and restart both windows. Limits are kept."""
        wallet_key = validate_wallet_key(wallet_key)

        with self._storage.locked(wallet_key):
            now = self._clock()
            record = apply_window_reset(self._load_record(wallet_key, now), now)
            record = replace(
                record,
                daily_spent=Decimal("0"),
                monthly_spent=Decimal("0"),
                day_start=max(record.day_start, now),
                month_start=max(record.month_start, now),
            )
            self._storage.put_record(record)

        logger.info("Spending counters reset for %s", wallet_key)
        return record

    def get_spending_info(self, wallet_key: str) -> SpendingRecord:
        """Current record with window resets applied. Nothing is written back."""
        wallet_key = validate_wallet_key(wallet_key)

        with self._storage.locked(wallet_key):
            now = self._clock()
            return apply_window_reset(self._load_record(wallet_key, now), now)

    # =========================================================================
    # Settings
    # =========================================================================

    def get_wallet_settings(self, wallet_key: str) -> WalletSettings:
        wallet_key = validate_wallet_key(wallet_key)
        with self._storage.locked(wallet_key):
            return self._load_settings(wallet_key)

    def set_wallet_settings(
        self,
        wallet_key: str,
        auto_approve_trusted: bool = False,
        require_memo: bool = False,
        max_tx_amount: Any = None,
        emergency_contact: Optional[str] = None,
    ) -> WalletSettings:
        """
        Replace the wallet's settings wholesale.

        Omitted values fall back to defaults; an empty emergency contact
        means the wallet itself.
        """
        wallet_key = validate_wallet_key(wallet_key)
        if max_tx_amount is None:
            max_tx_amount = self._defaults["max_tx_amount"]
        else:
            max_tx_amount = validate_amount(max_tx_amount, "Max transaction amount")

        settings = WalletSettings(
            wallet_key=wallet_key,
            auto_approve_trusted=bool(auto_approve_trusted),
            require_memo=bool(require_memo),
            max_tx_amount=max_tx_amount,
            emergency_contact=(emergency_contact or "").strip(),
        )

        with self._storage.locked(wallet_key):
            return self._storage.put_settings(settings)

    # =========================================================================
    # Contacts
    # =========================================================================

    def add_contact(
        self,
        wallet_key: str,
        name: str,
        address: str,
        is_trusted: bool = False,
    ) -> Contact:
        """Add or replace a contact. Names are matched case-insensitively."""
        wallet_key = validate_wallet_key(wallet_key)
        message = "Contact name and address are required"
        name = validate_required(name, message)
        address = validate_required(address, message)
        if self._strict_addresses:
            validate_stellar_address(address)

        contact = Contact(
            wallet_key=wallet_key,
            name=name,
            address=address,
            is_trusted=bool(is_trusted),
        )
        with self._storage.locked(wallet_key):
            return self._storage.put_contact(contact)

    def get_contact(self, wallet_key: str, name: str) -> Contact:
        """
        Raises:
            ContactNotFoundError: If no contact has that name.
        """
        wallet_key = validate_wallet_key(wallet_key)
        name = validate_required(name, "Contact name is required")
        contact = self._storage.get_contact(wallet_key, name)
        if contact is None:
            raise ContactNotFoundError(wallet_key, name)
        return contact

    def set_contact_trusted(
        self,
        wallet_key: str,
        name: str,
        is_trusted: bool = True,
    ) -> Contact:
        """
        Raises:
            ContactNotFoundError: If no contact has that name.
        """
        wallet_key = validate_wallet_key(wallet_key)
        name = validate_required(name, "Contact name is required")

        with self._storage.locked(wallet_key):
            contact = self._storage.get_contact(wallet_key, name)
            if contact is None:
                raise ContactNotFoundError(wallet_key, name)
            contact = replace(contact, is_trusted=bool(is_trusted))
            return self._storage.put_contact(contact)

    def remove_contact(self, wallet_key: str, name: str) -> bool:
        """Remove a contact. Returns True if it existed."""
        wallet_key = validate_wallet_key(wallet_key)
        name = validate_required(name, "Contact name is required")
        with self._storage.locked(wallet_key):
            return self._storage.delete_contact(wallet_key, name)

    def list_contacts(self, wallet_key: str) -> List[Contact]:
        wallet_key = validate_wallet_key(wallet_key)
        with self._storage.locked(wallet_key):
            return self._storage.list_contacts(wallet_key)

    # =========================================================================
    # Transaction log and analytics
    # =========================================================================

    def log_transaction(
        self,
        wallet_key: str,
        to: str,
        amount: Any,
        memo: Optional[str] = None,
    ) -> TransactionLogEntry:
        """
        Record a confirmed transfer in the wallet's history.

        This does not touch spend counters; those were consumed at
        validation time.
        """
        wallet_key = validate_wallet_key(wallet_key)
        to = validate_required(to, "Recipient and amount are required")
        if amount is None:
            raise ValidationError("Recipient and amount are required")
        amount = validate_amount(amount)

        entry = TransactionLogEntry(
            from_key=wallet_key,
            to=to,
            amount=amount,
            memo=memo or "",
            timestamp=self._clock(),
        )
        with self._storage.locked(wallet_key):
            return self._storage.add_transaction(entry)

    def get_transaction_history(
        self,
        wallet_key: str,
        limit: int = 10,
    ) -> List[TransactionLogEntry]:
        """Most recent ``limit`` transfers, oldest first."""
        wallet_key = validate_wallet_key(wallet_key)
        if limit <= 0:
            raise ValidationError(f"limit must be positive, got {limit}")
        return self._storage.list_transactions(wallet_key)[-limit:]

    def get_spending_analytics(self, wallet_key: str) -> Dict[str, Any]:
        wallet_key = validate_wallet_key(wallet_key)

        with self._storage.locked(wallet_key):
            now = self._clock()
            record = apply_window_reset(self._load_record(wallet_key, now), now)
            total = self._storage.count_transactions(wallet_key)

        return {
            "dailySpent": record.daily_spent,
            "monthlySpent": record.monthly_spent,
            "totalTransactions": total,
            "dailyLimit": record.daily_limit,
            "monthlyLimit": record.monthly_limit,
        }
