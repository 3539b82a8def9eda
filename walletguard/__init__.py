"""
walletguard - Spending limits for Stellar wallets.

Validate before you send:
    from walletguard import SpendingGuard

    guard = SpendingGuard()
    result = guard.validate_transaction("GABC...", 250, recipient="GXYZ...")
    print(result.is_valid)  # True
    print(result.errors)    # []

Owner controls:
    guard.set_daily_limit("GABC...", 500)
    guard.freeze_wallet("GABC...")
    guard.reset_spending_limits("GABC...")

Request-style dispatch (what the HTTP API uses):
    from walletguard import handle

    handle(guard, {"action": "get_spending_info", "walletKey": "GABC..."})

Persistent state:
    from walletguard import SQLiteStorage

    guard = SpendingGuard(storage=SQLiteStorage("walletguard.db"))
"""

from walletguard.actions import Command, dispatch, handle, parse_command, supported_actions
from walletguard.config import get_defaults, set_defaults, reset_defaults
from walletguard.guard import (
    ContactNotFoundError,
    SpendingGuard,
    UnauthorizedEmergencyContactError,
)
from walletguard.ledger import (
    AccountNotFoundError,
    LedgerError,
    LedgerService,
    LedgerSubmissionError,
)
from walletguard.models import (
    Contact,
    SpendingRecord,
    SpendReservation,
    TransactionLogEntry,
    ValidationResult,
    WalletSettings,
)
from walletguard.payments import PaymentFlow, PaymentResult
from walletguard.storage import InMemoryStorage, SQLiteStorage, StorageBackend
from walletguard.validation import ValidationError, WalletGuardError
from walletguard.windows import apply_window_reset


__version__ = "0.1.0"
__all__ = [
    # Guard
    "SpendingGuard",
    "apply_window_reset",
    # Dispatch
    "Command",
    "dispatch",
    "handle",
    "parse_command",
    "supported_actions",
    # Payments
    "PaymentFlow",
    "PaymentResult",
    "LedgerService",
    # Config
    "get_defaults",
    "set_defaults",
    "reset_defaults",
    # Models
    "SpendingRecord",
    "WalletSettings",
    "Contact",
    "TransactionLogEntry",
    "SpendReservation",
    "ValidationResult",
    # Storage
    "StorageBackend",
    "InMemoryStorage",
    "SQLiteStorage",
    # Errors
    "WalletGuardError",
    "ValidationError",
    "ContactNotFoundError",
    "UnauthorizedEmergencyContactError",
    "LedgerError",
    "AccountNotFoundError",
    "LedgerSubmissionError",
]
