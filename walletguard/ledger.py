"""Ledger service boundary.

The guard never talks to the Stellar network itself; payment flows are
handed an object implementing ``LedgerService``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Protocol

from walletguard.validation import WalletGuardError


class LedgerError(WalletGuardError):
    """Base error for ledger operations."""
    pass


class AccountNotFoundError(LedgerError):
    """The account does not exist on the network."""
    def __init__(self, public_key: str):
        self.public_key = public_key
        super().__init__(
            "The recipient account does not exist on the Stellar network. "
            "You can only send XLM to accounts that have been funded at least once."
        )


class LedgerSubmissionError(LedgerError):
    """The network rejected a signed transaction."""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to submit signed transaction: {reason}")


class LedgerService(Protocol):
    """Minimal view of the ledger used by payment flows."""

    def load_account(self, public_key: str) -> Dict[str, Decimal]:
        """Return balances by asset code. Raises AccountNotFoundError."""
        ...

    def submit(self, signed_tx: str) -> str:
        """Submit a signed envelope and return its hash. Raises LedgerSubmissionError."""
        ...
