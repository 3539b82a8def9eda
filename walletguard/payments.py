"""
Send-payment flow.

Validation consumes allowance before submission. If the ledger then
rejects the payment the reservation is released, so a failed submission
never costs the wallet any of its daily or monthly allowance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from walletguard.guard import SpendingGuard
from walletguard.ledger import AccountNotFoundError, LedgerService, LedgerSubmissionError
from walletguard.log import get_logger
from walletguard.models import TransactionLogEntry, format_amount


logger = get_logger(__name__)


@dataclass
class PaymentResult:
    """Outcome of a send attempt."""
    success: bool
    errors: list[str] = field(default_factory=list)
    tx_hash: Optional[str] = None
    entry: Optional[TransactionLogEntry] = None

    @property
    def message(self) -> str:
        if self.success:
            return f"Transaction submitted: {self.tx_hash}"
        return "Transaction blocked: " + ", ".join(self.errors)


class PaymentFlow:
    """Validate, submit and log a payment as one sequence."""

    def __init__(self, guard: SpendingGuard, ledger: LedgerService):
        self.guard = guard
        self.ledger = ledger

    def send(
        self,
        wallet_key: str,
        recipient: str,
        amount: Any,
        signed_tx: str,
        memo: Optional[str] = None,
    ) -> PaymentResult:
        """
        Send a pre-signed payment through the spending guard.

        Args:
            wallet_key: Sending wallet.
            recipient: Destination account; must already exist on the ledger.
            amount: Amount the signed envelope transfers.
            signed_tx: Signed transaction envelope for the ledger.
            memo: Memo recorded in history.

        Returns:
            PaymentResult. Policy denials and ledger failures are reported
            here rather than raised.

        Raises:
            Exception: Anything else the ledger raises on submit is
                re-raised after the reservation is released.
        """
        try:
            self.ledger.load_account(recipient)
        except AccountNotFoundError as exc:
            return PaymentResult(success=False, errors=[str(exc)])

        result = self.guard.validate_transaction(wallet_key, amount, recipient, memo)
        if not result.is_valid:
            return PaymentResult(success=False, errors=list(result.errors))

        try:
            tx_hash = self.ledger.submit(signed_tx)
        except LedgerSubmissionError as exc:
            logger.warning(
                "Submission of %s XLM from %s failed: %s",
                format_amount(result.reservation.amount), wallet_key, exc.reason,
            )
            self.guard.release_spend(result.reservation)
            return PaymentResult(success=False, errors=[str(exc)])
        except Exception:
            logger.exception(
                "Ledger error submitting %s XLM from %s",
                format_amount(result.reservation.amount), wallet_key,
            )
            self.guard.release_spend(result.reservation)
            raise

        self.guard.settle_spend(result.reservation)
        entry = self.guard.log_transaction(wallet_key, recipient, amount, memo)
        return PaymentResult(success=True, tx_hash=tx_hash, entry=entry)
