"""
Command-line interface for walletguard.

Provides commands for:
- Inspecting a wallet's spend counters and windows
- Validating a proposed payment
- Freezing, unfreezing and resetting a wallet
- Changing daily and monthly limits
"""

import argparse
import sys
from typing import Optional

from walletguard.config import get_db_path
from walletguard.guard import SpendingGuard
from walletguard.models import format_amount
from walletguard.storage import SQLiteStorage
from walletguard.validation import WalletGuardError
from walletguard.windows import window_status


def _print_header(title: str) -> None:
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


def _format_remaining(delta) -> str:
    hours, rem = divmod(int(delta.total_seconds()), 3600)
    return f"{hours}h {rem // 60:02d}m"


def cmd_info(guard, args):
    """Show spend counters for a wallet."""
    record = guard.get_spending_info(args.wallet)
    settings = guard.get_wallet_settings(args.wallet)
    remaining = window_status(record, guard.now())

    _print_header("WALLET SPENDING")
    print(f"Wallet: {args.wallet}")
    print(f"Frozen: {'yes' if record.is_frozen else 'no'}")
    print()
    print("-" * 60)
    print("LIMITS")
    print("-" * 60)
    print(
        f"Daily:   {format_amount(record.daily_spent):>12} / "
        f"{format_amount(record.daily_limit)} XLM  "
        f"(resets in {_format_remaining(remaining['daily'])})"
    )
    print(
        f"Monthly: {format_amount(record.monthly_spent):>12} / "
        f"{format_amount(record.monthly_limit)} XLM  "
        f"(resets in {_format_remaining(remaining['monthly'])})"
    )
    print(f"Max per transaction: {format_amount(settings.max_tx_amount)} XLM")
    print(f"Emergency contact: {settings.emergency_contact}")
    print("=" * 60)


def cmd_validate(guard, args):
    """Validate (and reserve) a payment."""
    result = guard.validate_transaction(args.wallet, args.amount, args.recipient, args.memo)

    _print_header("TRANSACTION VALIDATION")
    print(f"Amount: {args.amount} XLM -> {args.recipient}")
    print(f"Result: {'ALLOWED' if result.is_valid else 'BLOCKED'}")
    for error in result.errors:
        print(f"  - {error}")
    print("=" * 60)

    if not result.is_valid:
        sys.exit(2)


def cmd_freeze(guard, args):
    """Freeze a wallet."""
    guard.freeze_wallet(args.wallet)
    print(f"Wallet {args.wallet} frozen")


def cmd_unfreeze(guard, args):
    """Unfreeze a wallet."""
    guard.unfreeze_wallet(args.wallet)
    print(f"Wallet {args.wallet} unfrozen")


def cmd_set_limit(guard, args):
    """Set the daily or monthly limit."""
    if args.period == "daily":
        record = guard.set_daily_limit(args.wallet, args.amount)
        limit = record.daily_limit
    else:
        record = guard.set_monthly_limit(args.wallet, args.amount)
        limit = record.monthly_limit
    print(f"{args.period.capitalize()} spending limit set to {format_amount(limit)} XLM")


def cmd_reset(guard, args):
    """Zero spend counters."""
    guard.reset_spending_limits(args.wallet)
    print(f"Spending counters reset for {args.wallet}")


def cmd_analytics(guard, args):
    """Show spend analytics for a wallet."""
    analytics = guard.get_spending_analytics(args.wallet)

    _print_header("SPENDING ANALYTICS")
    print(f"Daily Spent:   {format_amount(analytics['dailySpent'])} / "
          f"{format_amount(analytics['dailyLimit'])} XLM")
    print(f"Monthly Spent: {format_amount(analytics['monthlySpent'])} / "
          f"{format_amount(analytics['monthlyLimit'])} XLM")
    print(f"Transactions:  {analytics['totalTransactions']}")
    print("=" * 60)


def main(argv: Optional[list] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="walletguard: spending limits for Stellar wallets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show counters and limits
  walletguard info GABC...

  # Check a payment before sending it
  walletguard validate GABC... 250 --recipient GXYZ...

  # Lower the daily limit
  walletguard set-limit GABC... daily 500

  # Lock the wallet
  walletguard freeze GABC...
""",
    )
    parser.add_argument("--db", default=get_db_path() or "walletguard.db",
                        help="Path to the SQLite database")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    info_parser = subparsers.add_parser("info", help="Show spend counters")
    info_parser.add_argument("wallet", help="Wallet public key")

    val_parser = subparsers.add_parser("validate", help="Validate a payment")
    val_parser.add_argument("wallet", help="Wallet public key")
    val_parser.add_argument("amount", help="Amount in XLM")
    val_parser.add_argument("--recipient", "-r", required=True,
                            help="Destination account")
    val_parser.add_argument("--memo", "-m", help="Transaction memo")

    for name, help_text in (("freeze", "Freeze a wallet"),
                            ("unfreeze", "Unfreeze a wallet"),
                            ("reset", "Zero spend counters"),
                            ("analytics", "Show spend analytics")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("wallet", help="Wallet public key")

    limit_parser = subparsers.add_parser("set-limit", help="Set a spending limit")
    limit_parser.add_argument("wallet", help="Wallet public key")
    limit_parser.add_argument("period", choices=["daily", "monthly"])
    limit_parser.add_argument("amount", help="Limit in XLM")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    commands = {
        "info": cmd_info,
        "validate": cmd_validate,
        "freeze": cmd_freeze,
        "unfreeze": cmd_unfreeze,
        "set-limit": cmd_set_limit,
        "reset": cmd_reset,
        "analytics": cmd_analytics,
    }

    handler = commands.get(args.command)
    storage = SQLiteStorage(db_path=args.db)
    try:
        handler(SpendingGuard(storage=storage), args)
    except WalletGuardError as exc:
        print(f"Error: {exc}")
        sys.exit(1)
    finally:
        storage.close()


if __name__ == "__main__":
    main()
