"""Tests for command parsing and dispatch."""

from decimal import Decimal

import pytest

from walletguard.actions import (
    AddContact,
    SetWalletSettings,
    ValidateTransaction,
    dispatch,
    handle,
    parse_command,
    supported_actions,
)
from walletguard.guard import SpendingGuard
from walletguard.validation import ValidationError


WALLET = "GWALLET"


@pytest.fixture
def guard():
    return SpendingGuard()


class TestParseCommand:
    """Test request parsing into command variants."""

    def test_parses_variant_by_action(self):
        command = parse_command({
            "action": "validate_transaction",
            "walletKey": WALLET,
            "amount": 12.5,
            "recipient": "GDEST",
        })

        assert isinstance(command, ValidateTransaction)
        assert command.amount == Decimal("12.5")
        assert command.recipient == "GDEST"
        assert command.memo is None

    def test_accepts_legacy_field_names(self):
        command = parse_command({
            "action": "validate_transaction",
            "publicKey": WALLET,
            "amount": "5",
            "contactAddress": "GDEST",
        })

        assert command.wallet_key == WALLET
        assert command.recipient == "GDEST"

    def test_camel_case_fields(self):
        command = parse_command({
            "action": "add_contact",
            "walletKey": WALLET,
            "contactName": "Alice",
            "contactAddress": "GALICE",
            "isTrusted": True,
        })

        assert isinstance(command, AddContact)
        assert command.contact_name == "Alice"
        assert command.is_trusted is True

    def test_nested_settings(self):
        command = parse_command({
            "action": "set_wallet_settings",
            "walletKey": WALLET,
            "settings": {"requireMemo": True, "maxTxAmount": 50},
        })

        assert isinstance(command, SetWalletSettings)
        assert command.settings.require_memo is True
        assert command.settings.max_tx_amount == Decimal("50")

    def test_unknown_action(self):
        with pytest.raises(ValidationError, match="Invalid action: teleport"):
            parse_command({"action": "teleport", "walletKey": WALLET})

    def test_missing_wallet_key(self):
        with pytest.raises(ValidationError):
            parse_command({"action": "get_spending_info"})

    def test_non_positive_amount(self):
        with pytest.raises(ValidationError):
            parse_command({
                "action": "validate_transaction",
                "walletKey": WALLET,
                "amount": 0,
                "recipient": "GDEST",
            })

    def test_supported_actions(self):
        actions = supported_actions()

        assert "validate_transaction" in actions
        assert "emergency_freeze" in actions
        assert "get_transaction_history" in actions
        assert len(actions) == 18


class TestDispatch:
    """Test handler responses."""

    def test_set_daily_limit(self, guard):
        result = handle(guard, {"action": "set_daily_limit", "walletKey": WALLET, "dailyLimit": 500})

        assert result == {
            "success": True,
            "action": "set_daily_limit",
            "message": "Daily spending limit set to 500 XLM",
            "dailyLimit": Decimal("500"),
        }

    def test_validate_then_info(self, guard):
        validation = handle(guard, {
            "action": "validate_transaction",
            "walletKey": WALLET,
            "amount": 500,
            "recipient": "GDEST",
        })
        info = handle(guard, {"action": "get_spending_info", "walletKey": WALLET})

        assert validation["success"] is True
        assert validation["isValid"] is True
        assert validation["errors"] == []
        assert info["spendingInfo"] == {
            "dailyLimit": Decimal("1000"),
            "dailySpent": Decimal("500"),
            "monthlyLimit": Decimal("10000"),
            "monthlySpent": Decimal("500"),
            "isFrozen": False,
        }

    def test_denial_is_successful_response(self, guard):
        handle(guard, {"action": "freeze_wallet", "walletKey": WALLET})

        result = handle(guard, {
            "action": "validate_transaction",
            "walletKey": WALLET,
            "amount": 1,
            "recipient": "GDEST",
        })

        assert result["success"] is True
        assert result["isValid"] is False
        assert result["errors"] == ["Wallet is frozen"]
        assert result["message"] == "Transaction validation failed"

    def test_freeze_and_unfreeze(self, guard):
        frozen = handle(guard, {"action": "freeze_wallet", "walletKey": WALLET})
        unfrozen = handle(guard, {"action": "unfreeze_wallet", "walletKey": WALLET})

        assert frozen["isFrozen"] is True
        assert unfrozen["isFrozen"] is False

    def test_emergency_freeze_unauthorized(self, guard):
        result = handle(guard, {
            "action": "emergency_freeze",
            "walletKey": WALLET,
            "emergencyContact": "GSTRANGER",
        })

        assert result == {
            "success": False,
            "action": "emergency_freeze",
            "error": "Unauthorized emergency contact",
        }

    def test_set_contact_trusted_not_found(self, guard):
        result = handle(guard, {
            "action": "set_contact_trusted",
            "walletKey": WALLET,
            "contactName": "Alice",
            "isTrusted": True,
        })

        assert result["success"] is False
        assert result["error"] == 'Contact "Alice" not found'

    def test_contact_lifecycle(self, guard):
        added = handle(guard, {
            "action": "add_contact",
            "walletKey": WALLET,
            "contactName": "Alice",
            "contactAddress": "GALICE",
        })
        trusted = handle(guard, {
            "action": "set_contact_trusted",
            "walletKey": WALLET,
            "contactName": "alice",
        })
        fetched = handle(guard, {"action": "get_contact", "walletKey": WALLET, "contactName": "ALICE"})
        listed = handle(guard, {"action": "list_contacts", "walletKey": WALLET})
        removed = handle(guard, {"action": "remove_contact", "walletKey": WALLET, "contactName": "Alice"})

        assert added["message"] == 'Contact "Alice" added successfully'
        assert trusted["isTrusted"] is True
        assert fetched["contact"] == {"name": "Alice", "address": "GALICE", "isTrusted": True}
        assert len(listed["contacts"]) == 1
        assert removed["removed"] is True

    def test_log_history_and_analytics(self, guard):
        handle(guard, {
            "action": "validate_transaction",
            "walletKey": WALLET,
            "amount": 40,
            "recipient": "GDEST",
        })
        logged = handle(guard, {
            "action": "log_transaction",
            "walletKey": WALLET,
            "recipient": "GDEST",
            "amount": 40,
            "memo": "lunch",
        })
        history = handle(guard, {"action": "get_transaction_history", "walletKey": WALLET})
        analytics = handle(guard, {"action": "get_spending_analytics", "walletKey": WALLET})

        assert logged["transaction"]["memo"] == "lunch"
        assert logged["transaction"]["type"] == "send"
        assert len(history["transactions"]) == 1
        assert analytics["analytics"]["totalTransactions"] == 1
        assert analytics["analytics"]["dailySpent"] == Decimal("40")

    def test_reset_spending_limits(self, guard):
        handle(guard, {
            "action": "validate_transaction",
            "walletKey": WALLET,
            "amount": 300,
            "recipient": "GDEST",
        })

        result = handle(guard, {"action": "reset_spending_limits", "walletKey": WALLET})

        assert result["message"] == "Spending limits reset successfully"
        assert result["spendingInfo"]["dailySpent"] == 0
        assert result["spendingInfo"]["monthlySpent"] == 0
        assert result["spendingInfo"]["dailyLimit"] == Decimal("1000")

    def test_wallet_settings(self, guard):
        handle(guard, {
            "action": "set_wallet_settings",
            "walletKey": WALLET,
            "settings": {"maxTxAmount": 75, "emergencyContact": ""},
        })

        result = handle(guard, {"action": "get_wallet_settings", "walletKey": WALLET})

        assert result["settings"] == {
            "autoApproveTrusted": False,
            "requireMemo": False,
            "maxTxAmount": Decimal("75"),
            "emergencyContact": WALLET,
        }

    def test_malformed_request_is_failure(self, guard):
        result = handle(guard, {"action": "set_daily_limit", "walletKey": WALLET})

        assert result["success"] is False
        assert "dailyLimit" in result["error"]

    def test_dispatch_parsed_command(self, guard):
        command = parse_command({"action": "get_wallet_settings", "walletKey": WALLET})

        result = dispatch(guard, command)

        assert result["success"] is True
        assert result["settings"]["emergencyContact"] == WALLET
