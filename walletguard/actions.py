"""
Command models and dispatcher for the smart-limit endpoint.

Each action is its own pydantic model, tagged by the ``action`` field, so
a request is parsed straight into the right variant and routed through a
handler registry.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any, Callable, Dict, Literal, Optional, Type, Union, get_args

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from walletguard.guard import SpendingGuard
from walletguard.log import get_logger
from walletguard.models import format_amount
from walletguard.validation import ValidationError, WalletGuardError


logger = get_logger(__name__)


class _Command(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    wallet_key: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("walletKey", "publicKey", "wallet_key"),
    )


_Amount = Annotated[Decimal, Field(gt=0)]
_Recipient = Annotated[
    str,
    Field(min_length=1, validation_alias=AliasChoices("recipient", "contactAddress")),
]


class SetDailyLimit(_Command):
    action: Literal["set_daily_limit"]
    daily_limit: _Amount


class SetMonthlyLimit(_Command):
    action: Literal["set_monthly_limit"]
    monthly_limit: _Amount


class GetSpendingInfo(_Command):
    action: Literal["get_spending_info"]


class FreezeWallet(_Command):
    action: Literal["freeze_wallet"]


class UnfreezeWallet(_Command):
    action: Literal["unfreeze_wallet"]


class EmergencyFreeze(_Command):
    action: Literal["emergency_freeze"]
    emergency_contact: str = Field(..., min_length=1)


class ValidateTransaction(_Command):
    action: Literal["validate_transaction"]
    amount: _Amount
    recipient: _Recipient
    memo: Optional[str] = None


class LogTransaction(_Command):
    action: Literal["log_transaction"]
    amount: _Amount
    recipient: _Recipient
    memo: Optional[str] = None


class ResetSpendingLimits(_Command):
    action: Literal["reset_spending_limits"]


class GetSpendingAnalytics(_Command):
    action: Literal["get_spending_analytics"]


class GetTransactionHistory(_Command):
    action: Literal["get_transaction_history"]
    limit: int = Field(10, ge=1, le=100)


class AddContact(_Command):
    action: Literal["add_contact"]
    contact_name: str = Field(..., min_length=1)
    contact_address: str = Field(..., min_length=1)
    is_trusted: bool = False


class RemoveContact(_Command):
    action: Literal["remove_contact"]
    contact_name: str = Field(..., min_length=1)


class SetContactTrusted(_Command):
    action: Literal["set_contact_trusted"]
    contact_name: str = Field(..., min_length=1)
    is_trusted: bool = True


class GetContact(_Command):
    action: Literal["get_contact"]
    contact_name: str = Field(..., min_length=1)


class ListContacts(_Command):
    action: Literal["list_contacts"]


class SettingsPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    auto_approve_trusted: bool = False
    require_memo: bool = False
    max_tx_amount: Optional[_Amount] = None
    emergency_contact: Optional[str] = None


class SetWalletSettings(_Command):
    action: Literal["set_wallet_settings"]
    settings: SettingsPayload


class GetWalletSettings(_Command):
    action: Literal["get_wallet_settings"]


Command = Annotated[
    Union[
        SetDailyLimit,
        SetMonthlyLimit,
        GetSpendingInfo,
        FreezeWallet,
        UnfreezeWallet,
        EmergencyFreeze,
        ValidateTransaction,
        LogTransaction,
        ResetSpendingLimits,
        GetSpendingAnalytics,
        GetTransactionHistory,
        AddContact,
        RemoveContact,
        SetContactTrusted,
        GetContact,
        ListContacts,
        SetWalletSettings,
        GetWalletSettings,
    ],
    Field(discriminator="action"),
]

_command_adapter: TypeAdapter = TypeAdapter(Command)

_Handler = Callable[[SpendingGuard, Any], Dict[str, Any]]
_HANDLERS: Dict[Type[_Command], _Handler] = {}


def _handles(command_type: Type[_Command]) -> Callable[[_Handler], _Handler]:
    def register(func: _Handler) -> _Handler:
        _HANDLERS[command_type] = func
        return func
    return register


def supported_actions() -> list[str]:
    return sorted(get_args(cls.model_fields["action"].annotation)[0] for cls in _HANDLERS)


def parse_command(payload: Dict[str, Any]) -> _Command:
    """
    Parse a raw request body into a command.

    Raises:
        ValidationError: On an unknown action or malformed fields.
    """
    action = payload.get("action")
    if action not in supported_actions():
        raise ValidationError(f"Invalid action: {action}")
    try:
        return _command_adapter.validate_python(payload)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"][1:]) or "request"
        raise ValidationError(f"Invalid {field}: {first['msg']}") from exc


def dispatch(guard: SpendingGuard, command: _Command) -> Dict[str, Any]:
    """
    Run a command and build its response payload.

    Domain failures (unknown contact, unauthorized emergency contact, bad
    input) come back as ``{"success": False, "error": ...}``; policy
    denials from validate_transaction are a successful response with
    ``isValid`` false.
    """
    handler = _HANDLERS[type(command)]
    try:
        body = handler(guard, command)
    except WalletGuardError as exc:
        logger.info("Action %s failed for %s: %s", command.action, command.wallet_key, exc)
        return {"success": False, "action": command.action, "error": str(exc)}
    return {"success": True, "action": command.action, **body}


def handle(guard: SpendingGuard, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Parse and dispatch a raw request body."""
    try:
        command = parse_command(payload)
    except ValidationError as exc:
        return {"success": False, "action": payload.get("action"), "error": str(exc)}
    return dispatch(guard, command)


# =============================================================================
# Spending limits
# =============================================================================

@_handles(SetDailyLimit)
def _set_daily_limit(guard: SpendingGuard, cmd: SetDailyLimit) -> Dict[str, Any]:
    record = guard.set_daily_limit(cmd.wallet_key, cmd.daily_limit)
    return {
        "message": f"Daily spending limit set to {format_amount(record.daily_limit)} XLM",
        "dailyLimit": record.daily_limit,
    }


@_handles(SetMonthlyLimit)
def _set_monthly_limit(guard: SpendingGuard, cmd: SetMonthlyLimit) -> Dict[str, Any]:
    record = guard.set_monthly_limit(cmd.wallet_key, cmd.monthly_limit)
    return {
        "message": f"Monthly spending limit set to {format_amount(record.monthly_limit)} XLM",
        "monthlyLimit": record.monthly_limit,
    }


@_handles(GetSpendingInfo)
def _get_spending_info(guard: SpendingGuard, cmd: GetSpendingInfo) -> Dict[str, Any]:
    record = guard.get_spending_info(cmd.wallet_key)
    return {"message": "Spending info retrieved", "spendingInfo": record.to_info()}


@_handles(ResetSpendingLimits)
def _reset_spending_limits(guard: SpendingGuard, cmd: ResetSpendingLimits) -> Dict[str, Any]:
    record = guard.reset_spending_limits(cmd.wallet_key)
    return {
        "message": "Spending limits reset successfully",
        "spendingInfo": record.to_info(),
    }


@_handles(ValidateTransaction)
def _validate_transaction(guard: SpendingGuard, cmd: ValidateTransaction) -> Dict[str, Any]:
    result = guard.validate_transaction(cmd.wallet_key, cmd.amount, cmd.recipient, cmd.memo)
    return {
        "message": (
            "Transaction validation passed" if result.is_valid
            else "Transaction validation failed"
        ),
        "isValid": result.is_valid,
        "errors": result.errors,
    }


# =============================================================================
# Emergency controls
# =============================================================================

@_handles(FreezeWallet)
def _freeze_wallet(guard: SpendingGuard, cmd: FreezeWallet) -> Dict[str, Any]:
    guard.freeze_wallet(cmd.wallet_key)
    return {"message": "Wallet has been frozen for security", "isFrozen": True}


@_handles(UnfreezeWallet)
def _unfreeze_wallet(guard: SpendingGuard, cmd: UnfreezeWallet) -> Dict[str, Any]:
    guard.unfreeze_wallet(cmd.wallet_key)
    return {"message": "Wallet has been unfrozen", "isFrozen": False}


@_handles(EmergencyFreeze)
def _emergency_freeze(guard: SpendingGuard, cmd: EmergencyFreeze) -> Dict[str, Any]:
    guard.emergency_freeze(cmd.wallet_key, cmd.emergency_contact)
    return {"message": "Wallet frozen by emergency contact", "isFrozen": True}


# =============================================================================
# Contacts
# =============================================================================

@_handles(AddContact)
def _add_contact(guard: SpendingGuard, cmd: AddContact) -> Dict[str, Any]:
    contact = guard.add_contact(
        cmd.wallet_key, cmd.contact_name, cmd.contact_address, cmd.is_trusted
    )
    return {
        "message": f'Contact "{contact.name}" added successfully',
        "contact": contact.to_dict(),
    }


@_handles(RemoveContact)
def _remove_contact(guard: SpendingGuard, cmd: RemoveContact) -> Dict[str, Any]:
    removed = guard.remove_contact(cmd.wallet_key, cmd.contact_name)
    return {"message": f'Contact "{cmd.contact_name}" removed', "removed": removed}


@_handles(SetContactTrusted)
def _set_contact_trusted(guard: SpendingGuard, cmd: SetContactTrusted) -> Dict[str, Any]:
    contact = guard.set_contact_trusted(cmd.wallet_key, cmd.contact_name, cmd.is_trusted)
    return {
        "message": f'Contact "{contact.name}" trust status updated',
        "isTrusted": contact.is_trusted,
    }


@_handles(GetContact)
def _get_contact(guard: SpendingGuard, cmd: GetContact) -> Dict[str, Any]:
    contact = guard.get_contact(cmd.wallet_key, cmd.contact_name)
    return {"message": "Contact retrieved", "contact": contact.to_dict()}


@_handles(ListContacts)
def _list_contacts(guard: SpendingGuard, cmd: ListContacts) -> Dict[str, Any]:
    contacts = guard.list_contacts(cmd.wallet_key)
    return {
        "message": "Contacts retrieved",
        "contacts": [c.to_dict() for c in contacts],
    }


# =============================================================================
# Transaction log
# =============================================================================

@_handles(LogTransaction)
def _log_transaction(guard: SpendingGuard, cmd: LogTransaction) -> Dict[str, Any]:
    entry = guard.log_transaction(cmd.wallet_key, cmd.recipient, cmd.amount, cmd.memo)
    return {"message": "Transaction logged", "transaction": entry.to_dict()}


@_handles(GetTransactionHistory)
def _get_transaction_history(
    guard: SpendingGuard, cmd: GetTransactionHistory
) -> Dict[str, Any]:
    entries = guard.get_transaction_history(cmd.wallet_key, limit=cmd.limit)
    return {
        "message": "Transaction history retrieved",
        "transactions": [e.to_dict() for e in entries],
    }


@_handles(GetSpendingAnalytics)
def _get_spending_analytics(
    guard: SpendingGuard, cmd: GetSpendingAnalytics
) -> Dict[str, Any]:
    return {
        "message": "Analytics retrieved",
        "analytics": guard.get_spending_analytics(cmd.wallet_key),
    }


# =============================================================================
# Settings
# =============================================================================

@_handles(SetWalletSettings)
def _set_wallet_settings(guard: SpendingGuard, cmd: SetWalletSettings) -> Dict[str, Any]:
    settings = guard.set_wallet_settings(
        cmd.wallet_key,
        auto_approve_trusted=cmd.settings.auto_approve_trusted,
        require_memo=cmd.settings.require_memo,
        max_tx_amount=cmd.settings.max_tx_amount,
        emergency_contact=cmd.settings.emergency_contact,
    )
    return {"message": "Wallet settings updated", "settings": settings.to_dict()}


@_handles(GetWalletSettings)
def _get_wallet_settings(guard: SpendingGuard, cmd: GetWalletSettings) -> Dict[str, Any]:
    settings = guard.get_wallet_settings(cmd.wallet_key)
    return {"message": "Wallet settings retrieved", "settings": settings.to_dict()}
