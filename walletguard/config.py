"""Global configuration for walletguard."""

from __future__ import annotations

import copy
import json
import os
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, Optional


DEFAULT_LIMITS: Dict[str, Decimal] = {
    "daily_limit": Decimal("1000"),
    "monthly_limit": Decimal("10000"),
    "max_tx_amount": Decimal("1000"),
}

DEFAULT_SPENDING_LIMIT = Decimal("1000")

_defaults: Dict[str, Decimal] = copy.deepcopy(DEFAULT_LIMITS)


def _parse_json_env(var_name: str) -> Dict[str, Any] | None:
    value = os.getenv(var_name)
    if not value:
        return None
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


def to_limit(name: str, value: Any) -> Decimal:
    """Coerce a limit to a positive finite Decimal, or raise ValueError."""
    try:
        limit = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc
    if not limit.is_finite() or limit <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return limit


def get_defaults() -> Dict[str, Decimal]:
    """Return default limits for new wallets, with optional env override."""
    parsed = _parse_json_env("WALLETGUARD_DEFAULTS_JSON")
    if parsed:
        merged = dict(_defaults)
        for name, value in parsed.items():
            if name not in DEFAULT_LIMITS:
                continue
            try:
                merged[name] = to_limit(name, value)
            except ValueError:
                continue
        return merged
    return dict(_defaults)


def set_defaults(
    *,
    daily_limit: Any = None,
    monthly_limit: Any = None,
    max_tx_amount: Any = None,
) -> None:
    """Set default limits for new wallets at runtime."""
    global _defaults
    updated = copy.deepcopy(_defaults)
    if daily_limit is not None:
        updated["daily_limit"] = to_limit("daily_limit", daily_limit)
    if monthly_limit is not None:
        updated["monthly_limit"] = to_limit("monthly_limit", monthly_limit)
    if max_tx_amount is not None:
        updated["max_tx_amount"] = to_limit("max_tx_amount", max_tx_amount)
    _defaults = updated


def reset_defaults() -> None:
    """Restore the built-in default limits."""
    global _defaults
    _defaults = copy.deepcopy(DEFAULT_LIMITS)


def get_db_path() -> Optional[str]:
    """SQLite database path, or None for in-memory storage."""
    return os.getenv("WALLETGUARD_DB_PATH") or None


def get_api_key() -> Optional[str]:
    return os.getenv("WALLETGUARD_API_KEY") or None


def get_spending_limit() -> Decimal:
    """Per-transaction ceiling used by the stateless limit check."""
    value = os.getenv("WALLETGUARD_SPENDING_LIMIT")
    if not value:
        return DEFAULT_SPENDING_LIMIT
    try:
        return to_limit("WALLETGUARD_SPENDING_LIMIT", value)
    except ValueError:
        return DEFAULT_SPENDING_LIMIT


def get_log_level() -> str:
    return os.getenv("WALLETGUARD_LOG_LEVEL", "INFO").upper()
