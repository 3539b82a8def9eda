"""
Rolling spend windows.

Daily and monthly counters are tracked over fixed-length rolling windows
(24 hours and 30 x 24 hours) that start at the first spend after a rollover,
not at calendar day or month boundaries.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal

from walletguard.models import SpendingRecord


DAY = timedelta(hours=24)
MONTH = 30 * DAY


def apply_window_reset(record: SpendingRecord, now: datetime) -> SpendingRecord:
    """
    Zero any counter whose window has elapsed.

    Args:
        record: The stored record.
        now: Current time (timezone-aware).

    Returns:
        A new record; the input is left untouched. Applying this twice with
        the same ``now`` gives the same result as applying it once.
    """
    updated = record

    if now - updated.day_start > DAY:
        updated = replace(updated, daily_spent=Decimal("0"), day_start=now)

    if now - updated.month_start > MONTH:
        updated = replace(updated, monthly_spent=Decimal("0"), month_start=now)

    return updated


def window_status(record: SpendingRecord, now: datetime) -> dict[str, timedelta]:
    """Time left before each window rolls over (zero once elapsed)."""
    zero = timedelta(0)
    return {
        "daily": max(record.day_start + DAY - now, zero),
        "monthly": max(record.month_start + MONTH - now, zero),
    }
