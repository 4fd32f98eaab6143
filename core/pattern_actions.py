"""
pattern_actions.py
-------------------
What a user can do with a detected RecurringPattern.

    - confirm_pattern():   persist a recurring schedule + flag source transactions
    - dismiss_pattern():   drop from the pending list (client-local only)
    - summarize_patterns(): income / expense / net totals for the summary card
    - patterns_to_frame(): flat DataFrame for CSV output and the review UI

Dismissal is NOT persisted. A dismissed pattern is rediscovered on the next
scan if the underlying transactions still qualify.
"""

import logging
from dataclasses import replace
from typing import List, Tuple

import pandas as pd

from core.exceptions import ConfirmationError, StoreError
from core.models import EXPENSE, INCOME, RecurringPattern, RecurringTransaction

logger = logging.getLogger(__name__)

PATTERN_COLUMNS = [
    "vendor_name", "amount", "type", "frequency", "occurrences",
    "last_date", "next_expected_date", "confidence", "is_confirmed",
    "transaction_ids",
]


def confirm_pattern(pattern: RecurringPattern, store, user_id: str) -> Tuple[int, RecurringPattern]:
    """
    Promotes a pattern to a persistent recurring transaction.

    Writes one recurring_transactions row (start date = the pattern's last
    date, next due = its projected date) and sets is_recurring on every
    source transaction. Confirming the same pattern twice creates two rows.

    Args:
        pattern: A pattern from RecurringPatternDetector.detect().
        store: A BaseLedgerStore.
        user_id: Owner of the new record.

    Returns:
        (new recurring_transactions id, copy of pattern with is_confirmed=True)

    Raises:
        ConfirmationError: If the write fails. Nothing is persisted in that case.
    """
    record = RecurringTransaction(
        user_id=user_id,
        description=pattern.vendor_name,
        vendor_name=pattern.vendor_name,
        amount=pattern.amount,
        type=pattern.type,
        frequency=pattern.frequency,
        start_date=pattern.last_date,
        next_due_date=pattern.next_expected_date,
        is_active=True,
        auto_create=False,
    )

    try:
        record_id, updated = store.confirm_recurring(record, pattern.transaction_ids)
    except StoreError as e:
        logger.error(f"Confirm failed for {pattern.vendor_name} ({pattern.frequency}): {e}")
        raise ConfirmationError(pattern.vendor_name, str(e)) from e

    logger.info(
        f"Confirmed {pattern.vendor_name} as {pattern.frequency} recurring "
        f"(record {record_id}, {updated} transaction(s) flagged)."
    )
    return record_id, replace(pattern, is_confirmed=True)


def dismiss_pattern(patterns: List[RecurringPattern], pattern: RecurringPattern) -> List[RecurringPattern]:
    """Returns patterns without any entry matching the dismissed vendor name + amount."""
    return [
        p for p in patterns
        if p.vendor_name != pattern.vendor_name or p.amount != pattern.amount
    ]


def summarize_patterns(patterns: List[RecurringPattern]) -> dict:
    """
    Totals for the summary card. Amounts are per-occurrence, summed across
    patterns regardless of frequency.
    """
    income = round(sum(p.amount for p in patterns if p.type == INCOME), 2)
    expenses = round(sum(p.amount for p in patterns if p.type == EXPENSE), 2)
    return {
        "pattern_count": len(patterns),
        "recurring_income": income,
        "recurring_expenses": expenses,
        "net_recurring": round(income - expenses, 2),
    }


def patterns_to_frame(patterns: List[RecurringPattern]) -> pd.DataFrame:
    """Flattens patterns into a DataFrame, one row per pattern, in input order."""
    if not patterns:
        return pd.DataFrame(columns=PATTERN_COLUMNS)

    rows = []
    for p in patterns:
        rows.append({
            "vendor_name": p.vendor_name,
            "amount": p.amount,
            "type": p.type,
            "frequency": p.frequency,
            "occurrences": p.occurrences,
            "last_date": p.last_date.strftime("%Y-%m-%d"),
            "next_expected_date": p.next_expected_date.strftime("%Y-%m-%d"),
            "confidence": p.confidence,
            "is_confirmed": p.is_confirmed,
            "transaction_ids": "|".join(p.transaction_ids),
        })
    return pd.DataFrame(rows, columns=PATTERN_COLUMNS)
