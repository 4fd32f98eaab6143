"""
models.py
----------
Core domain models. These are the typed contracts between the detector,
the companion actions and the storage layer.

- Transaction: Input record, owned by the bookkeeping ledger. The detector
  only reads these.

- RecurringPattern: Output of the detection layer. Ephemeral, rebuilt on
  every scan, pending user confirmation.

- RecurringTransaction: Persistent record created when a user confirms
  a RecurringPattern.

- AuditEvent: One row in the audit log.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional


INCOME = "income"
EXPENSE = "expense"
TRANSACTION_TYPES = (INCOME, EXPENSE)


@dataclass
class Transaction:
    """A single historical ledger entry. Amount is always positive; direction is in `type`."""

    id: str
    vendor_name: Optional[str]
    amount: float
    type: str                        # "income" | "expense"
    transaction_date: date
    category_id: Optional[str] = None
    is_recurring: bool = False


@dataclass
class RecurringPattern:
    """
    Candidate recurring payment or income produced by RecurringPatternDetector.

    Has no identity across runs: re-scanning the same history rebuilds an
    equivalent pattern.
    """

    vendor_name: str
    amount: float                    # Taken from the most recent transaction, not averaged
    type: str                        # "income" | "expense"
    frequency: str                   # "weekly" | "monthly" | "quarterly" | "annual"
    occurrences: int
    last_date: date
    next_expected_date: date
    confidence: float                # 0 – 100
    is_confirmed: bool = False
    transaction_ids: list[str] = field(default_factory=list)


@dataclass
class RecurringTransaction:
    """Persistent recurring schedule, created by confirming a RecurringPattern."""

    user_id: str
    description: str
    vendor_name: str
    amount: float
    type: str
    frequency: str
    start_date: date
    next_due_date: date
    is_active: bool = True
    auto_create: bool = False
    id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class AuditEvent:
    """Audit log entry. `details` is serialized to JSON by the store."""

    user_id: str
    action: str                      # e.g. "DETECT_RECURRING", "CONFIRM_RECURRING"
    entity_type: str = "recurring_transaction"
    entity_id: Optional[str] = None
    details: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)
