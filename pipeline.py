"""
pipeline.py
------------
Main orchestration layer. Wires together:
    1. BaseLedgerStore            →  fetches one user's lookback window
    2. RecurringPatternDetector   →  produces RecurringPatterns
    3. Audit log                  →  records each scan and confirm

and holds the pending pattern list that confirm / dismiss act on.

Usage:
    from pipeline import RecurringDetectionPipeline

    pipeline = RecurringDetectionPipeline(store, user_id="user-1")
    patterns = pipeline.scan(as_of=datetime(2024, 7, 1))
    pipeline.confirm(patterns[0])
"""

import logging
from datetime import date, datetime
from typing import List

import pandas as pd

from core.models import AuditEvent, RecurringPattern
from core.pattern_actions import confirm_pattern, dismiss_pattern, summarize_patterns
from core.recurring_pattern_detector import RecurringPatternDetector
from storage.ledger_store import BaseLedgerStore

logger = logging.getLogger(__name__)

DETECT_ACTION = "DETECT_RECURRING"
CONFIRM_ACTION = "CONFIRM_RECURRING"


class RecurringDetectionPipeline:
    """
    Scan → review → confirm/dismiss loop for a single user.

    The detector itself is pure; everything with side effects lives here.
    """

    def __init__(self, store: BaseLedgerStore, user_id: str, lookback_months: int | None = None):
        """
        Args:
            store: Ledger store to read transactions from and write to.
            user_id: Whose transactions to scan.
            lookback_months: Override default lookback window from config.
        """
        self.store = store
        self.user_id = user_id
        self.detector = RecurringPatternDetector()
        self.lookback_months = (
            lookback_months if lookback_months is not None else self.detector.lookback_months
        )
        self.patterns: List[RecurringPattern] = []
        self._last_as_of: datetime | date | None = None

        logger.info(f"Pipeline initialized for user {user_id}. Lookback: {self.lookback_months} months.")

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def scan(self, as_of: datetime | date) -> List[RecurringPattern]:
        """
        Fetch the lookback window, run detection and replace the pending list.

        Args:
            as_of: Reference "now" for the lookback window.

        Returns:
            Detected patterns, sorted by confidence descending.
        """
        end = pd.Timestamp(as_of).normalize()
        since = (end - pd.DateOffset(months=self.lookback_months)).date()
        transactions = self.store.fetch_transactions(self.user_id, since=since, until=end.date())
        logger.info(f"Scan starting. Input: {len(transactions):,} transactions since {since}.")

        patterns = self.detector.detect(transactions, as_of=as_of, lookback_months=self.lookback_months)

        self.store.log_audit_event(AuditEvent(
            user_id=self.user_id,
            action=DETECT_ACTION,
            details={"patternsFound": len(patterns)},
        ))
        logger.info(f"Scan complete. Recurring patterns: {len(patterns):,}.")

        self.patterns = patterns
        self._last_as_of = as_of
        return patterns

    def confirm(self, pattern: RecurringPattern) -> int:
        """
        Confirms a pattern, then re-scans so the pending list reflects the new state.

        Returns:
            Id of the new recurring_transactions record.

        Raises:
            ConfirmationError: The pending list is left untouched.
        """
        record_id, _ = confirm_pattern(pattern, self.store, self.user_id)

        self.store.log_audit_event(AuditEvent(
            user_id=self.user_id,
            action=CONFIRM_ACTION,
            entity_id=str(record_id),
            details={
                "vendorName": pattern.vendor_name,
                "frequency": pattern.frequency,
                "transactionCount": len(pattern.transaction_ids),
            },
        ))

        if self._last_as_of is not None:
            self.scan(self._last_as_of)
        return record_id

    def dismiss(self, pattern: RecurringPattern) -> List[RecurringPattern]:
        """Removes the pattern from the pending list. Not persisted."""
        self.patterns = dismiss_pattern(self.patterns, pattern)
        logger.info(f"Dismissed {pattern.vendor_name} ({pattern.amount:.2f}). {len(self.patterns)} pending.")
        return self.patterns

    def summary(self) -> dict:
        return summarize_patterns(self.patterns)
