"""
recurring_pattern_detector.py
------------------------------
Recurring transaction pattern detector.

This is a pure computation over one user's transaction history. It does no I/O
and keeps no state between calls. It only answers one question:

    "Which vendor + amount + type combinations recur on a regular schedule?"

Output: a RecurringPattern per qualifying group, sorted by confidence
descending. Patterns are candidates only; confirming them is the job of
core.pattern_actions.

Design decisions:
    - Grouping key is (lowercased vendor_name, amount, type). Transactions
      with no vendor name can't form a key and are excluded.
    - Frequency is classified from the MEAN inter-transaction gap, then
      confidence is scored from how many individual gaps sit inside the
      band's tolerance window.
    - "Now" is always passed in (as_of). The detector never reads the clock.
    - All thresholds and tolerances are read from config.yaml.
"""

import logging
from dataclasses import asdict
from datetime import date, datetime
from typing import List, Sequence

import numpy as np
import pandas as pd

from core.frequency import FrequencyBand, FrequencyClassifier
from core.models import RecurringPattern, Transaction
from config.config_loader import get_recurring_detection_config

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["id", "vendor_name", "amount", "type", "transaction_date"]


class RecurringPatternDetector:
    """
    Detects recurring payment and income patterns in transaction data.

    Usage:
        detector = RecurringPatternDetector()
        patterns = detector.detect(transactions_df, as_of=datetime(2024, 7, 1))
    """

    def __init__(self):
        self.config = get_recurring_detection_config()
        self.lookback_months = self.config["lookback_months"]
        self.min_group_size = self.config["min_group_size"]
        self.min_confidence = self.config["min_confidence"]
        self.points_per_interval = self.config["occurrence_bonus"]["points_per_interval"]
        self.max_bonus = self.config["occurrence_bonus"]["max_bonus"]
        self.classifier = FrequencyClassifier()

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def detect(
        self,
        transactions: pd.DataFrame | Sequence[Transaction],
        as_of: datetime | date | None = None,
        lookback_months: int | None = None,
    ) -> List[RecurringPattern]:
        """
        Run recurring pattern detection on one user's transactions.

        Args:
            transactions: DataFrame with columns id, vendor_name, amount,
                type, transaction_date, or a list of Transaction records.
            as_of: Reference "now". If given, only transactions in the
                lookback window ending at as_of are scanned. If None, the
                input is assumed to be pre-windowed by the caller.
            lookback_months: Override the configured lookback window.

        Returns:
            List of RecurringPattern, sorted by confidence descending.
        """
        df = self._prepare(transactions, as_of, lookback_months)

        if df.empty:
            return []

        grouped = df.groupby(["vendor_key", "amount_key", "type"], sort=False)
        results: List[RecurringPattern] = []

        for (vendor_key, amount_key, txn_type), group in grouped:
            # Filter: a single occurrence cannot establish a pattern
            if len(group) < self.min_group_size:
                continue

            if group["transaction_date"].isna().any():
                logger.warning(
                    f"Skipping group ({vendor_key!r}, {amount_key}, {txn_type}): "
                    f"{int(group['transaction_date'].isna().sum())} transaction(s) with unparseable dates."
                )
                continue

            pattern = self._build_pattern(group)
            if pattern is not None:
                results.append(pattern)

        # Stable sort: equal confidences keep discovery order
        results.sort(key=lambda p: p.confidence, reverse=True)

        logger.debug(f"Detected {len(results)} recurring pattern(s) from {len(df):,} transactions.")
        return results

    # -------------------------------------------------------------------------
    # INTERNAL: DATA PREPARATION
    # -------------------------------------------------------------------------

    def _prepare(
        self,
        transactions: pd.DataFrame | Sequence[Transaction],
        as_of: datetime | date | None,
        lookback_months: int | None,
    ) -> pd.DataFrame:
        """
        Validates input, parses dates and amounts, drops vendor-less rows
        and applies the lookback window.
        """
        if not isinstance(transactions, pd.DataFrame):
            if len(transactions) == 0:
                return pd.DataFrame(columns=REQUIRED_COLUMNS)
            transactions = pd.DataFrame([asdict(t) for t in transactions])

        missing = [c for c in REQUIRED_COLUMNS if c not in transactions.columns]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        df = transactions.copy()
        if df.empty:
            return df

        # Unparseable dates become NaT; the owning group is skipped later
        df["transaction_date"] = pd.to_datetime(df["transaction_date"], errors="coerce").dt.normalize()

        df["amount"] = pd.to_numeric(df["amount"], errors="coerce")
        bad_amounts = df["amount"].isna()
        if bad_amounts.any():
            logger.warning(f"Dropping {int(bad_amounts.sum())} transaction(s) with non-numeric amounts.")
            df = df[~bad_amounts]

        vendor = df["vendor_name"].fillna("").astype(str)
        df = df[vendor.str.strip() != ""].copy()
        df["vendor_key"] = df["vendor_name"].astype(str).str.lower()
        df["amount_key"] = df["amount"].round(2)

        if as_of is not None:
            if lookback_months is None:
                lookback_months = self.lookback_months
            end = pd.Timestamp(as_of).normalize()
            cutoff = end - pd.DateOffset(months=lookback_months)
            dates = df["transaction_date"]
            in_window = (dates >= cutoff) & (dates <= end)
            df = df[in_window | dates.isna()]

        return df.reset_index(drop=True)

    # -------------------------------------------------------------------------
    # INTERNAL: PATTERN CONSTRUCTION
    # -------------------------------------------------------------------------

    def _build_pattern(self, group: pd.DataFrame) -> RecurringPattern | None:
        """
        Builds a RecurringPattern from a single (vendor, amount, type) group.

        Returns None if the mean interval fits no frequency band or the
        confidence score falls below the emission threshold.
        """
        group = group.sort_values("transaction_date", kind="stable")
        intervals = self._compute_intervals(group)

        if len(intervals) == 0:
            return None

        mean_interval = float(np.mean(intervals))
        band = self.classifier.classify(mean_interval)
        if band is None:
            return None

        # Threshold is checked on the unrounded score
        confidence = self._compute_confidence(intervals, band)
        if confidence < self.min_confidence:
            return None

        # Amount, type and vendor spelling come from the most recent occurrence
        latest = group.iloc[-1]
        last_date = latest["transaction_date"].date()

        return RecurringPattern(
            vendor_name=str(latest["vendor_name"]),
            amount=float(latest["amount"]),
            type=str(latest["type"]),
            frequency=band.name,
            occurrences=len(group),
            last_date=last_date,
            next_expected_date=self.classifier.next_expected_date(last_date, band.name),
            confidence=round(confidence, 2),
            is_confirmed=False,
            transaction_ids=[str(i) for i in group["id"].tolist()],
        )

    @staticmethod
    def _compute_intervals(group: pd.DataFrame) -> np.ndarray:
        """Whole-day gaps between consecutive dates. n transactions → n-1 gaps."""
        dates = group["transaction_date"].values
        return np.diff(dates).astype("timedelta64[D]").astype(float)

    # -------------------------------------------------------------------------
    # INTERNAL: CONFIDENCE SCORING
    # -------------------------------------------------------------------------

    def _compute_confidence(self, intervals: np.ndarray, band: FrequencyBand) -> float:
        """
        Computes a 0–100 confidence score:
            - base: share of gaps within ±tolerance of the expected interval
            - occurrence bonus: points per gap, capped

        The sum is clamped to 100 BEFORE any band discount, so the fallback
        monthly band can never score above 100 × discount.
        """
        if len(intervals) == 0:
            return 0.0

        within = int(np.sum(np.abs(intervals - band.expected_days) <= band.tolerance_days))
        base = within / len(intervals) * 100
        bonus = min(len(intervals) * self.points_per_interval, self.max_bonus)

        confidence = min(base + bonus, 100.0)
        if band.is_discounted:
            confidence *= band.discount

        return float(confidence)
