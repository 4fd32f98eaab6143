"""
main.py
--------
Entry point for the Recurring Transaction Detector.

Loads transactions into the ledger store (optionally from a CSV), scans one
user's lookback window for recurring patterns, and writes the pending
patterns to the outputs/ folder.

Usage (from the project root):
    python main.py --user user-1

    # With optional arguments:
    python main.py --input path/to/transactions.csv --user user-1
    python main.py --user user-1 --as-of 2024-07-01
    python main.py --user user-1 --confirm-above 95
"""

import sys
import os
import argparse
import logging
import pandas as pd
from datetime import datetime

# Ensure project root is on path (for VS Code runs from any working directory)
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from config.config_loader import get_logging_config, get_recurring_detection_config, get_storage_config
from core.exceptions import ConfirmationError, StoreError
from core.pattern_actions import patterns_to_frame, summarize_patterns
from pipeline import RecurringDetectionPipeline
from storage.ledger_store import SqliteLedgerStore


# =============================================================================
# LOGGING SETUP
# =============================================================================

_log_cfg = get_logging_config()
logging.basicConfig(
    level=getattr(logging, _log_cfg.get("level", "INFO")),
    format=_log_cfg["format"],
    datefmt=_log_cfg["datefmt"],
)
logger = logging.getLogger("main")


# =============================================================================
# ARGUMENT PARSING
# =============================================================================

def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Recurring Transaction Detector: find recurring payments and income in a user's ledger."
    )
    parser.add_argument(
        "--user", type=str, required=True,
        help="User whose transactions are scanned."
    )
    parser.add_argument(
        "--input", type=str, default=None,
        help="Optional transactions CSV to load into the ledger before scanning."
    )
    parser.add_argument(
        "--db", type=str, default=None,
        help="Ledger SQLite database. Defaults to storage.database_path in config.yaml."
    )
    parser.add_argument(
        "--as-of", type=str, default=None,
        help="Reference date (YYYY-MM-DD) for the lookback window. Defaults to today."
    )
    parser.add_argument(
        "--lookback-months", type=int, default=None,
        help="Lookback window in months. Defaults to config value (6)."
    )
    parser.add_argument(
        "--min-confidence", type=float, default=None,
        help="Only show patterns at or above this confidence. Cannot go below the detection threshold."
    )
    parser.add_argument(
        "--confirm-above", type=float, default=None,
        help="Automatically confirm every pattern at or above this confidence."
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Output directory. Defaults to outputs/ in project root."
    )
    return parser.parse_args()


# =============================================================================
# MAIN
# =============================================================================

def main():
    args = parse_args()

    # --- Resolve paths ---
    db_path = args.db or os.path.join(PROJECT_ROOT, get_storage_config()["database_path"])
    output_dir = args.output_dir or os.path.join(PROJECT_ROOT, "outputs")
    os.makedirs(output_dir, exist_ok=True)
    as_of = pd.Timestamp(args.as_of).to_pydatetime() if args.as_of else datetime.now()

    # --- Open store / load transactions ---
    try:
        store = SqliteLedgerStore(db_path)
        if args.input:
            logger.info(f"Loading transactions from: {args.input}")
            store.load_transactions_csv(args.input, user_id=args.user)
    except (StoreError, FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)

    # --- Scan ---
    pipeline = RecurringDetectionPipeline(store, user_id=args.user, lookback_months=args.lookback_months)
    patterns = pipeline.scan(as_of)

    # --- Optional: auto-confirm ---
    if args.confirm_above is not None:
        to_confirm = [p for p in patterns if p.confidence >= args.confirm_above]
        logger.info(f"Auto-confirming {len(to_confirm)} pattern(s) with confidence >= {args.confirm_above}.")
        for pattern in to_confirm:
            try:
                pipeline.confirm(pattern)
            except ConfirmationError as e:
                logger.error(str(e))
        patterns = pipeline.patterns

    # --- Apply confidence filter ---
    threshold = get_recurring_detection_config()["min_confidence"]
    min_confidence = max(args.min_confidence or threshold, threshold)
    shown = [p for p in patterns if p.confidence >= min_confidence]
    logger.info(f"After filtering (>= {min_confidence}): {len(shown):,} of {len(patterns):,} patterns.")

    # --- Output: pending patterns ---
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    patterns_path = os.path.join(output_dir, f"recurring_patterns_{timestamp}.csv")
    patterns_to_frame(shown).to_csv(patterns_path, index=False)
    logger.info(f"Patterns saved to: {patterns_path}")

    _print_summary(shown)
    store.close()


def _print_summary(patterns: list):
    """Prints a clean summary table to the console."""
    if not patterns:
        print("\n  No recurring patterns detected yet.\n")
        return

    totals = summarize_patterns(patterns)

    print("\n" + "=" * 80)
    print("  RECURRING TRANSACTIONS")
    print("=" * 80)
    print(f"\n  Detected patterns: {totals['pattern_count']}")
    print(f"  Recurring income:   ${totals['recurring_income']:>12,.2f}")
    print(f"  Recurring expenses: ${totals['recurring_expenses']:>12,.2f}")
    print(f"  Net recurring:      ${totals['net_recurring']:>12,.2f}")

    print("\n  " + "-" * 76)
    for p in patterns:
        print(
            f"    {p.vendor_name[:28]:28s}  {p.type:7s}  {p.frequency:9s}  "
            f"${p.amount:>9,.2f}  x{p.occurrences:<3d} next {p.next_expected_date}  {p.confidence:5.1f}%"
        )
    print("=" * 80 + "\n")


if __name__ == "__main__":
    main()
