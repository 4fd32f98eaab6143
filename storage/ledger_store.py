"""
ledger_store.py
----------------
Storage layer for the bookkeeping ledger.

The detector never touches storage. The scan pipeline and the confirm
action go through a BaseLedgerStore, so the backing database can change
without touching detection logic.

Concrete store:
    - SqliteLedgerStore: sqlite3 + pandas.read_sql. Creates the
      transactions, recurring_transactions and audit_logs tables on
      first use.
"""

import json
import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List, Tuple

import pandas as pd

from core.exceptions import StoreError
from core.models import AuditEvent, RecurringTransaction

logger = logging.getLogger(__name__)


TRANSACTION_COLUMNS = [
    "id", "user_id", "vendor_name", "amount", "type",
    "transaction_date", "category_id", "is_recurring",
]

_SCHEMA = """
CREATE TABLE IF NOT EXISTS transactions (
    id               TEXT NOT NULL,
    user_id          TEXT NOT NULL,
    vendor_name      TEXT,
    amount           REAL NOT NULL,
    type             TEXT NOT NULL,
    transaction_date TEXT,
    category_id      TEXT,
    is_recurring     INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (user_id, id)
);

CREATE INDEX IF NOT EXISTS idx_transactions_user_date
    ON transactions (user_id, transaction_date);

CREATE TABLE IF NOT EXISTS recurring_transactions (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id       TEXT NOT NULL,
    description   TEXT NOT NULL,
    vendor_name   TEXT,
    amount        REAL NOT NULL,
    type          TEXT NOT NULL,
    frequency     TEXT NOT NULL,
    start_date    TEXT NOT NULL,
    next_due_date TEXT NOT NULL,
    is_active     INTEGER NOT NULL DEFAULT 1,
    auto_create   INTEGER NOT NULL DEFAULT 0,
    created_at    TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS audit_logs (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id     TEXT NOT NULL,
    action      TEXT NOT NULL,
    entity_type TEXT,
    entity_id   TEXT,
    details     TEXT,
    created_at  TEXT NOT NULL
);
"""


class BaseLedgerStore(ABC):
    """
    Abstract ledger store.

    Subclasses implement the reads the scan pipeline needs and the writes
    the confirm action performs.
    """

    @abstractmethod
    def fetch_transactions(self, user_id: str, since: date | None = None, until: date | None = None) -> pd.DataFrame:
        """Returns the user's transactions ordered by transaction_date."""
        ...

    @abstractmethod
    def get_transactions(self, user_id: str, transaction_ids: List[str]) -> pd.DataFrame:
        ...

    @abstractmethod
    def confirm_recurring(self, record: RecurringTransaction, transaction_ids: List[str]) -> Tuple[int, int]:
        """
        Persists a confirmed recurring schedule and sets is_recurring on its
        source transactions as one unit of work. Either both writes land or
        neither does.

        Returns:
            (new recurring_transactions id, transactions rows updated)
        """
        ...

    @abstractmethod
    def list_recurring_transactions(self, user_id: str) -> pd.DataFrame:
        ...

    @abstractmethod
    def log_audit_event(self, event: AuditEvent) -> None:
        ...


class SqliteLedgerStore(BaseLedgerStore):
    """
    SQLite-backed ledger store.

    Usage:
        store = SqliteLedgerStore("data/ledger.db")
        store.load_transactions_csv("transactions.csv")
        df = store.fetch_transactions("user-1", since=date(2024, 1, 1))

    Pass ":memory:" for a throwaway database (tests, dry runs).
    """

    def __init__(self, database_path: str):
        self.database_path = database_path
        if database_path != ":memory:":
            directory = os.path.dirname(database_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

        try:
            self._conn = sqlite3.connect(database_path, check_same_thread=False)
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise StoreError(f"Could not open ledger database at {database_path}: {e}") from e

        logger.info(f"Ledger store opened: {database_path}")

    # -------------------------------------------------------------------------
    # LOADING
    # -------------------------------------------------------------------------

    def load_transactions(self, transactions: pd.DataFrame, user_id: str | None = None) -> int:
        """
        Upserts transactions from a DataFrame.

        Args:
            transactions: Must have id, vendor_name, amount, type,
                transaction_date. user_id is required unless passed in.
            user_id: Applied to every row when the frame has no user_id column.

        Returns:
            Number of rows written.
        """
        df = transactions.copy()
        if "user_id" not in df.columns:
            if user_id is None:
                raise ValueError("Transactions have no user_id column and no user_id was given")
            df["user_id"] = user_id
        for optional in ("category_id", "is_recurring"):
            if optional not in df.columns:
                df[optional] = None if optional == "category_id" else False

        missing = [c for c in TRANSACTION_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        # Unparseable dates are stored as NULL so the detector can skip their group
        parsed = pd.to_datetime(df["transaction_date"], errors="coerce")
        bad_dates = parsed.isna() & df["transaction_date"].notna()
        if bad_dates.any():
            logger.warning(f"{int(bad_dates.sum())} transaction(s) have unparseable dates; stored without a date.")
        df["transaction_date"] = parsed.dt.strftime("%Y-%m-%d")
        df["is_recurring"] = df["is_recurring"].fillna(False).astype(bool).astype(int)
        df["id"] = df["id"].astype(str)

        rows = [
            tuple(None if pd.isna(v) else v for v in row)
            for row in df[TRANSACTION_COLUMNS].itertuples(index=False, name=None)
        ]
        placeholders = ", ".join("?" for _ in TRANSACTION_COLUMNS)
        self._execute_many(
            f"INSERT OR REPLACE INTO transactions ({', '.join(TRANSACTION_COLUMNS)}) VALUES ({placeholders})",
            rows,
        )
        logger.info(f"Loaded {len(rows):,} transactions into ledger store.")
        return len(rows)

    def load_transactions_csv(self, csv_path: str, user_id: str | None = None) -> int:
        """Reads a CSV and loads it via load_transactions()."""
        if not os.path.exists(csv_path):
            raise FileNotFoundError(f"Input file not found: {csv_path}")
        return self.load_transactions(pd.read_csv(csv_path, dtype={"id": str}), user_id=user_id)

    # -------------------------------------------------------------------------
    # READS
    # -------------------------------------------------------------------------

    def fetch_transactions(self, user_id: str, since: date | None = None, until: date | None = None) -> pd.DataFrame:
        # Undated rows always come back; the detector skips the group they belong to
        query = "SELECT * FROM transactions WHERE user_id = ?"
        params: list = [user_id]
        window = []
        if since is not None:
            window.append("transaction_date >= ?")
            params.append(_iso(since))
        if until is not None:
            window.append("transaction_date <= ?")
            params.append(_iso(until))
        if window:
            query += f" AND (transaction_date IS NULL OR ({' AND '.join(window)}))"
        query += " ORDER BY transaction_date"

        df = self._read(query, params)
        return self._coerce_transactions(df)

    def get_transactions(self, user_id: str, transaction_ids: List[str]) -> pd.DataFrame:
        if not transaction_ids:
            return self._coerce_transactions(pd.DataFrame(columns=TRANSACTION_COLUMNS))
        placeholders = ", ".join("?" for _ in transaction_ids)
        df = self._read(
            f"SELECT * FROM transactions WHERE user_id = ? AND id IN ({placeholders}) ORDER BY transaction_date",
            [user_id] + [str(i) for i in transaction_ids],
        )
        return self._coerce_transactions(df)

    def list_recurring_transactions(self, user_id: str) -> pd.DataFrame:
        df = self._read(
            "SELECT * FROM recurring_transactions WHERE user_id = ? ORDER BY id", [user_id]
        )
        for col in ("is_active", "auto_create"):
            df[col] = df[col].astype(bool)
        return df

    def list_audit_events(self, user_id: str) -> pd.DataFrame:
        df = self._read("SELECT * FROM audit_logs WHERE user_id = ? ORDER BY id", [user_id])
        df["details"] = df["details"].apply(lambda d: json.loads(d) if d else {})
        return df

    # -------------------------------------------------------------------------
    # WRITES
    # -------------------------------------------------------------------------

    def confirm_recurring(self, record: RecurringTransaction, transaction_ids: List[str]) -> Tuple[int, int]:
        try:
            # One transaction: a failed flag update rolls back the insert
            with self._conn:
                record_id = self._insert_recurring(record)
                updated = self._flag_recurring(record.user_id, transaction_ids)
        except sqlite3.Error as e:
            raise StoreError(f"Confirming recurring schedule for '{record.vendor_name}' failed: {e}") from e
        return record_id, updated

    def _insert_recurring(self, record: RecurringTransaction) -> int:
        cur = self._conn.execute(
            """
            INSERT INTO recurring_transactions (
                user_id, description, vendor_name, amount, type, frequency,
                start_date, next_due_date, is_active, auto_create, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.user_id, record.description, record.vendor_name,
                float(record.amount), record.type, record.frequency,
                _iso(record.start_date), _iso(record.next_due_date),
                int(record.is_active), int(record.auto_create),
                record.created_at.isoformat(timespec="seconds"),
            ),
        )
        return int(cur.lastrowid)

    def _flag_recurring(self, user_id: str, transaction_ids: List[str]) -> int:
        if not transaction_ids:
            return 0
        placeholders = ", ".join("?" for _ in transaction_ids)
        cur = self._conn.execute(
            f"UPDATE transactions SET is_recurring = 1 WHERE user_id = ? AND id IN ({placeholders})",
            [user_id] + [str(i) for i in transaction_ids],
        )
        return cur.rowcount

    def log_audit_event(self, event: AuditEvent) -> None:
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO audit_logs (user_id, action, entity_type, entity_id, details, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        event.user_id, event.action, event.entity_type, event.entity_id,
                        json.dumps(event.details, default=str),
                        event.created_at.isoformat(timespec="seconds"),
                    ),
                )
        except sqlite3.Error as e:
            raise StoreError(f"Insert into audit_logs failed: {e}") from e

    def close(self) -> None:
        self._conn.close()

    # -------------------------------------------------------------------------
    # INTERNAL
    # -------------------------------------------------------------------------

    def _read(self, query: str, params: list) -> pd.DataFrame:
        try:
            return pd.read_sql(query, self._conn, params=params)
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            raise StoreError(f"Ledger query failed: {e}") from e

    def _execute_many(self, statement: str, rows: list) -> None:
        try:
            with self._conn:
                self._conn.executemany(statement, rows)
        except sqlite3.Error as e:
            raise StoreError(f"Ledger write failed: {e}") from e

    @staticmethod
    def _coerce_transactions(df: pd.DataFrame) -> pd.DataFrame:
        df["transaction_date"] = pd.to_datetime(df["transaction_date"], errors="coerce")
        df["is_recurring"] = df["is_recurring"].astype(bool)
        return df


def _iso(value: date | datetime | str) -> str:
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    return str(value)
