"""SQLite database operations for splitledger.

Amounts are stored as integer cents. Multi-record writes go through
``Database.transaction()``, which opens ``BEGIN IMMEDIATE`` and commits or
rolls back as one unit. A single connection is shared and guarded by a lock,
so the database may be used from several threads.
"""

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from .exceptions import StorageError, ValidationError
from .models import Expense, Obligation, Split
from .money import from_cents, to_cents

logger = logging.getLogger(__name__)


class Database:
    """SQLite ledger store."""

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self._lock = threading.RLock()
        try:
            # Autocommit mode; transactions are opened explicitly
            self.conn = sqlite3.connect(
                str(db_path), isolation_level=None, check_same_thread=False
            )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open database {db_path}: {e}") from e
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        with self.transaction() as cursor:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS expenses (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    description TEXT NOT NULL,
                    amount_cents INTEGER NOT NULL CHECK (amount_cents > 0),
                    payer_id TEXT NOT NULL,
                    group_id TEXT,
                    category TEXT NOT NULL DEFAULT 'General',
                    split_kind TEXT NOT NULL,
                    expense_date TIMESTAMP NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
            """
            )

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS expense_splits (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    expense_id INTEGER NOT NULL
                        REFERENCES expenses(id) ON DELETE CASCADE,
                    user_id TEXT NOT NULL,
                    amount_cents INTEGER NOT NULL CHECK (amount_cents >= 0),
                    percentage TEXT,
                    shares INTEGER,
                    UNIQUE (expense_id, user_id)
                )
            """
            )

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS obligations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    debtor_id TEXT NOT NULL,
                    creditor_id TEXT NOT NULL,
                    amount_cents INTEGER NOT NULL CHECK (amount_cents > 0),
                    group_id TEXT,
                    expense_id INTEGER NOT NULL
                        REFERENCES expenses(id) ON DELETE CASCADE,
                    status TEXT NOT NULL DEFAULT 'pending'
                        CHECK (status IN ('pending', 'settled')),
                    created_at TIMESTAMP NOT NULL,
                    settled_at TIMESTAMP,
                    CHECK (debtor_id != creditor_id)
                )
            """
            )

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_obligations_parties "
                "ON obligations (debtor_id, creditor_id)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_obligations_creditor "
                "ON obligations (creditor_id)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_obligations_expense "
                "ON obligations (expense_id)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_splits_user "
                "ON expense_splits (user_id)"
            )

    def close(self):
        """Close database connection."""
        with self._lock:
            self.conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        """
        Run a block of writes as one unit of work.

        Commits when the block finishes and rolls everything back if it
        raises. sqlite3 errors are re-raised as StorageError.
        """
        with self._lock:
            cursor = self.conn.cursor()
            try:
                cursor.execute("BEGIN IMMEDIATE")
                yield cursor
                cursor.execute("COMMIT")
            except sqlite3.Error as e:
                self._rollback()
                raise StorageError(f"Transaction failed, rolled back: {e}") from e
            except BaseException:
                self._rollback()
                raise
            finally:
                cursor.close()

    def _rollback(self):
        if self.conn.in_transaction:
            self.conn.execute("ROLLBACK")
            logger.warning("Rolled back transaction")

    def _fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self.conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Query failed: {e}") from e

    # ========================================================================
    # Expense operations
    # ========================================================================

    def save_expense(
        self, expense: Expense, obligations: list[Obligation]
    ) -> tuple[Expense, list[Obligation]]:
        """
        Persist an expense, its splits and its obligations atomically.

        The expense row is written first to obtain the id that every
        obligation references. Either all rows are stored or none are.

        Returns:
            Copies of the expense and obligations with ids assigned
        """
        with self.transaction() as cursor:
            expense_id = self._insert_expense(cursor, expense)
            for split in expense.splits:
                self._insert_split(cursor, expense_id, split)

            saved = []
            for obligation in obligations:
                obligation = obligation.model_copy(update={"expense_id": expense_id})
                obligation_id = self._insert_obligation(cursor, obligation)
                saved.append(obligation.model_copy(update={"id": obligation_id}))

        logger.debug(
            f"Stored expense {expense_id} with {len(expense.splits)} splits "
            f"and {len(saved)} obligations"
        )
        return expense.model_copy(update={"id": expense_id}), saved

    def _insert_expense(self, cursor: sqlite3.Cursor, expense: Expense) -> int:
        cursor.execute(
            """
            INSERT INTO expenses (
                description, amount_cents, payer_id, group_id, category,
                split_kind, expense_date, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                expense.description,
                to_cents(expense.amount),
                expense.payer_id,
                expense.group_id,
                expense.category,
                expense.split_kind,
                expense.date.isoformat(),
                expense.created_at.isoformat(),
            ),
        )
        row_id = cursor.lastrowid
        if row_id is None:
            raise StorageError("Failed to insert expense record")
        return row_id

    def _insert_split(self, cursor: sqlite3.Cursor, expense_id: int, split: Split):
        cursor.execute(
            """
            INSERT INTO expense_splits (
                expense_id, user_id, amount_cents, percentage, shares
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (
                expense_id,
                split.user_id,
                to_cents(split.amount),
                str(split.percentage) if split.percentage is not None else None,
                split.shares,
            ),
        )

    def _insert_obligation(self, cursor: sqlite3.Cursor, obligation: Obligation) -> int:
        cursor.execute(
            """
            INSERT INTO obligations (
                debtor_id, creditor_id, amount_cents, group_id, expense_id,
                status, created_at, settled_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                obligation.debtor_id,
                obligation.creditor_id,
                to_cents(obligation.amount),
                obligation.group_id,
                obligation.expense_id,
                obligation.status,
                obligation.created_at.isoformat(),
                obligation.settled_at.isoformat() if obligation.settled_at else None,
            ),
        )
        row_id = cursor.lastrowid
        if row_id is None:
            raise StorageError("Failed to insert obligation record")
        return row_id

    def get_expense(self, expense_id: int) -> Expense | None:
        """Get an expense with its splits by id."""
        rows = self._fetchall("SELECT * FROM expenses WHERE id = ?", (expense_id,))
        if not rows:
            return None
        return self._row_to_expense(rows[0])

    def list_expenses(self, user_id: str, group_id: str | None = None) -> list[Expense]:
        """
        List expenses, newest first.

        With group_id, every expense of that group. Otherwise every expense
        the user paid or has a split in.
        """
        if group_id is not None:
            rows = self._fetchall(
                """
                SELECT * FROM expenses
                WHERE group_id = ?
                ORDER BY expense_date DESC, id DESC
                """,
                (group_id,),
            )
        else:
            rows = self._fetchall(
                """
                SELECT * FROM expenses
                WHERE payer_id = ?
                   OR id IN (SELECT expense_id FROM expense_splits WHERE user_id = ?)
                ORDER BY expense_date DESC, id DESC
                """,
                (user_id, user_id),
            )
        return [self._row_to_expense(row) for row in rows]

    def delete_expense(self, expense_id: int, only_if_all_pending: bool = False) -> int:
        """
        Delete an expense together with its splits and obligations.

        With only_if_all_pending, the settled check runs inside the same
        transaction as the delete, so a settlement committed before the
        delete starts always blocks it.

        Returns:
            Number of obligations removed

        Raises:
            ValidationError: If only_if_all_pending and an obligation is settled
        """
        with self.transaction() as cursor:
            if only_if_all_pending:
                cursor.execute(
                    "SELECT 1 FROM obligations WHERE expense_id = ? AND status = 'settled'",
                    (expense_id,),
                )
                if cursor.fetchone() is not None:
                    raise ValidationError(
                        "expense has settled obligations and cannot be deleted", "expense"
                    )
            cursor.execute("DELETE FROM obligations WHERE expense_id = ?", (expense_id,))
            removed = cursor.rowcount
            cursor.execute(
                "DELETE FROM expense_splits WHERE expense_id = ?", (expense_id,)
            )
            cursor.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
        return removed

    def _get_splits(self, expense_id: int) -> list[Split]:
        rows = self._fetchall(
            """
            SELECT user_id, amount_cents, percentage, shares
            FROM expense_splits
            WHERE expense_id = ?
            ORDER BY id
            """,
            (expense_id,),
        )
        return [
            Split(
                user_id=row["user_id"],
                amount=from_cents(row["amount_cents"]),
                percentage=Decimal(row["percentage"]) if row["percentage"] else None,
                shares=row["shares"],
            )
            for row in rows
        ]

    def _row_to_expense(self, row: sqlite3.Row) -> Expense:
        return Expense(
            id=row["id"],
            description=row["description"],
            amount=from_cents(row["amount_cents"]),
            payer_id=row["payer_id"],
            group_id=row["group_id"],
            category=row["category"],
            split_kind=row["split_kind"],
            splits=self._get_splits(row["id"]),
            date=datetime.fromisoformat(row["expense_date"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # ========================================================================
    # Obligation operations
    # ========================================================================

    def get_obligation(self, obligation_id: int) -> Obligation | None:
        """Get an obligation by id."""
        rows = self._fetchall(
            "SELECT * FROM obligations WHERE id = ?", (obligation_id,)
        )
        return self._row_to_obligation(rows[0]) if rows else None

    def list_obligations(
        self,
        user_id: str,
        group_id: str | None = None,
        status: str | None = None,
    ) -> list[Obligation]:
        """List obligations where the user is debtor or creditor, newest first."""
        sql = "SELECT * FROM obligations WHERE (debtor_id = ? OR creditor_id = ?)"
        params: list[str] = [user_id, user_id]

        if group_id is not None:
            sql += " AND group_id = ?"
            params.append(group_id)
        if status is not None:
            sql += " AND status = ?"
            params.append(status)

        sql += " ORDER BY created_at DESC, id DESC"
        return [self._row_to_obligation(row) for row in self._fetchall(sql, tuple(params))]

    def list_obligations_for_expense(self, expense_id: int) -> list[Obligation]:
        """List obligations generated from one expense."""
        rows = self._fetchall(
            "SELECT * FROM obligations WHERE expense_id = ? ORDER BY id",
            (expense_id,),
        )
        return [self._row_to_obligation(row) for row in rows]

    def mark_obligation_settled(self, obligation_id: int, settled_at: datetime) -> bool:
        """
        Transition an obligation from pending to settled.

        A single compare-and-set statement: only a row still pending is
        updated, so of two concurrent callers exactly one gets True.

        Returns:
            True if this call performed the transition
        """
        with self.transaction() as cursor:
            cursor.execute(
                """
                UPDATE obligations
                SET status = 'settled', settled_at = ?
                WHERE id = ? AND status = 'pending'
                """,
                (settled_at.isoformat(), obligation_id),
            )
            return cursor.rowcount == 1

    def _row_to_obligation(self, row: sqlite3.Row) -> Obligation:
        return Obligation(
            id=row["id"],
            debtor_id=row["debtor_id"],
            creditor_id=row["creditor_id"],
            amount=from_cents(row["amount_cents"]),
            group_id=row["group_id"],
            expense_id=row["expense_id"],
            status=row["status"],
            created_at=datetime.fromisoformat(row["created_at"]),
            settled_at=(
                datetime.fromisoformat(row["settled_at"]) if row["settled_at"] else None
            ),
        )
