"""Transaction service for database operations."""

from typing import List, Optional, Tuple
from datetime import date
from decimal import Decimal
from models.category import TransactionCategory
from models.transaction import Transaction, TransactionType

# SQL Query Constants
_TRANSACTION_SELECT_FIELDS = """id, amount, timestamp, description, transaction_type,
       account_number, category, batch_id"""

_TRANSACTION_INSERT_FIELDS = """id, amount, timestamp, description, transaction_type,
    account_number, category, batch_id"""

# Automatically generate placeholders from field count
_TRANSACTION_INSERT_PLACEHOLDERS = (
    f"({', '.join(['?'] * len(_TRANSACTION_INSERT_FIELDS.split(',')))})"
)


class TransactionService:
    """Service for managing transactions."""

    def __init__(self, db_manager):
        """Initialize the transaction service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def create(self, transaction: Transaction) -> Transaction:
        """Create a single transaction in the database.

        Args:
            transaction: Transaction object to insert.

        Returns:
            The same Transaction object.

        Raises:
            sqlite3.IntegrityError: If a transaction with the same ID exists.
        """
        with self.db_manager.connect() as conn:
            conn.execute(
                f"""
                INSERT INTO transactions ({_TRANSACTION_INSERT_FIELDS})
                VALUES {_TRANSACTION_INSERT_PLACEHOLDERS}
                """,
                self._transaction_to_row(transaction),
            )
            conn.commit()

        return transaction

    def find(self, transaction_id: str) -> Optional[Transaction]:
        """Get a single transaction by ID.

        Args:
            transaction_id: The caller-supplied transaction ID.

        Returns:
            Transaction object if found, None otherwise.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT {_TRANSACTION_SELECT_FIELDS}
                FROM transactions
                WHERE id = ?
                """,
                (transaction_id,),
            )
            row = cursor.fetchone()

            if row:
                return self._row_to_transaction(row)
            return None

    def find_all(
        self,
        page: int = 1,
        limit: int = 10,
        *,
        category: Optional[TransactionCategory] = None,
    ) -> Tuple[List[Transaction], int]:
        """Get one page of transactions in insertion order.

        Args:
            page: 1-based page number.
            limit: Page size.
            category: Optional category filter.

        Returns:
            Tuple of (transactions on the page, total matching count).

        Raises:
            ValueError: If page or limit is not positive.
        """
        if page < 1 or limit < 1:
            raise ValueError("page and limit must be positive")

        where = ""
        params: list = []
        if category is not None:
            where = "WHERE category = ?"
            params.append(category.value)

        with self.db_manager.connect() as conn:
            total = conn.execute(
                f"SELECT COUNT(*) FROM transactions {where}", params
            ).fetchone()[0]

            cursor = conn.execute(
                f"""
                SELECT {_TRANSACTION_SELECT_FIELDS}
                FROM transactions
                {where}
                ORDER BY seq
                LIMIT ? OFFSET ?
                """,
                params + [limit, (page - 1) * limit],
            )
            rows = cursor.fetchall()

            return [self._row_to_transaction(row) for row in rows], total

    def count_eligible(self) -> int:
        """Count transactions waiting to be put in a batch."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "SELECT COUNT(*) FROM transactions WHERE category = ? AND batch_id IS NULL",
                (TransactionCategory.PENDING.value,),
            )
            return cursor.fetchone()[0]

    def _transaction_to_row(self, transaction: Transaction) -> tuple:
        return (
            transaction.id,
            float(transaction.amount),
            transaction.timestamp.isoformat(),
            transaction.description,
            transaction.type.value,
            transaction.account_number,
            transaction.category.value,
            transaction.batch_id,
        )

    def _row_to_transaction(self, row: tuple) -> Transaction:
        """Convert a database row to a Transaction object."""
        return Transaction(
            id=row[0],
            amount=Decimal(str(row[1])),
            timestamp=date.fromisoformat(row[2]),
            description=row[3],
            type=TransactionType(row[4]),
            account_number=row[5],
            category=TransactionCategory(row[6]),
            batch_id=row[7],
        )
