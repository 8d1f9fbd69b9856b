"""Batch service for database operations."""

from datetime import datetime, timezone
from typing import List, Optional
from db.manager import write_transaction
from models.batch import Batch, BatchStatus
from models.category import TransactionCategory
from services.transactions import TransactionService, _TRANSACTION_SELECT_FIELDS

_BATCH_SELECT_FIELDS = """id, status, created_at, completed_at, external_id,
       external_status, output_locator"""


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _format_timestamp(value: datetime) -> str:
    # Fixed width so stored timestamps compare correctly as strings
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class BatchService:
    """Service for managing classification batches and their members."""

    def __init__(self, db_manager):
        """Initialize the batch service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager
        # Used only to convert rows; it shares the same db_manager
        self._transactions = TransactionService(db_manager)

    def claim_pending(
        self, limit: int, created_at: Optional[datetime] = None
    ) -> Optional[Batch]:
        """Form a new batch from the oldest eligible transactions.

        Selecting the eligible rows, inserting the batch and writing each
        member's batch_id happen inside one immediate write transaction, so
        two concurrent callers can never claim the same transaction.

        Args:
            limit: Maximum number of transactions in the batch.
            created_at: Creation timestamp (defaults to now).

        Returns:
            The new CREATED batch with its members, or None if no
            transaction was eligible (no batch row is written).

        Raises:
            ValueError: If limit is not positive.
        """
        if limit < 1:
            raise ValueError("limit must be positive")

        batch = Batch.new(created_at or utcnow())

        with self.db_manager.connect() as conn:
            with write_transaction(conn):
                cursor = conn.execute(
                    """
                    SELECT seq
                    FROM transactions
                    WHERE category = ? AND batch_id IS NULL
                    ORDER BY seq
                    LIMIT ?
                    """,
                    (TransactionCategory.PENDING.value, limit),
                )
                seqs = [row[0] for row in cursor.fetchall()]
                if not seqs:
                    return None

                conn.execute(
                    "INSERT INTO batches (id, status, created_at) VALUES (?, ?, ?)",
                    (batch.id, batch.status.value, _format_timestamp(batch.created_at)),
                )
                placeholders = ", ".join(["?"] * len(seqs))
                conn.execute(
                    f"UPDATE transactions SET batch_id = ? WHERE seq IN ({placeholders})",
                    [batch.id] + seqs,
                )
                batch.transactions = self._load_members(conn, batch.id)

        return batch

    def find(self, batch_id: str, with_transactions: bool = True) -> Optional[Batch]:
        """Get a single batch by ID.

        Args:
            batch_id: The local batch ID.
            with_transactions: Whether to load member transactions.

        Returns:
            Batch object if found, None otherwise.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_BATCH_SELECT_FIELDS} FROM batches WHERE id = ?",
                (batch_id,),
            )
            row = cursor.fetchone()
            if not row:
                return None

            batch = self._row_to_batch(row)
            if with_transactions:
                batch.transactions = self._load_members(conn, batch.id)
            return batch

    def find_by_status(
        self,
        status: Optional[BatchStatus] = None,
        limit: Optional[int] = None,
        with_transactions: bool = False,
    ) -> List[Batch]:
        """Get batches, oldest first.

        Args:
            status: Optional status filter.
            limit: Optional maximum number of batches.
            with_transactions: Whether to load member transactions.

        Returns:
            List of Batch objects ordered by created_at.
        """
        query = f"SELECT {_BATCH_SELECT_FIELDS} FROM batches"
        params: list = []

        if status is not None:
            query += " WHERE status = ?"
            params.append(status.value)

        query += " ORDER BY created_at, id"

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self.db_manager.connect() as conn:
            rows = conn.execute(query, params).fetchall()
            batches = [self._row_to_batch(row) for row in rows]
            if with_transactions:
                for batch in batches:
                    batch.transactions = self._load_members(conn, batch.id)
            return batches

    def find_in_flight(self, limit: int) -> List[Batch]:
        """Get CREATED batches with their members, oldest first."""
        return self.find_by_status(BatchStatus.CREATED, limit, with_transactions=True)

    def find_orphaned(self, created_before: datetime) -> List[Batch]:
        """Get CREATED batches that never received an external ID.

        Args:
            created_before: Only batches created strictly before this time.

        Returns:
            List of Batch objects (without members), oldest first.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT {_BATCH_SELECT_FIELDS}
                FROM batches
                WHERE status = ?
                  AND external_id IS NULL
                  AND created_at < ?
                ORDER BY created_at, id
                """,
                (BatchStatus.CREATED.value, _format_timestamp(created_before)),
            )
            return [self._row_to_batch(row) for row in cursor.fetchall()]

    def update(self, batch: Batch, field_names: List[str]) -> bool:
        """Update remote-tracking fields of a batch.

        Args:
            batch: Batch object carrying the new values.
            field_names: Fields to write. Supported fields:
                        'external_id', 'external_status', 'output_locator'

        Returns:
            True if the batch row exists and was updated.

        Raises:
            ValueError: If field_names is empty or has unsupported fields.
        """
        if not field_names:
            raise ValueError("field_names cannot be empty")

        supported_fields = {"external_id", "external_status", "output_locator"}
        invalid_fields = set(field_names) - supported_fields
        if invalid_fields:
            raise ValueError(f"Unsupported field names: {invalid_fields}")

        set_clause = ", ".join([f"{field} = ?" for field in field_names])
        values = [getattr(batch, field) for field in field_names]

        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"UPDATE batches SET {set_clause} WHERE id = ?",
                values + [batch.id],
            )
            conn.commit()
            return cursor.rowcount > 0

    def complete(self, batch: Batch, completed_at: Optional[datetime] = None) -> bool:
        """Mark a CREATED batch COMPLETED and write its members' categories.

        The status change and every category write share one transaction.
        The status change is conditional on the batch still being CREATED;
        if it is not, nothing is written.

        Args:
            batch: Batch whose transactions already carry their final categories.
            completed_at: Completion timestamp (defaults to now).

        Returns:
            True if the batch transitioned, False if it was already terminal.

        Raises:
            ValueError: If any member transaction is still PENDING.
        """
        pending = [t.id for t in batch.transactions if t.category is TransactionCategory.PENDING]
        if pending:
            raise ValueError(
                f"Batch {batch.id} cannot complete with pending transactions: {pending}"
            )

        completed_at = completed_at or utcnow()

        with self.db_manager.connect() as conn:
            with write_transaction(conn):
                cursor = conn.execute(
                    """
                    UPDATE batches
                    SET status = ?, completed_at = ?
                    WHERE id = ? AND status = ?
                    """,
                    (
                        BatchStatus.COMPLETED.value,
                        _format_timestamp(completed_at),
                        batch.id,
                        BatchStatus.CREATED.value,
                    ),
                )
                if cursor.rowcount == 0:
                    return False

                conn.executemany(
                    "UPDATE transactions SET category = ? WHERE id = ? AND batch_id = ?",
                    [(t.category.value, t.id, batch.id) for t in batch.transactions],
                )

        batch.status = BatchStatus.COMPLETED
        batch.completed_at = completed_at
        return True

    def fail(self, batch: Batch, release_transactions: bool = False) -> bool:
        """Mark a CREATED batch FAILED.

        Args:
            batch: Batch to fail.
            release_transactions: Also clear batch_id on members that are
                still PENDING, returning them to the eligible pool.

        Returns:
            True if the batch transitioned, False if it was already terminal.
        """
        with self.db_manager.connect() as conn:
            with write_transaction(conn):
                cursor = conn.execute(
                    "UPDATE batches SET status = ? WHERE id = ? AND status = ?",
                    (BatchStatus.FAILED.value, batch.id, BatchStatus.CREATED.value),
                )
                if cursor.rowcount == 0:
                    return False

                if release_transactions:
                    self._release_members(conn, batch.id)

        batch.status = BatchStatus.FAILED
        if release_transactions:
            for transaction in batch.transactions:
                if transaction.category is TransactionCategory.PENDING:
                    transaction.batch_id = None
        return True

    def release(self, batch_id: str) -> int:
        """Return a FAILED batch's unclassified members to the eligible pool.

        Args:
            batch_id: The local batch ID.

        Returns:
            Number of transactions released.

        Raises:
            LookupError: If the batch does not exist.
            ValueError: If the batch is not FAILED.
        """
        with self.db_manager.connect() as conn:
            with write_transaction(conn):
                row = conn.execute(
                    "SELECT status FROM batches WHERE id = ?", (batch_id,)
                ).fetchone()
                if row is None:
                    raise LookupError(f"Batch {batch_id} not found")
                if row[0] != BatchStatus.FAILED.value:
                    raise ValueError(
                        f"Batch {batch_id} is {row[0]}; only failed batches can be released"
                    )
                return self._release_members(conn, batch_id)

    def _release_members(self, conn, batch_id: str) -> int:
        cursor = conn.execute(
            "UPDATE transactions SET batch_id = NULL WHERE batch_id = ? AND category = ?",
            (batch_id, TransactionCategory.PENDING.value),
        )
        return cursor.rowcount

    def _load_members(self, conn, batch_id: str):
        cursor = conn.execute(
            f"""
            SELECT {_TRANSACTION_SELECT_FIELDS}
            FROM transactions
            WHERE batch_id = ?
            ORDER BY seq
            """,
            (batch_id,),
        )
        return [self._transactions._row_to_transaction(row) for row in cursor.fetchall()]

    def _row_to_batch(self, row: tuple) -> Batch:
        """Convert a database row to a Batch object."""
        return Batch(
            id=row[0],
            status=BatchStatus(row[1]),
            created_at=datetime.fromisoformat(row[2]),
            completed_at=datetime.fromisoformat(row[3]) if row[3] else None,
            external_id=row[4],
            external_status=row[5],
            output_locator=row[6],
        )
