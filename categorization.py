"""Batch categorization orchestrator.

Transactions are classified by a remote bulk service that may take hours to
answer, so categorization runs as two independent cycles driven by the
scheduler:

- form_and_submit: claim the oldest unclassified, unbatched transactions
  into a new batch and submit it to the batch processor.
- poll_and_reconcile: poll every in-flight batch and, once the remote side
  reaches a terminal status, write the categories back or mark the batch
  failed.

Neither cycle keeps state in memory between invocations. Everything needed to
resume after a crash is in the database: a claimed transaction carries its
batch_id, and a batch stays CREATED until polling moves it to a terminal
status.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional
from llm.providers.base import BatchProcessor
from models.batch import Batch
from models.category import TransactionCategory
from services.batches import utcnow
from logger import get_logger

logger = get_logger()

COMPLETED_STATUS = "completed"
TERMINAL_FAILURE_STATUSES = frozenset({"failed", "expired", "cancelling", "cancelled"})

DEFAULT_BATCH_SIZE = 100
DEFAULT_PAGE_SIZE = 100


@dataclass
class PollSummary:
    """Outcome of one polling cycle."""

    completed: int = 0
    failed: int = 0
    in_flight: int = 0
    skipped: int = 0
    errors: int = 0

    @property
    def total(self) -> int:
        return self.completed + self.failed + self.in_flight + self.skipped + self.errors


class CategorizationOrchestrator:
    """Drives batches through submission, polling and reconciliation.

    Args:
        services: Services container with transactions and batches stores.
        processor: Backend implementing the BatchProcessor contract.
        batch_size: Maximum transactions per batch.
        page_size: Maximum in-flight batches polled per cycle.
        orphan_timeout: Age after which a CREATED batch that never got an
            external ID is failed and its members released. None disables
            the sweep.
        release_failed_transactions: When a remote batch fails, also return
            its members to the eligible pool.
        clock: Returns the current time (UTC).
    """

    def __init__(
        self,
        services,
        processor: BatchProcessor,
        batch_size: int = DEFAULT_BATCH_SIZE,
        page_size: int = DEFAULT_PAGE_SIZE,
        orphan_timeout: Optional[timedelta] = timedelta(minutes=60),
        release_failed_transactions: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        if batch_size < 1 or page_size < 1:
            raise ValueError("batch_size and page_size must be positive")

        self.services = services
        self.processor = processor
        self.batch_size = batch_size
        self.page_size = page_size
        self.orphan_timeout = orphan_timeout
        self.release_failed_transactions = release_failed_transactions
        self.clock = clock

    @classmethod
    def from_config(cls, config, services, processor: BatchProcessor):
        """Build an orchestrator using the categorization settings in config."""
        return cls(
            services,
            processor,
            batch_size=config.batch_size,
            page_size=config.poll_page_size,
            orphan_timeout=(
                timedelta(minutes=config.orphan_timeout_minutes)
                if config.orphan_timeout_minutes > 0
                else None
            ),
            release_failed_transactions=config.release_failed_transactions,
        )

    def form_and_submit(self) -> Optional[Batch]:
        """Form one batch from pending transactions and submit it.

        Members are claimed in the database before the remote call, so they
        are never selected again while the batch is in flight. If the
        submission fails the error propagates and the batch is left CREATED
        without an external ID; the orphan sweep picks it up later.

        Returns:
            The submitted batch, or None if nothing was eligible.
        """
        if self.orphan_timeout is not None:
            try:
                self.sweep_orphaned_batches()
            except Exception:
                logger.exception("Orphaned batch sweep failed")

        batch = self.services.batches.claim_pending(self.batch_size, created_at=self.clock())
        if batch is None:
            logger.debug("No pending transactions found for categorization.")
            return None

        logger.info(f"Formed batch {batch.id} with {len(batch.transactions)} transaction(s)")

        batch = self.processor.submit_batch(batch)
        self.services.batches.update(batch, ["external_id"])

        logger.info(
            f"Requested categorization for {len(batch.transactions)} transaction(s) "
            f"in batch {batch.id} (external ID {batch.external_id})"
        )
        return batch

    def poll_and_reconcile(self) -> PollSummary:
        """Poll in-flight batches and apply terminal outcomes.

        Each batch is handled and persisted on its own; an error on one batch
        is logged and the remaining batches are still processed.

        Returns:
            PollSummary with per-outcome counts.
        """
        summary = PollSummary()

        batches = self.services.batches.find_in_flight(self.page_size)
        if not batches:
            logger.debug("No in-flight batches to poll.")
            return summary

        for batch in batches:
            try:
                outcome = self._reconcile(batch)
            except Exception:
                logger.exception(f"Failed to reconcile batch {batch.id}")
                summary.errors += 1
                continue

            if outcome == "completed":
                summary.completed += 1
            elif outcome == "failed":
                summary.failed += 1
            elif outcome == "skipped":
                summary.skipped += 1
            else:
                summary.in_flight += 1

        logger.info(
            f"Polled {summary.total} batch(es): {summary.completed} completed, "
            f"{summary.failed} failed, {summary.in_flight} in flight, "
            f"{summary.skipped} already finalized, {summary.errors} errored"
        )
        return summary

    def sweep_orphaned_batches(self) -> int:
        """Fail CREATED batches that were never registered remotely.

        A batch without an external ID older than orphan_timeout means the
        process crashed or the remote call failed between claiming and
        registering. Its members are released so a later formation cycle
        batches them again.

        Returns:
            Number of batches swept.
        """
        if self.orphan_timeout is None:
            return 0

        cutoff = self.clock() - self.orphan_timeout
        swept = 0
        for batch in self.services.batches.find_orphaned(cutoff):
            if self.services.batches.fail(batch, release_transactions=True):
                logger.warning(
                    f"Batch {batch.id} was never submitted (created {batch.created_at.isoformat()}); "
                    "marked failed and released its transactions"
                )
                swept += 1
        return swept

    def _reconcile(self, batch: Batch) -> str:
        """Poll one batch and apply its status. Returns the local outcome."""
        status = self.processor.retrieve_batch_status(batch.id)

        if status == COMPLETED_STATUS:
            results = self.processor.retrieve_results(batch.id)
            for transaction in batch.transactions:
                transaction.category = TransactionCategory.resolve(results.get(transaction.id))

            if self.services.batches.complete(batch, completed_at=self.clock()):
                logger.info(
                    f"Batch {batch.id} completed; categorized {len(batch.transactions)} transaction(s)"
                )
                return "completed"
            logger.info(f"Batch {batch.id} was already finalized elsewhere")
            return "skipped"

        if status in TERMINAL_FAILURE_STATUSES:
            if self.services.batches.fail(
                batch, release_transactions=self.release_failed_transactions
            ):
                logger.warning(f"Batch {batch.id} ended remotely with status {status!r}")
                return "failed"
            logger.info(f"Batch {batch.id} was already finalized elsewhere")
            return "skipped"

        logger.debug(f"Batch {batch.id} still in progress (status {status!r})")
        return "in_flight"
