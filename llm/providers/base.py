"""Base processor interface for bulk classification backends."""

from abc import ABC, abstractmethod
from typing import Dict
from models.batch import Batch
from models.category import TransactionCategory


class BatchProcessorError(Exception):
    """Base class for errors raised by a BatchProcessor."""


class BatchNotFoundError(BatchProcessorError, LookupError):
    """The batch is unknown, has no members, or was never registered remotely."""


class BatchNotReadyError(BatchProcessorError):
    """Results were requested before the remote service produced any output."""


class BatchProcessor(ABC):
    """Abstract base class for bulk classification backends.

    The orchestrator talks to the remote service only through these three
    operations. Each one is independently callable and may be retried by
    calling it again on a later cycle.
    """

    @abstractmethod
    def submit_batch(self, batch: Batch) -> Batch:
        """Submit a batch's transactions for classification.

        Args:
            batch: A CREATED batch whose members are already claimed.

        Returns:
            The same batch with external_id set. The caller persists it.

        Raises:
            Exception: If uploading or registering the batch fails. Nothing
                is partially recorded on the batch in that case.
        """

    @abstractmethod
    def retrieve_batch_status(self, batch_id: str) -> str:
        """Poll the remote service for a batch's status.

        Implementations mirror the raw status and any output locator into
        the stored batch before returning.

        Args:
            batch_id: Local batch ID.

        Returns:
            The remote status string, e.g. "in_progress" or "completed".

        Raises:
            BatchNotFoundError: If the batch is unknown or has no external_id.
        """

    @abstractmethod
    def retrieve_results(self, batch_id: str) -> Dict[str, TransactionCategory]:
        """Download and resolve the classification results of a batch.

        Args:
            batch_id: Local batch ID.

        Returns:
            Mapping of transaction ID to category for every member. Members
            without a usable answer map to MISCELLANEOUS.

        Raises:
            BatchNotFoundError: If the batch or its members can't be loaded.
            BatchNotReadyError: If the batch has no output locator yet.
        """
