"""Helper utilities and fake collaborators for tests."""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from typing import Dict, List, Optional

from llm.providers.base import BatchProcessor, BatchNotFoundError
from models.batch import Batch
from models.transaction import Transaction, TransactionType


def make_transaction(transaction_id: str, **overrides) -> Transaction:
    """Build a Pending, unbatched transaction with sensible defaults."""
    fields = {
        "id": transaction_id,
        "amount": Decimal("-25.00"),
        "timestamp": date(2025, 1, 15),
        "description": f"PURCHASE {transaction_id}",
        "type": TransactionType.DEBIT,
        "account_number": "12345678",
    }
    fields.update(overrides)
    return Transaction(**fields)


def add_transactions(services, *transaction_ids: str) -> List[Transaction]:
    """Insert Pending transactions with the given IDs, in order."""
    transactions = [make_transaction(tid) for tid in transaction_ids]
    for transaction in transactions:
        services.transactions.create(transaction)
    return transactions


class FakeBatchProcessor(BatchProcessor):
    """Scripted BatchProcessor that records calls.

    Remote status defaults to default_status; set statuses[batch_id] to
    script a specific batch, results[batch_id] for its result mapping, and
    status_errors[batch_id] / submit_error to make a call raise.
    """

    def __init__(self, services, default_status: str = "in_progress"):
        self.services = services
        self.default_status = default_status
        self.statuses: Dict[str, str] = {}
        self.results: Dict[str, dict] = {}
        self.status_errors: Dict[str, Exception] = {}
        self.submit_error: Optional[Exception] = None
        self.submitted: List[List[str]] = []
        self.status_calls: List[str] = []
        self.results_calls: List[str] = []

    def submit_batch(self, batch: Batch) -> Batch:
        self.submitted.append([t.id for t in batch.transactions])
        if self.submit_error is not None:
            raise self.submit_error
        batch.external_id = f"ext-{len(self.submitted)}"
        return batch

    def retrieve_batch_status(self, batch_id: str) -> str:
        self.status_calls.append(batch_id)
        if batch_id in self.status_errors:
            raise self.status_errors[batch_id]

        batch = self.services.batches.find(batch_id, with_transactions=False)
        if batch is None or not batch.external_id:
            raise BatchNotFoundError(f"Batch {batch_id} not found or has no external ID")

        status = self.statuses.get(batch_id, self.default_status)
        batch.external_status = status
        if status == "completed":
            batch.output_locator = f"output-{batch_id}"
        self.services.batches.update(batch, ["external_status", "output_locator"])
        return status

    def retrieve_results(self, batch_id: str) -> dict:
        self.results_calls.append(batch_id)
        return dict(self.results.get(batch_id, {}))


class _FakeFiles:
    def __init__(self):
        self.uploads: List[dict] = []
        self.contents: Dict[str, str] = {}
        self.upload_error: Optional[Exception] = None

    def create(self, file, purpose):
        if self.upload_error is not None:
            raise self.upload_error
        filename, content, mime_type = file
        self.uploads.append(
            {
                "filename": filename,
                "content": content.decode("utf-8"),
                "mime_type": mime_type,
                "purpose": purpose,
            }
        )
        return SimpleNamespace(id=f"file-{len(self.uploads)}")

    def content(self, file_id):
        return SimpleNamespace(text=self.contents[file_id])


class _FakeBatches:
    def __init__(self):
        self.created: List[dict] = []
        self.remote: Dict[str, SimpleNamespace] = {}
        self.create_error: Optional[Exception] = None

    def create(self, **kwargs):
        if self.create_error is not None:
            raise self.create_error
        self.created.append(kwargs)
        return SimpleNamespace(id=f"batch_ext_{len(self.created)}")

    def retrieve(self, batch_id):
        return self.remote[batch_id]


class FakeOpenAIClient:
    """Stands in for openai.OpenAI with only the files and batches calls used."""

    def __init__(self):
        self.files = _FakeFiles()
        self.batches = _FakeBatches()

    def set_remote(self, external_id: str, status: str, output_file_id: Optional[str] = None):
        self.batches.remote[external_id] = SimpleNamespace(
            id=external_id,
            status=status,
            output_file_id=output_file_id,
            request_counts=SimpleNamespace(total=2, completed=2, failed=0),
        )
