"""Batch model tracking one submission to the remote classification service."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional
import uuid

from models.transaction import Transaction


class BatchStatus(str, Enum):
    """Local lifecycle of a batch. COMPLETED and FAILED are terminal."""

    CREATED = "created"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not BatchStatus.CREATED


@dataclass
class Batch:
    """Represents a group of transactions submitted for classification.

    Attributes:
        id: Locally generated identifier.
        status: Local lifecycle status.
        created_at: When the batch was formed (UTC).
        completed_at: When the batch reached COMPLETED (UTC).
        external_id: Identifier assigned by the remote service, set once
            submission succeeds.
        external_status: Raw status string last reported by the remote service.
        output_locator: Remote handle for downloading results.
        transactions: Member transactions, in batching order.
    """

    id: str
    status: BatchStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
    external_id: Optional[str] = None
    external_status: Optional[str] = None
    output_locator: Optional[str] = None
    transactions: List[Transaction] = field(default_factory=list)

    @classmethod
    def new(cls, created_at: datetime) -> "Batch":
        """Create a fresh CREATED batch with a generated id."""
        return cls(id=uuid.uuid4().hex, status=BatchStatus.CREATED, created_at=created_at)

    @property
    def is_submitted(self) -> bool:
        return self.external_id is not None
