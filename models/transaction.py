from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from models.category import TransactionCategory


class TransactionType(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


@dataclass
class Transaction:
    id: str  # caller-supplied, unique
    amount: Decimal  # signed
    timestamp: date
    description: str
    type: TransactionType
    account_number: str
    category: TransactionCategory = TransactionCategory.PENDING
    batch_id: Optional[str] = None  # set while a batch is classifying it

    @property
    def is_eligible_for_batching(self) -> bool:
        """True if the transaction is unclassified and not claimed by a batch."""
        return self.category is TransactionCategory.PENDING and self.batch_id is None

    def to_dict(self) -> dict:
        """Convert transaction to dictionary for display or export."""
        return {
            "id": self.id,
            "amount": str(self.amount),
            "timestamp": self.timestamp.isoformat(),
            "description": self.description,
            "transaction_type": self.type.value,
            "account_number": self.account_number,
            "category": self.category.value,
            "batch_id": self.batch_id,
        }
