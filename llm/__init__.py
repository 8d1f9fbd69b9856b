"""Remote classification backends for transaction categorization."""

from llm.factory import get_batch_processor

__all__ = ["get_batch_processor"]
