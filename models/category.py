"""Category enumeration for transaction classification."""

from enum import Enum
from typing import List


class TransactionCategory(str, Enum):
    """Fixed set of categories a transaction can be assigned.

    PENDING marks a transaction that has not been classified yet and is never
    a valid classification result. MISCELLANEOUS is the fallback for anything
    the classifier returns that is not one of the assignable categories.
    """

    PENDING = "Pending"
    GROCERIES = "Groceries"
    DINING_OUT = "Dining Out"
    UTILITIES = "Utilities"
    TRANSPORTATION = "Transportation"
    ENTERTAINMENT = "Entertainment"
    HEALTHCARE = "Healthcare"
    SHOPPING = "Shopping"
    HOUSING = "Housing"
    EDUCATION = "Education"
    MISCELLANEOUS = "Miscellaneous"

    @classmethod
    def assignable(cls) -> List["TransactionCategory"]:
        """All categories a classifier may return (everything except PENDING)."""
        return [category for category in cls if category is not cls.PENDING]

    @classmethod
    def resolve(cls, value: object) -> "TransactionCategory":
        """Map a raw classifier answer onto an assignable category.

        Matching is case-insensitive and ignores surrounding whitespace.
        Anything that does not match, including PENDING itself, None and
        non-string values, resolves to MISCELLANEOUS.

        Args:
            value: Raw category value, usually a string from the classifier.

        Returns:
            An assignable TransactionCategory. Never PENDING.
        """
        if isinstance(value, cls):
            return value if value is not cls.PENDING else cls.MISCELLANEOUS

        if not isinstance(value, str):
            return cls.MISCELLANEOUS

        wanted = value.strip().lower()
        for category in cls.assignable():
            if category.value.lower() == wanted:
                return category
        return cls.MISCELLANEOUS
