"""SQLAlchemy models registry for the ledger database."""

from .expenses import Base, Expense

__all__ = [
    "Base",
    "Expense",
]
