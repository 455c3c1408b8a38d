"""db: ledger database library (SQLAlchemy).

Public exports
--------------
- ``Base`` and ``metadata`` for schema creation
- ORM models in ``db.models.expenses`` (re-exported for convenience)
- Engine/session helpers in ``db.client``
"""

from __future__ import annotations

from .models.expenses import Base, Expense

metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "Expense",
]
