from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CHAR,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import expression as sa_expr


class Base(DeclarativeBase):
    pass


# ---------------------------
# Core: se_expenses
# ---------------------------


class Expense(Base):
    __tablename__ = "se_expenses"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    # Positive magnitude; direction lives in ``is_income``.
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    is_income: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.false()
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    store: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    balance: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String, nullable=True)
    account_name: Mapped[str | None] = mapped_column(String, nullable=True)
    account_type: Mapped[str | None] = mapped_column(String, nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String, nullable=True)
    source: Mapped[str] = mapped_column(String, nullable=False)
    original_line: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Set for statement imports only; manual and captured rows may repeat.
    fingerprint_sha256: Mapped[str | None] = mapped_column(CHAR(64), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_se_expenses_amount_positive"),
        CheckConstraint(
            "source in ('statement','sms','notification','manual')",
            name="ck_se_expenses_source",
        ),
        Index("ix_se_expenses_date", "date"),
        Index("ix_se_expenses_category", "category"),
    )


__all__ = [
    "Base",
    "Expense",
]
