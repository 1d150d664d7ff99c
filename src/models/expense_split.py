# src/models/expense_split.py
# -----------------------------------------------------------------------------
# МОДЕЛЬ: ExpenseSplit (SQLAlchemy): доля одного участника в расходе
# -----------------------------------------------------------------------------

from __future__ import annotations

from sqlalchemy import (
    Column,
    Integer,
    ForeignKey,
    Numeric,
    Boolean,
    DateTime,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from src.db import Base


class ExpenseSplit(Base):
    __tablename__ = "expense_splits"

    id = Column(Integer, primary_key=True, index=True)

    expense_id = Column(
        Integer,
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
        comment="ID расхода",
    )

    user_id = Column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
        comment="Участник (никогда не плательщик этого расхода)",
    )

    position = Column(Integer, nullable=False, default=0, comment="Порядок доли в расходе")

    amount = Column(
        Numeric(12, 2),
        nullable=False,
        comment="Сумма доли участника (NUMERIC(12,2))",
    )

    percentage = Column(
        Numeric(7, 4),
        nullable=True,
        comment="Процент от суммы (для split_type='percentage')",
    )

    settled = Column(Boolean, nullable=False, default=False)
    settled_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("expense_id", "user_id", name="uq_expense_splits_expense_user"),
        Index("ix_expense_splits_user", "user_id"),
    )

    expense = relationship("Expense", back_populates="splits")
    user = relationship("User", lazy="joined")
