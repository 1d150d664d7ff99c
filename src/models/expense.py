# src/models/expense.py
# -----------------------------------------------------------------------------
# МОДЕЛЬ: Expense (SQLAlchemy)
# -----------------------------------------------------------------------------
# Деньги: NUMERIC(12,2): ровно копейки, без float.
# Доля плательщика не хранится отдельной строкой: это amount - sum(splits).
# -----------------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    Numeric,
    DateTime,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from src.db import Base

EXPENSE_TYPES = ("solo", "split", "settlement")
SPLIT_TYPES = ("equal", "percentage", "exact")
EXPENSE_LABELS = (
    "food",
    "groceries",
    "transport",
    "shopping",
    "entertainment",
    "utilities",
    "rent",
    "health",
    "travel",
    "education",
    "other",
)


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)

    description = Column(
        String,
        nullable=False,
        comment="Описание расхода",
    )

    amount = Column(
        Numeric(12, 2),
        nullable=False,
        comment="Общая сумма (NUMERIC(12,2))",
    )

    payer_id = Column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
        comment="Кто оплатил",
    )

    group_id = Column(
        Integer,
        ForeignKey("groups.id", ondelete="SET NULL"),
        nullable=True,
        comment="Группа (NULL: личный контекст)",
    )

    type = Column(
        String(16),
        nullable=False,
        default="split",
        comment="'solo' | 'split' | 'settlement'",
    )

    split_type = Column(
        String(16),
        nullable=True,
        comment="Способ деления для type='split': 'equal' | 'percentage' | 'exact'",
    )

    label = Column(
        String(32),
        nullable=False,
        default="other",
        comment="Категория расхода",
    )

    date = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        comment="Дата расхода (редактируется пользователем)",
    )

    created_at = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        comment="Когда создана запись",
    )

    updated_at = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        comment="Когда последний раз изменяли",
    )

    __table_args__ = (
        Index("ix_expenses_payer", "payer_id"),
        Index("ix_expenses_group", "group_id"),
        Index("ix_expenses_date", "date"),
        CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
    )

    payer = relationship("User", foreign_keys=[payer_id], lazy="joined")
    group = relationship("Group", lazy="joined")

    splits = relationship(
        "ExpenseSplit",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ExpenseSplit.position",
        lazy="selectin",
    )

    @property
    def payer_share(self) -> Decimal:
        """Доля, оставшаяся на плательщике: amount - sum(splits)."""
        owed = sum((Decimal(str(s.amount)) for s in (self.splits or [])), Decimal("0"))
        return (Decimal(str(self.amount)) - owed).quantize(Decimal("0.01"))

    def split_for(self, user_id: int):
        for s in self.splits or []:
            if s.user_id == user_id:
                return s
        return None
