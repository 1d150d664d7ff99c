# src/schemas/expense_split.py
# -----------------------------------------------------------------------------
# СХЕМЫ Pydantic: ExpenseSplit (доли участников)
# -----------------------------------------------------------------------------
# Суммы и проценты принимаются «как есть»: квантование до копеек и сверку
# с общей суммой делает SplitCalculator (src/utils/splits.py).
# -----------------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, condecimal

from src.schemas.user import UserShortOut

# Денежное поле без фиксированного decimal_places; целая часть влезает в NUMERIC(12,2)
Money = condecimal(max_digits=12, lt=Decimal("10000000000"))
Percent = condecimal(max_digits=9)


class ExpenseSplitIn(BaseModel):
    user_id: int = Field(..., description="ID участника")
    # для split_type='exact'
    amount: Optional[Money] = Field(default=None, description="Сумма доли участника")
    # для split_type='percentage'
    percentage: Optional[Percent] = Field(default=None, description="Процент от суммы (0–100)")


class ExpenseSplitOut(BaseModel):
    id: int
    user_id: int
    amount: Decimal
    percentage: Optional[Decimal] = None
    settled: bool
    settled_at: Optional[datetime] = None
    user: Optional[UserShortOut] = None

    class Config:
        from_attributes = True
