# src/schemas/expense.py
# -----------------------------------------------------------------------------
# СХЕМЫ Pydantic: Expense
# -----------------------------------------------------------------------------
# Цели:
#   • Типобезопасные входные/выходные модели для FastAPI.
#   • Бизнес-проверки сумм (положительность, сумма долей, 100%): НЕ здесь,
#     а в SplitCalculator: он возвращает структурированную ошибку, которую
#     роутер превращает в 422, а пакетный импорт: в результат по записи.
#   • Деньги в JSON: строки с двумя знаками ("50.00").
# -----------------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

from src.schemas.expense_split import ExpenseSplitIn, ExpenseSplitOut, Money
from src.schemas.user import UserShortOut

ExpenseLabel = Literal[
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
]


class ExpenseBase(BaseModel):
    description: str
    amount: Money
    type: Literal["solo", "split"] = "split"
    split_type: Literal["equal", "percentage", "exact"] = "equal"
    label: ExpenseLabel = "other"
    group_id: Optional[int] = None
    date: Optional[datetime] = None

    @field_validator("description")
    @classmethod
    def _strip_description(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Description is required")
        return v


class ExpenseCreate(ExpenseBase):
    splits: List[ExpenseSplitIn] = Field(default_factory=list)


class ExpenseUpdate(ExpenseBase):
    """
    Обновление расхода (только плательщик). Массив splits заменяется целиком;
    признак settled переносится для тех участников, чья сумма доли не изменилась.
    """
    splits: List[ExpenseSplitIn] = Field(default_factory=list)


class ExpenseOut(BaseModel):
    id: int
    description: str
    amount: Decimal
    payer_id: int
    payer: Optional[UserShortOut] = None
    group_id: Optional[int] = None
    type: str
    split_type: Optional[str] = None
    label: str
    date: datetime
    created_at: datetime
    updated_at: datetime
    payer_share: Decimal
    splits: List[ExpenseSplitOut] = Field(default_factory=list)

    class Config:
        from_attributes = True


# --------- Пакетный импорт ---------
class ExpenseBatchIn(BaseModel):
    # сырые записи: каждая валидируется отдельно, одна плохая не ломает пачку
    items: List[Dict[str, Any]] = Field(..., min_length=1, max_length=500)


class ExpenseBatchItemOut(BaseModel):
    index: int
    ok: bool
    expense: Optional[ExpenseOut] = None
    error: Optional[Dict[str, Any]] = None


class ExpenseBatchOut(BaseModel):
    created: int
    failed: int
    results: List[ExpenseBatchItemOut]
