# src/schemas/settlement.py

from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field, condecimal

Money = condecimal(max_digits=12, decimal_places=2, gt=0)

class SettleUpIn(BaseModel):
    """
    Settle-up с другом. amount необязателен: если прислан, он обязан совпасть
    с текущим |net| по паре (защита от устаревшего экрана).
    """
    friend_id: int
    amount: Optional[Money] = None

class SettleSplitIn(BaseModel):
    """Отметить долю погашенной; user_id нужен только плательщику."""
    user_id: Optional[int] = None

class SettlementOut(BaseModel):
    """
    Результат settle-up:
      from_user_id: должник (платит), to_user_id: кредитор.
    """
    expense_id: Optional[int] = None
    from_user_id: int
    to_user_id: int
    amount: Decimal
    settled_split_ids: List[int] = Field(default_factory=list)
