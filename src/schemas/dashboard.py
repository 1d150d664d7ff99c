# src/schemas/dashboard.py
from __future__ import annotations

from decimal import Decimal
from typing import List

from pydantic import BaseModel


# --------- Баланс с одним контрагентом ---------
class CounterpartyBalanceOut(BaseModel):
    user_id: int
    name: str                 # "Unknown", если профиль не найден
    email: str = ""
    you_owe: Decimal
    they_owe: Decimal
    net_amount: Decimal       # >0: должны мне, <0: должен я


# --------- Баланс (верхняя полоса) ---------
class DashboardBalanceOut(BaseModel):
    total_owed: Decimal
    total_owe: Decimal
    net_balance: Decimal
    counterparties: List[CounterpartyBalanceOut]


# --------- Сводка ---------
class DashboardSummaryOut(BaseModel):
    expense_count: int
    total_paid: Decimal          # сумма расходов, где я плательщик (без settlement)
    open_expense_count: int      # расходы, где не все доли погашены
