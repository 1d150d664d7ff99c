# src/routers/dashboard.py
from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.db import get_db
from src.models.user import User
from src.schemas.dashboard import (
    CounterpartyBalanceOut,
    DashboardBalanceOut,
    DashboardSummaryOut,
)
from src.utils.telegram_dep import get_current_telegram_user
from src.utils.balance import aggregate_user_balance, sort_counterparties
from src.utils.groups import load_user_expenses
from src.utils.refs import resolve_users, display_name, display_email, Unresolved
from src.utils.splits import to_money, ZERO

router = APIRouter()


# =========================
# Баланс
# =========================

@router.get("/balance", response_model=DashboardBalanceOut)
def get_dashboard_balance(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    """
    Итоги по всем открытым долям пользователя:
      total_owed: должны мне, total_owe: должен я, net_balance = owed - owe.
    Контрагенты отсортированы по убыванию |net|; имя «Unknown», если профиля нет.
    """
    expenses = load_user_expenses(db, current_user.id)
    balance = aggregate_user_balance(expenses, current_user.id)

    ordered = sort_counterparties(balance.counterparties)
    refs = resolve_users(db, [uid for uid, _ in ordered])

    counterparties = []
    for uid, cp in ordered:
        ref = refs.get(uid, Unresolved(id=uid))
        counterparties.append(CounterpartyBalanceOut(
            user_id=uid,
            name=display_name(ref),
            email=display_email(ref),
            you_owe=to_money(cp.you_owe),
            they_owe=to_money(cp.they_owe),
            net_amount=to_money(cp.net_amount),
        ))

    return DashboardBalanceOut(
        total_owed=to_money(balance.total_owed),
        total_owe=to_money(balance.total_owe),
        net_balance=to_money(balance.net_balance),
        counterparties=counterparties,
    )


# =========================
# Сводка
# =========================

@router.get("/summary", response_model=DashboardSummaryOut)
def get_dashboard_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    expenses = [e for e in load_user_expenses(db, current_user.id) if e.type != "settlement"]

    total_paid: Decimal = ZERO
    open_count = 0
    for e in expenses:
        if e.payer_id == current_user.id:
            total_paid += to_money(e.amount)
        if any(not s.settled for s in e.splits):
            open_count += 1

    return DashboardSummaryOut(
        expense_count=len(expenses),
        total_paid=to_money(total_paid),
        open_expense_count=open_count,
    )
