# src/routers/expenses.py
# -----------------------------------------------------------------------------
# РОУТЕР: Расходы (+ пакетный импорт, погашение доли)
# -----------------------------------------------------------------------------
# Ошибки деления (SplitCalculator) приходят значением SplitError и
# превращаются в 422 с { code, message, expected, actual }.
# Каждая мутация коммитится один раз: расход, доли и событие: одной транзакцией.
# -----------------------------------------------------------------------------
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import ValidationError
from starlette import status
from sqlalchemy.orm import Session

from src.db import get_db
from src.models.expense import Expense
from src.models.expense_split import ExpenseSplit
from src.models.user import User
from src.schemas.expense import (
    ExpenseBatchIn,
    ExpenseBatchItemOut,
    ExpenseBatchOut,
    ExpenseCreate,
    ExpenseLabel,
    ExpenseOut,
    ExpenseUpdate,
)
from src.schemas.expense_split import ExpenseSplitOut
from src.schemas.settlement import SettleSplitIn
from src.services.events import log_event, expense_snapshot, EXPENSE_DELETED
from src.services.expenses import (
    create_expense,
    load_expense_or_404,
    split_error_to_http,
    update_expense,
)
from src.services.settlements import settle_split
from src.utils.groups import is_member, visible_expenses_query
from src.utils.telegram_dep import get_current_telegram_user

log = logging.getLogger(__name__)

router = APIRouter()

SortKey = Literal["date-desc", "date-asc", "amount-desc", "amount-asc"]
Period = Literal["this-month", "last-month", "this-year"]
Role = Literal["created", "participating"]

_SORTS = {
    "date-desc": (Expense.date.desc(), Expense.id.desc()),
    "date-asc": (Expense.date.asc(), Expense.id.asc()),
    "amount-desc": (Expense.amount.desc(), Expense.id.desc()),
    "amount-asc": (Expense.amount.asc(), Expense.id.asc()),
}


# ===== Вспомогательные ========================================================

def _period_to_range(today: date, period: str) -> tuple[datetime, datetime]:
    """[start, end) для быстрых фильтров периода."""
    if period == "this-month":
        start = today.replace(day=1)
        end = (start + timedelta(days=32)).replace(day=1)
    elif period == "last-month":
        end = today.replace(day=1)
        start = (end - timedelta(days=1)).replace(day=1)
    else:
        start = date(today.year, 1, 1)
        end = date(today.year + 1, 1, 1)
    return datetime.combine(start, time.min), datetime.combine(end, time.min)


def _can_view(db: Session, expense: Expense, user_id: int) -> bool:
    if expense.payer_id == user_id or expense.split_for(user_id) is not None:
        return True
    return expense.group_id is not None and is_member(db, expense.group_id, user_id)


def _get_visible_or_error(db: Session, expense_id: int, user_id: int) -> Expense:
    expense = load_expense_or_404(db, expense_id)
    if not _can_view(db, expense, user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Expense is not available")
    return expense


def _validation_errors(exc: ValidationError) -> List[Dict[str, Any]]:
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]


# ===== Эндпоинты ==============================================================

@router.get("/", response_model=List[ExpenseOut])
def list_expenses(
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
    label: Optional[ExpenseLabel] = Query(None, description="Фильтр по метке"),
    group_id: Optional[int] = Query(None, description="Фильтр по группе"),
    role: Optional[Role] = Query(None, description="created: я платил, participating: у меня доля"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None, description="Включительно"),
    period: Optional[Period] = Query(None),
    sort: SortKey = Query("date-desc"),
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
):
    qy = visible_expenses_query(db, current_user.id)

    if label is not None:
        qy = qy.filter(Expense.label == label)
    if group_id is not None:
        qy = qy.filter(Expense.group_id == group_id)

    if role == "created":
        qy = qy.filter(Expense.payer_id == current_user.id)
    elif role == "participating":
        qy = qy.filter(
            Expense.payer_id != current_user.id,
            Expense.splits.any(ExpenseSplit.user_id == current_user.id),
        )

    if period is not None:
        start, end = _period_to_range(date.today(), period)
        qy = qy.filter(Expense.date >= start, Expense.date < end)
    if date_from is not None:
        qy = qy.filter(Expense.date >= datetime.combine(date_from, time.min))
    if date_to is not None:
        qy = qy.filter(Expense.date < datetime.combine(date_to + timedelta(days=1), time.min))

    total = qy.count()
    items = qy.order_by(*_SORTS[sort]).offset(offset).limit(limit).all()

    response.headers["X-Total-Count"] = str(total)
    return items


@router.get("/{expense_id}", response_model=ExpenseOut)
def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    return _get_visible_or_error(db, expense_id, current_user.id)


@router.post("/", response_model=ExpenseOut, status_code=status.HTTP_201_CREATED)
def create_expense_endpoint(
    data: ExpenseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    expense, error = create_expense(db, current_user, data)
    if error is not None:
        db.rollback()
        raise split_error_to_http(error)

    db.commit()
    db.refresh(expense)
    log.info("expense created: id=%s payer=%s amount=%s", expense.id, current_user.id, expense.amount)
    return expense


@router.post("/batch", response_model=ExpenseBatchOut)
def create_expenses_batch(
    payload: ExpenseBatchIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    """
    Пакетный импорт: каждая запись проверяется и сохраняется отдельно.
    Ошибка одной записи попадает в её результат и не мешает остальным.
    """
    results: List[ExpenseBatchItemOut] = []

    for index, raw in enumerate(payload.items):
        try:
            data = ExpenseCreate.model_validate(raw)
            expense, error = create_expense(db, current_user, data)
        except ValidationError as e:
            db.rollback()
            results.append(ExpenseBatchItemOut(
                index=index, ok=False,
                error={"code": "validation_error", "message": "Invalid expense", "errors": _validation_errors(e)},
            ))
            continue
        except HTTPException as e:
            db.rollback()
            detail = e.detail if isinstance(e.detail, dict) else {"code": "rejected", "message": str(e.detail)}
            results.append(ExpenseBatchItemOut(index=index, ok=False, error=detail))
            continue

        if error is not None:
            db.rollback()
            results.append(ExpenseBatchItemOut(index=index, ok=False, error=error.as_dict()))
            continue

        db.commit()
        db.refresh(expense)
        results.append(ExpenseBatchItemOut(index=index, ok=True, expense=ExpenseOut.model_validate(expense)))

    created = sum(1 for r in results if r.ok)
    log.info("expense batch: user=%s created=%s failed=%s", current_user.id, created, len(results) - created)
    return ExpenseBatchOut(created=created, failed=len(results) - created, results=results)


@router.put("/{expense_id}", response_model=ExpenseOut)
def update_expense_endpoint(
    expense_id: int,
    data: ExpenseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    expense = load_expense_or_404(db, expense_id)
    error = update_expense(db, expense, current_user, data)
    if error is not None:
        db.rollback()
        raise split_error_to_http(error)

    db.commit()
    db.refresh(expense)
    return expense


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    expense = db.query(Expense).filter(Expense.id == expense_id).first()
    if not expense:
        # повторное удаление: не ошибка
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    if expense.payer_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the payer can delete this expense")
    if expense.type == "settlement":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Settlement records cannot be deleted")

    snapshot = expense_snapshot(expense)
    group_id = expense.group_id
    db.delete(expense)
    log_event(
        db,
        type=EXPENSE_DELETED,
        actor_id=current_user.id,
        group_id=group_id,
        data={"expense_id": expense_id, **snapshot},
        idempotency_key=f"expense:{expense_id}:deleted",
    )
    db.commit()
    log.info("expense deleted: id=%s by=%s", expense_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{expense_id}/settle", response_model=ExpenseSplitOut)
def settle_expense_split(
    expense_id: int,
    payload: Optional[SettleSplitIn] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    expense = load_expense_or_404(db, expense_id)
    split = settle_split(db, expense, current_user.id, payload.user_id if payload else None)
    db.commit()
    db.refresh(split)
    return split
