# src/services/expenses.py
# -----------------------------------------------------------------------------
# СЕРВИС: сборка и сохранение расходов
# -----------------------------------------------------------------------------
# Общий код для POST /expenses, PUT /expenses/{id} и пакетного импорта:
#   1) проверка доступа (группа, участники): HTTPException;
#   2) деление суммы: SplitCalculator, ошибка возвращается значением;
#   3) запись Expense + ExpenseSplit + событие в текущей сессии (без commit).
# -----------------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from fastapi import HTTPException
from starlette import status
from sqlalchemy.orm import Session, selectinload

from src.models.expense import Expense
from src.models.expense_split import ExpenseSplit
from src.models.user import User
from src.schemas.expense import ExpenseBase, ExpenseCreate, ExpenseUpdate
from src.services.events import (
    log_event,
    expense_snapshot,
    make_expense_diff,
    EXPENSE_CREATED,
    EXPENSE_UPDATED,
)
from src.services.friends import get_friend_ids
from src.utils.groups import require_membership, get_group_member_ids
from src.utils.splits import (
    ParticipantInput,
    Share,
    SplitError,
    SplitOutcome,
    build_shares,
    owed_shares,
    to_money,
    ZERO,
    SplitErrorCode,
)


def split_error_to_http(error: SplitError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=error.as_dict())


def load_expense_or_404(db: Session, expense_id: int) -> Expense:
    expense = (
        db.query(Expense)
        .options(selectinload(Expense.splits))
        .filter(Expense.id == expense_id)
        .first()
    )
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense


# =========================
# ПРОВЕРКИ ДОСТУПА
# =========================

def check_participants(db: Session, payer_id: int, data: ExpenseBase, participant_ids: List[int]) -> None:
    """
    • Если указана группа: плательщик обязан быть её участником.
    • Каждый участник доли: друг плательщика или участник группы.
    • Сам плательщик не может быть участником доли (его доля остаётся у него);
      для 'equal' это тихо игнорируется, для 'percentage'/'exact' строка
      плательщика превращается в его собственную долю.
    """
    allowed = set(get_friend_ids(db, payer_id))
    if data.group_id is not None:
        require_membership(db, data.group_id, payer_id)
        allowed |= set(get_group_member_ids(db, data.group_id))

    foreign = sorted({uid for uid in participant_ids if uid != payer_id and uid not in allowed})
    if foreign:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "code": "participant_not_allowed",
                "message": "Participants must be your friends or members of the group",
                "user_ids": foreign,
            },
        )


# =========================
# ДЕЛЕНИЕ
# =========================

def plan_shares(data: ExpenseBase, payer_id: int, splits) -> SplitOutcome:
    """Доли всех, кто делит расход; для 'solo': пусто (всё на плательщике)."""
    if data.type == "solo":
        total = to_money(data.amount)
        if total <= ZERO:
            return SplitOutcome.failure(
                SplitErrorCode.INVALID_AMOUNT,
                "Amount must be greater than zero",
                actual=total,
            )
        return SplitOutcome.success(())

    participants = [
        ParticipantInput(user_id=s.user_id, amount=s.amount, percentage=s.percentage)
        for s in splits
    ]
    return build_shares(data.amount, payer_id, data.split_type, participants)


def _split_rows(
    shares: List[Share],
    payer_id: int,
    previous: Optional[Dict[int, ExpenseSplit]] = None,
) -> List[ExpenseSplit]:
    rows: List[ExpenseSplit] = []
    for position, share in enumerate(owed_shares(shares, payer_id)):
        old = (previous or {}).get(share.user_id)
        # погашенная доля остаётся погашенной, если её сумма не поменялась
        keep_settled = bool(old is not None and old.settled and to_money(old.amount) == share.amount)
        rows.append(
            ExpenseSplit(
                user_id=share.user_id,
                position=position,
                amount=share.amount,
                percentage=share.percentage,
                settled=keep_settled,
                settled_at=old.settled_at if keep_settled else None,
            )
        )
    return rows


# =========================
# СОЗДАНИЕ / ОБНОВЛЕНИЕ
# =========================

def create_expense(db: Session, payer: User, data: ExpenseCreate) -> Tuple[Optional[Expense], Optional[SplitError]]:
    """
    Проверяет и добавляет расход в сессию (flush, без commit).
    Возвращает (expense, None) или (None, SplitError).
    """
    splits = data.splits if data.type == "split" else []
    check_participants(db, payer.id, data, [s.user_id for s in splits])

    outcome = plan_shares(data, payer.id, splits)
    if not outcome.ok:
        return None, outcome.error

    now = datetime.utcnow()
    expense = Expense(
        description=data.description,
        amount=to_money(data.amount),
        payer_id=payer.id,
        group_id=data.group_id,
        type=data.type,
        split_type=data.split_type if data.type == "split" else None,
        label=data.label,
        date=data.date or now,
        created_at=now,
        updated_at=now,
    )
    expense.splits = _split_rows(list(outcome.shares), payer.id)
    db.add(expense)
    db.flush()

    log_event(
        db,
        type=EXPENSE_CREATED,
        actor_id=payer.id,
        group_id=expense.group_id,
        expense_id=expense.id,
        data=expense_snapshot(expense),
        idempotency_key=f"expense:{expense.id}:created",
    )
    return expense, None


def update_expense(
    db: Session,
    expense: Expense,
    actor: User,
    patch: ExpenseUpdate,
) -> Optional[SplitError]:
    """
    Полная замена полей и массива долей (только плательщик). Без commit.
    Возвращает SplitError, если новое деление не проходит проверку.
    """
    if expense.payer_id != actor.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the payer can edit this expense")
    if expense.type == "settlement":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Settlement records cannot be edited")

    splits = patch.splits if patch.type == "split" else []
    check_participants(db, actor.id, patch, [s.user_id for s in splits])

    outcome = plan_shares(patch, actor.id, splits)
    if not outcome.ok:
        return outcome.error

    before = expense_snapshot(expense)
    previous = {s.user_id: s for s in (expense.splits or [])}
    new_rows = _split_rows(list(outcome.shares), actor.id, previous)

    # старые строки удаляем отдельным flush: иначе INSERT новых упрётся
    # в уникальность (expense_id, user_id) раньше, чем уйдут DELETE
    expense.splits.clear()
    db.flush()

    expense.description = patch.description
    expense.amount = to_money(patch.amount)
    expense.group_id = patch.group_id
    expense.type = patch.type
    expense.split_type = patch.split_type if patch.type == "split" else None
    expense.label = patch.label
    if patch.date is not None:
        expense.date = patch.date
    expense.updated_at = datetime.utcnow()
    expense.splits.extend(new_rows)
    db.flush()

    diff = make_expense_diff(before, expense_snapshot(expense))
    if diff["changed"]:
        log_event(
            db,
            type=EXPENSE_UPDATED,
            actor_id=actor.id,
            group_id=expense.group_id,
            expense_id=expense.id,
            data=diff,
        )
    return None
