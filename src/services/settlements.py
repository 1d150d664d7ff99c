# src/services/settlements.py
# -----------------------------------------------------------------------------
# СЕРВИС: погашение долей и settle-up с другом
# -----------------------------------------------------------------------------
# Все изменения одной операции идут в текущую сессию без commit: роутер
# коммитит один раз, любая ошибка до commit откатывает всё целиком.
# -----------------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from starlette import status
from sqlalchemy.orm import Session

from src.models.expense import Expense
from src.models.expense_split import ExpenseSplit
from src.schemas.settlement import SettlementOut
from src.services.events import log_event, SPLIT_SETTLED, SETTLEMENT_RECORDED
from src.utils.balance import pair_open_splits
from src.utils.groups import load_user_expenses
from src.utils.splits import to_money, ZERO


def settle_split(db: Session, expense: Expense, actor_id: int, user_id: Optional[int] = None) -> ExpenseSplit:
    """
    Отмечает долю погашенной.
      • участник гасит свою долю (user_id можно не передавать);
      • плательщик может погасить долю любого участника (user_id обязателен).
    Повторный вызов для уже погашенной доли ничего не меняет.
    """
    if expense.type != "split":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Only split expenses have shares to settle")

    if actor_id == expense.payer_id:
        if user_id is None:
            raise HTTPException(status_code=422, detail="user_id is required when the payer settles a share")
        target = user_id
    else:
        if user_id is not None and user_id != actor_id:
            raise HTTPException(status_code=403, detail="You can only settle your own share")
        target = actor_id

    split = expense.split_for(target)
    if split is None:
        if actor_id != expense.payer_id and target == actor_id:
            raise HTTPException(status_code=403, detail="You are not a participant of this expense")
        raise HTTPException(status_code=404, detail="Share not found")

    if split.settled:
        return split

    split.settled = True
    split.settled_at = datetime.utcnow()
    log_event(
        db,
        type=SPLIT_SETTLED,
        actor_id=actor_id,
        group_id=expense.group_id,
        target_user_id=target,
        expense_id=expense.id,
        data={"user_id": target, "amount": str(split.amount)},
        idempotency_key=f"split:{split.id}:settled:{split.settled_at.isoformat()}",
    )
    return split


def settle_up(db: Session, actor_id: int, friend_id: int, amount: Optional[Decimal] = None) -> SettlementOut:
    """
    Settle-up по паре (actor, friend):
      1) все непогашенные доли между ними (в обе стороны) помечаются settled;
      2) если net != 0: пишется расход type='settlement' (платит должник,
         единственная доля кредитора сразу погашена) как запись о платеже.
    """
    if friend_id == actor_id:
        raise HTTPException(status_code=422, detail="Cannot settle up with yourself")

    open_pairs = pair_open_splits(load_user_expenses(db, actor_id), actor_id, friend_id)
    if not open_pairs:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "nothing_to_settle", "message": "There are no open shares with this user"},
        )

    # net > 0: друг должен нам, net < 0: мы должны другу
    net = ZERO
    for expense, split in open_pairs:
        share = to_money(split.amount)
        net += share if expense.payer_id == actor_id else -share

    if amount is not None and to_money(amount) != net.copy_abs():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "code": "settlement_amount_mismatch",
                "message": "Settlement amount does not match the open balance",
                "expected": str(net.copy_abs()),
                "actual": str(to_money(amount)),
            },
        )

    now = datetime.utcnow()
    settled_ids = []
    for _expense, split in open_pairs:
        split.settled = True
        split.settled_at = now
        settled_ids.append(split.id)

    debtor, creditor = (friend_id, actor_id) if net > 0 else (actor_id, friend_id)
    record: Optional[Expense] = None
    if net != ZERO:
        record = Expense(
            description="Settlement",
            amount=net.copy_abs(),
            payer_id=debtor,
            type="settlement",
            label="other",
            date=now,
            created_at=now,
            updated_at=now,
        )
        record.splits = [
            ExpenseSplit(user_id=creditor, position=0, amount=net.copy_abs(), settled=True, settled_at=now)
        ]
        db.add(record)
    db.flush()

    log_event(
        db,
        type=SETTLEMENT_RECORDED,
        actor_id=actor_id,
        target_user_id=friend_id,
        expense_id=record.id if record else None,
        data={
            "from_user_id": debtor,
            "to_user_id": creditor,
            "amount": str(net.copy_abs()),
            "split_ids": settled_ids,
        },
    )

    return SettlementOut(
        expense_id=record.id if record else None,
        from_user_id=debtor,
        to_user_id=creditor,
        amount=net.copy_abs(),
        settled_split_ids=settled_ids,
    )
