# src/utils/groups.py
# ОБЩИЕ ХЕЛПЕРЫ: гарды по группам и загрузка расходов пользователя.

from __future__ import annotations

from typing import List

from fastapi import HTTPException
from starlette import status
from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session, Query, selectinload

from ..models.group import Group
from ..models.group_member import GroupMember
from ..models.expense import Expense
from ..models.expense_split import ExpenseSplit

# =========================
# БАЗОВЫЕ ГАРДЫ / ЗАГРУЗКИ
# =========================

def get_group_or_404(db: Session, group_id: int) -> Group:
    group = db.scalar(select(Group).where(Group.id == group_id))
    if not group:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Group not found")
    return group


def is_member(db: Session, group_id: int, user_id: int) -> bool:
    return bool(db.scalar(
        select(func.count())
        .select_from(GroupMember)
        .where(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
    ))


def require_membership(db: Session, group_id: int, user_id: int) -> Group:
    group = get_group_or_404(db, group_id)
    if not is_member(db, group_id, user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is not a group member")
    return group


def require_owner(db: Session, group_id: int, user_id: int) -> Group:
    group = get_group_or_404(db, group_id)
    if group.owner_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only owner can perform this action")
    return group


def get_group_member_ids(db: Session, group_id: int) -> List[int]:
    rows = db.execute(
        select(GroupMember.user_id).where(GroupMember.group_id == group_id)
    ).all()
    return [uid for (uid,) in rows]


def get_user_group_ids(db: Session, user_id: int) -> List[int]:
    rows = db.execute(
        select(GroupMember.group_id).where(GroupMember.user_id == user_id)
    ).all()
    return [gid for (gid,) in rows]


# =========================
# РАСХОДЫ ПОЛЬЗОВАТЕЛЯ
# =========================

def visible_expenses_query(db: Session, user_id: int) -> Query:
    """
    Расходы, которые видит пользователь: он плательщик или участник доли.
    """
    split_expense_ids = (
        select(ExpenseSplit.expense_id)
        .where(ExpenseSplit.user_id == user_id)
    )
    return (
        db.query(Expense)
        .options(selectinload(Expense.splits))
        .filter(or_(Expense.payer_id == user_id, Expense.id.in_(split_expense_ids)))
    )


def load_user_expenses(db: Session, user_id: int) -> List[Expense]:
    """Полный снимок для BalanceAggregator (fetch-then-compute)."""
    return visible_expenses_query(db, user_id).order_by(Expense.date.desc(), Expense.id.desc()).all()
