# src/routers/groups.py
# -----------------------------------------------------------------------------
# РОУТЕР: Группы
# -----------------------------------------------------------------------------
# Группа - необязательная рамка для расходов. Участники группы могут делить
# расход между собой, даже если не дружат напрямую.
# Добавлять в группу можно только своих друзей; добавляет владелец.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from starlette import status
from sqlalchemy import select
from sqlalchemy.orm import Session

from src.db import get_db
from src.models.group import Group
from src.models.group_member import GroupMember
from src.models.user import User
from src.schemas.group import GroupCreate, GroupOut
from src.schemas.group_member import GroupMemberCreate, GroupMemberOut
from src.services.events import log_event, GROUP_CREATED, MEMBER_ADDED
from src.services.friends import get_friend_ids
from src.utils.groups import (
    get_group_member_ids,
    get_user_group_ids,
    require_membership,
    require_owner,
)
from src.utils.telegram_dep import get_current_telegram_user

log = logging.getLogger(__name__)

router = APIRouter()


# ===== Хелперы ================================================================

def _require_friends(db: Session, owner_id: int, user_ids: List[int]) -> None:
    friends = get_friend_ids(db, owner_id)
    strangers = sorted({uid for uid in user_ids if uid != owner_id and uid not in friends})
    if strangers:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "code": "member_not_friend",
                "message": "Only friends can be added to a group",
                "user_ids": strangers,
            },
        )


def add_member_to_group(db: Session, group: Group, user_id: int, actor_id: int) -> GroupMember:
    """Добавляет участника и пишет событие. Без commit."""
    member = GroupMember(group_id=group.id, user_id=user_id)
    db.add(member)
    db.flush()
    log_event(
        db,
        type=MEMBER_ADDED,
        actor_id=actor_id,
        group_id=group.id,
        target_user_id=user_id,
        idempotency_key=f"group:{group.id}:member_added:{user_id}",
    )
    return member


# ===== Эндпоинты ==============================================================

@router.get("/", response_model=List[GroupOut])
def get_my_groups(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    """Группы, в которых состоит текущий пользователь."""
    group_ids = get_user_group_ids(db, current_user.id)
    if not group_ids:
        return []
    return db.scalars(
        select(Group).where(Group.id.in_(group_ids)).order_by(Group.created_at.desc(), Group.id.desc())
    ).all()


@router.post("/", response_model=GroupOut, status_code=status.HTTP_201_CREATED)
def create_group(
    payload: GroupCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    """Создать группу: владелец становится участником, member_ids должны быть друзьями."""
    member_ids = [uid for uid in dict.fromkeys(payload.member_ids) if uid != current_user.id]
    _require_friends(db, current_user.id, member_ids)

    group = Group(name=payload.name, owner_id=current_user.id)
    db.add(group)
    db.flush()

    db.add(GroupMember(group_id=group.id, user_id=current_user.id))
    log_event(
        db,
        type=GROUP_CREATED,
        actor_id=current_user.id,
        group_id=group.id,
        data={"name": group.name},
        idempotency_key=f"group:{group.id}:created",
    )
    for uid in member_ids:
        add_member_to_group(db, group, uid, current_user.id)

    db.commit()
    db.refresh(group)
    log.info("group created: id=%s owner=%s members=%s", group.id, current_user.id, len(member_ids) + 1)
    return group


@router.get("/{group_id}", response_model=GroupOut)
def get_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    return require_membership(db, group_id, current_user.id)


@router.post("/{group_id}/members", response_model=GroupMemberOut, status_code=status.HTTP_201_CREATED)
def add_group_member(
    group_id: int,
    payload: GroupMemberCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    group = require_owner(db, group_id, current_user.id)
    if payload.user_id in get_group_member_ids(db, group_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User is already a group member")
    _require_friends(db, current_user.id, [payload.user_id])

    member = add_member_to_group(db, group, payload.user_id, current_user.id)
    db.commit()
    db.refresh(member)
    return member


@router.get("/{group_id}/member-ids", response_model=List[int])
def get_member_ids(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    require_membership(db, group_id, current_user.id)
    return get_group_member_ids(db, group_id)
