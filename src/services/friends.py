from __future__ import annotations
from typing import List, Optional, Set

from sqlalchemy import or_
from sqlalchemy.orm import Session

from src.models.friend import Friend
from src.services.events import log_event, FRIENDSHIP_CREATED, FRIENDSHIP_REMOVED

def sorted_pair(a: int, b: int) -> tuple[int, int]:
    return (a, b) if a < b else (b, a)

def get_friendship(db: Session, a: int, b: int) -> Optional[Friend]:
    umin, umax = sorted_pair(a, b)
    return (
        db.query(Friend)
        .filter(Friend.user_min == umin, Friend.user_max == umax)
        .first()
    )

def friend_links(db: Session, user_id: int) -> List[Friend]:
    return (
        db.query(Friend)
        .filter(or_(Friend.user_min == user_id, Friend.user_max == user_id))
        .order_by(Friend.created_at.desc(), Friend.id.desc())
        .all()
    )

def get_friend_ids(db: Session, user_id: int) -> Set[int]:
    return {link.other_id(user_id) for link in friend_links(db, user_id)}

def ensure_friendship(
    db: Session,
    inviter_id: int,        # кто добавляет
    invitee_id: int,        # кого добавили
    group_id: int | None = None,
) -> Friend:
    """
    Гарантирует дружбу между inviter_id и invitee_id.
    Если её не было: создаёт запись и логирует FRIENDSHIP_CREATED (идемпотентно).
    Если уже есть: ничего не пишет. Не делает commit.
    """
    a, b = sorted_pair(inviter_id, invitee_id)

    link = get_friendship(db, a, b)
    if link:
        return link

    link = Friend(user_min=a, user_max=b)
    db.add(link)
    db.flush()  # остаёмся в общей транзакции

    log_event(
        db,
        type=FRIENDSHIP_CREATED,
        actor_id=inviter_id,
        target_user_id=invitee_id,
        group_id=group_id,
        idempotency_key=f"friendship_created:{a}:{b}:{link.id}",
    )

    return link

def remove_friendship(db: Session, actor_id: int, friend_id: int) -> bool:
    """
    Удаляет дружбу для ОБЕИХ сторон сразу: это одна строка пары, поэтому
    «половинчатого» состояния не бывает. Не делает commit: вызывающий
    коммитит удаление вместе с событием одной транзакцией.
    """
    link = get_friendship(db, actor_id, friend_id)
    if not link:
        return False

    link_id = link.id
    db.delete(link)
    log_event(
        db,
        type=FRIENDSHIP_REMOVED,
        actor_id=actor_id,
        target_user_id=friend_id,
        idempotency_key=f"friendship_removed:{link_id}",
    )
    return True
