# src/routers/friends.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from starlette import status
from sqlalchemy.orm import Session

from src.db import get_db
from src.models.user import User
from src.models.friend import Friend
from src.schemas.friend import FriendAdd, FriendOut, FriendRemove
from src.schemas.user import UserShortOut
from src.services.friends import ensure_friendship, friend_links, get_friendship, remove_friendship
from src.utils.telegram_dep import get_current_telegram_user

log = logging.getLogger(__name__)

router = APIRouter(tags=["Друзья"])


# =========================
# ВСПОМОГАТЕЛЬНЫЕ ФУНКЦИИ
# =========================

def _friend_out(link: Friend, owner_id: int, friend: Optional[User]) -> FriendOut:
    """
    FriendOut глазами владельца списка: user -> профиль друга.
    Если профиль друга не найден: отдаём заглушку с id.
    """
    friend_id = link.other_id(owner_id)
    if friend is None:
        short = UserShortOut(id=friend_id, name="Unknown", email=None)
    else:
        short = UserShortOut.model_validate(friend)
    return FriendOut(
        id=link.id,
        user_id=owner_id,
        friend_id=friend_id,
        created_at=link.created_at,
        user=short,
    )


def _find_target(db: Session, payload: FriendAdd) -> Optional[User]:
    if payload.user_id is not None:
        return db.query(User).filter(User.id == payload.user_id).first()
    return db.query(User).filter(User.email == payload.email).first()


def _remove(db: Session, current_user: User, friend_id: int) -> None:
    if not remove_friendship(db, current_user.id, friend_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Friendship not found")
    db.commit()
    log.info("friendship removed: user=%s friend=%s", current_user.id, friend_id)


# =========================
# ЭНДПОИНТЫ
# =========================

@router.get("/", response_model=List[FriendOut])
def list_friends(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    """Список друзей текущего пользователя, новые сверху."""
    links = friend_links(db, current_user.id)
    ids = [link.other_id(current_user.id) for link in links]
    profiles = {u.id: u for u in db.query(User).filter(User.id.in_(ids)).all()} if ids else {}
    return [_friend_out(link, current_user.id, profiles.get(link.other_id(current_user.id))) for link in links]


@router.post("/", response_model=FriendOut, status_code=status.HTTP_201_CREATED)
def add_friend(
    payload: FriendAdd,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    """
    Добавить друга по email или user_id.
    Дружба взаимная сразу: одна строка пары видна обеим сторонам.
    """
    target = _find_target(db, payload)
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if target.id == current_user.id:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Cannot add yourself as a friend")
    if get_friendship(db, current_user.id, target.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already friends")

    link = ensure_friendship(db, current_user.id, target.id)
    db.commit()
    db.refresh(link)
    log.info("friendship created: user=%s friend=%s", current_user.id, target.id)
    return _friend_out(link, current_user.id, target)


@router.post("/remove", status_code=status.HTTP_204_NO_CONTENT)
def remove_friend(
    payload: FriendRemove,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    _remove(db, current_user, payload.friend_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{friend_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_friend(
    friend_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    _remove(db, current_user, friend_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
