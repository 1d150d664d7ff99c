# src/routers/users.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from starlette import status
from sqlalchemy.orm import Session

from src.models.user import User
from src.schemas.user import ProfileUpdate, UserOut, UserShortOut
from src.db import get_db
from src.services.friends import get_friendship
from src.utils.user import get_display_name, normalize_email
from src.utils.telegram_dep import get_current_telegram_user

log = logging.getLogger(__name__)

router = APIRouter()


@router.get("/me", response_model=UserOut)
async def get_me(current_user: User = Depends(get_current_telegram_user)):
    """
    Возвращает данные текущего пользователя через Telegram WebApp initData.
    Если имя ещё не задано: собираем его из first/last/username.
    """
    if not current_user.name:
        current_user.name = get_display_name(
            first_name=current_user.first_name,
            last_name=current_user.last_name,
            username=current_user.username,
            telegram_id=current_user.telegram_id,
        )
    return current_user


@router.put("/profile", response_model=UserOut)
def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    """Имя и email профиля. email уникален без учёта регистра."""
    taken = (
        db.query(User)
        .filter(User.email == payload.email, User.id != current_user.id)
        .first()
    )
    if taken:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already in use")

    current_user.name = payload.name
    current_user.email = payload.email
    db.add(current_user)
    db.commit()
    db.refresh(current_user)
    log.info("profile updated: user=%s", current_user.id)
    return current_user


@router.get("/search", response_model=UserShortOut)
def search_by_email(
    email: str = Query(..., min_length=3),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    """
    Поиск пользователя для добавления в друзья.
    Себя и уже добавленных друзей не возвращаем.
    """
    needle = normalize_email(email)
    user = db.query(User).filter(User.email == needle).first() if needle else None
    if not user or user.id == current_user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if get_friendship(db, current_user.id, user.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already friends")
    return user
