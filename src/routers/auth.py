# src/routers/auth.py
"""
Вход в приложение деления счетов.
Первый вход по initData регистрирует пользователя; дальше роутеры
узнают его через get_current_telegram_user и ничего не создают.
"""

import logging

from fastapi import APIRouter, HTTPException, Request, Depends
from sqlalchemy.orm import Session

from src.db import get_db
from src.schemas.user import UserOut
from src.models.user import User
from src.utils.telegram_dep import validate_and_sync_user

log = logging.getLogger(__name__)

router = APIRouter()


@router.post("/telegram", response_model=UserOut)
async def login_with_telegram(request: Request, db: Session = Depends(get_db)) -> User:
    """POST /api/auth/telegram с телом {"initData": "..."}: профиль текущего пользователя."""
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Body must be JSON with initData")

    init_data = payload.get("initData") if isinstance(payload, dict) else None
    if not isinstance(init_data, str) or not init_data.strip():
        raise HTTPException(status_code=400, detail="initData is required")

    user = validate_and_sync_user(init_data, db, create_if_missing=True)
    log.debug("login: user=%s", user.id)
    return user
