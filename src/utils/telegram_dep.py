# src/utils/telegram_dep.py
"""
Утилиты авторизации через Telegram WebApp initData.
- validate_and_sync_user: валидация initData + ленивое обновление полей пользователя в БД
- get_current_telegram_user: FastAPI-зависимость (не создаёт пользователя, только валидирует и обновляет)
"""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from src import config
from src.db import get_db
from src.models.user import User
from src.utils.user import get_display_name
from telegram_webapp_auth.auth import TelegramAuthenticator, generate_secret_key

log = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_authenticator() -> TelegramAuthenticator:
    """Аутентификатор создаётся при первом запросе: токен нужен только для auth."""
    if not config.TELEGRAM_BOT_TOKEN:
        raise RuntimeError("TELEGRAM_BOT_TOKEN is not set")
    return TelegramAuthenticator(generate_secret_key(config.TELEGRAM_BOT_TOKEN))


def _normalize_lang(code: Optional[str]) -> str:
    """
    Схлопываем код языка до {ru,en,es}.
    Если язык не пришёл: используем 'en'.
    """
    if not code:
        return "en"
    c = code.lower()
    if "-" in c:
        c = c.split("-")[0]
    return c if c in {"ru", "en", "es"} else "en"


def _get_init_data_from_request(request: Request, body: Optional[dict]) -> Optional[str]:
    """
    Пытаемся достать initData:
      - из JSON body (ключ 'initData')
      - из заголовка 'x-telegram-initdata'
      - из query (?init_data=...)
    """
    if body and isinstance(body, dict):
        v = body.get("initData")
        if isinstance(v, str) and v.strip():
            return v

    header_v = request.headers.get("x-telegram-initdata")
    if header_v:
        return header_v

    q = request.query_params.get("init_data")
    if q:
        return q

    return None


def _apply_user_fields_from_tg(u: User, tg_user) -> bool:
    """
    Копируем в User поля из Telegram-профиля. Возвращает True, если что-то изменилось.
    Имя, заданное через профиль (PUT /users/profile), не перетираем.
    """
    changed = False

    def upd(field: str, new_val):
        nonlocal changed
        if getattr(u, field) != new_val:
            setattr(u, field, new_val)
            changed = True

    upd("first_name", getattr(tg_user, "first_name", None))
    upd("last_name", getattr(tg_user, "last_name", None))
    upd("username", getattr(tg_user, "username", None))
    upd("photo_url", getattr(tg_user, "photo_url", None))
    upd("language_code", _normalize_lang(getattr(tg_user, "language_code", None)))
    upd("allows_write_to_pm", getattr(tg_user, "allows_write_to_pm", getattr(u, "allows_write_to_pm", True)))

    if not u.name:
        u.name = get_display_name(
            first_name=u.first_name, last_name=u.last_name, username=u.username, telegram_id=u.telegram_id
        )
        changed = True

    return changed


def validate_and_sync_user(init_data: str, db: Session, *, create_if_missing: bool) -> User:
    """
    Валидирует initData, находит/создаёт пользователя и лениво обновляет его поля.
    """
    if not init_data:
        raise HTTPException(status_code=401, detail="initData is required")

    try:
        result = get_authenticator().validate(init_data)
    except RuntimeError:
        raise
    except Exception as e:
        log.warning("telegram auth failed: %s", e)
        raise HTTPException(status_code=401, detail=f"Auth error: {str(e)}")

    tg_user = result.user
    telegram_id = tg_user.id

    user: Optional[User] = db.query(User).filter_by(telegram_id=telegram_id).first()

    if not user:
        if not create_if_missing:
            raise HTTPException(status_code=401, detail="User is not registered")
        user = User(
            telegram_id=telegram_id,
            first_name=getattr(tg_user, "first_name", None),
            last_name=getattr(tg_user, "last_name", None),
            username=getattr(tg_user, "username", None),
            photo_url=getattr(tg_user, "photo_url", None),
            language_code=_normalize_lang(getattr(tg_user, "language_code", None)),
            allows_write_to_pm=getattr(tg_user, "allows_write_to_pm", True),
        )
        user.name = get_display_name(
            first_name=user.first_name,
            last_name=user.last_name,
            username=user.username,
            telegram_id=user.telegram_id,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        log.info("user registered: id=%s telegram_id=%s", user.id, telegram_id)
        return user

    if _apply_user_fields_from_tg(user, tg_user):
        db.add(user)
        db.commit()
        db.refresh(user)

    return user


async def _read_init_data(request: Request) -> str:
    body = None
    if request.method in {"POST", "PUT", "PATCH"}:
        try:
            body = await request.json()
        except Exception:
            body = None

    init_data = _get_init_data_from_request(request, body)
    if not init_data:
        raise HTTPException(
            status_code=401,
            detail="initData required (JSON 'initData', header 'x-telegram-initdata' or '?init_data=...')",
        )
    return init_data


async def get_current_telegram_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Зависимость для защищённых ручек: достаёт initData, валидирует,
    находит существующего пользователя и лениво обновляет его поля.
    """
    init_data = await _read_init_data(request)
    return validate_and_sync_user(init_data, db, create_if_missing=False)

