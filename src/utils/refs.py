# src/utils/refs.py
# Ссылки на пользователей: либо только id (Unresolved), либо id + профиль (Resolved).
# Код выдачи проверяет тип ссылки через isinstance, а не «форму» объекта.

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Union

from sqlalchemy.orm import Session

from src.models.user import User

UNKNOWN_NAME = "Unknown"


@dataclass(frozen=True)
class Unresolved:
    id: int


@dataclass(frozen=True)
class Resolved:
    id: int
    name: str
    email: Optional[str] = None


UserRef = Union[Unresolved, Resolved]


def resolve_users(db: Session, user_ids: Iterable[int]) -> Dict[int, UserRef]:
    """Одним запросом подтягивает профили; ненайденные остаются Unresolved."""
    ids = {int(uid) for uid in user_ids if uid is not None}
    if not ids:
        return {}
    users = db.query(User).filter(User.id.in_(ids)).all()
    found = {u.id: Resolved(id=u.id, name=u.name or UNKNOWN_NAME, email=u.email) for u in users}
    return {uid: found.get(uid, Unresolved(id=uid)) for uid in ids}


def display_name(ref: UserRef) -> str:
    if isinstance(ref, Resolved):
        return ref.name
    return UNKNOWN_NAME


def display_email(ref: UserRef) -> str:
    if isinstance(ref, Resolved):
        return ref.email or ""
    return ""
