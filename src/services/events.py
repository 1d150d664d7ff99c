from __future__ import annotations
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from src.models.event import Event

# Константы типов (используй в роутерах и сервисах)
FRIENDSHIP_CREATED = "friendship_created"
FRIENDSHIP_REMOVED = "friendship_removed"

GROUP_CREATED = "group_created"
MEMBER_ADDED = "member_added"

EXPENSE_CREATED = "expense_created"
EXPENSE_UPDATED = "expense_updated"
EXPENSE_DELETED = "expense_deleted"
SPLIT_SETTLED = "split_settled"
SETTLEMENT_RECORDED = "settlement_recorded"

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def log_event(
    db: Session,
    *,
    type: str,
    actor_id: int,
    group_id: Optional[int] = None,
    target_user_id: Optional[int] = None,
    expense_id: Optional[int] = None,
    data: Optional[Dict[str, Any]] = None,
    idempotency_key: Optional[str] = None,
) -> Event:
    """
    Единая точка записи событий. Вызывается в той же транзакции, что и бизнес-операция.
    Не делает commit. Если задан idempotency_key: повтор не создаёт дубль и не падает
    с IntegrityError (ON CONFLICT DO NOTHING на PostgreSQL и SQLite).
    """
    payload = {
        "type": type,
        "actor_id": actor_id,
        "group_id": group_id,
        "target_user_id": target_user_id,
        "expense_id": expense_id,
        "data": (data or {}),
        "idempotency_key": idempotency_key,
    }

    insert = _UPSERT_INSERTS.get(db.get_bind().dialect.name)
    if idempotency_key and insert is not None:
        stmt = (
            insert(Event.__table__)
            .values(**payload)
            .on_conflict_do_nothing(index_elements=["idempotency_key"])
        )
        db.execute(stmt)
        return db.query(Event).filter(Event.idempotency_key == idempotency_key).first()  # type: ignore

    # без идемпотентности: обычная ORM-вставка
    ev = Event(**payload)
    db.add(ev)
    return ev


def make_expense_diff(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Any]:
    """
    Дифф для EXPENSE_UPDATED: { changed: [...], diff: {field:{old,new}} }.
    """
    changed = []
    diff: Dict[str, Any] = {}
    keys = set(before.keys()) | set(after.keys())
    for k in sorted(keys):
        if before.get(k) != after.get(k):
            changed.append(k)
            diff[k] = {"old": before.get(k), "new": after.get(k)}
    return {"changed": changed, "diff": diff}


def expense_snapshot(expense: Any) -> Dict[str, Any]:
    """Снимок расхода для логов: числа и даты: строками (JSON-безопасно)."""
    def _str(v: Any) -> Optional[str]:
        return None if v is None else str(v)

    return {
        "description": expense.description,
        "amount": _str(expense.amount),
        "type": expense.type,
        "split_type": expense.split_type,
        "label": expense.label,
        "group_id": expense.group_id,
        "date": _str(expense.date),
        "splits": sorted(
            (
                {"user_id": s.user_id, "amount": _str(s.amount), "settled": bool(s.settled)}
                for s in (expense.splits or [])
            ),
            key=lambda x: x["user_id"],
        ),
    }
