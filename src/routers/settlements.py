# src/routers/settlements.py
import logging

from fastapi import APIRouter, Depends
from starlette import status
from sqlalchemy.orm import Session

from src.db import get_db
from src.models.user import User
from src.schemas.settlement import SettleUpIn, SettlementOut
from src.services.settlements import settle_up
from src.utils.telegram_dep import get_current_telegram_user

log = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", response_model=SettlementOut, status_code=status.HTTP_201_CREATED)
def settle_up_with_friend(
    payload: SettleUpIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    """
    Погасить всё открытое с другом одной транзакцией:
    доли помечаются settled, платёж записывается расходом type='settlement'.
    """
    result = settle_up(db, current_user.id, payload.friend_id, payload.amount)
    db.commit()
    log.info(
        "settle-up: %s -> %s amount=%s splits=%s",
        result.from_user_id, result.to_user_id, result.amount, len(result.settled_split_ids),
    )
    return result
