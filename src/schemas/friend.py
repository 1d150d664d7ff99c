# src/schemas/friend.py
from typing import Optional
from pydantic import BaseModel, model_validator
from datetime import datetime
from src.schemas.user import UserShortOut


class FriendAdd(BaseModel):
    """
    Добавить друга: по email (как в поиске) или по user_id.
    """
    email: Optional[str] = None
    user_id: Optional[int] = None

    @model_validator(mode="after")
    def _one_of(self):
        if not self.email and self.user_id is None:
            raise ValueError("email or user_id is required")
        if self.email:
            self.email = self.email.strip().lower()
        return self


class FriendRemove(BaseModel):
    friend_id: int


class FriendOut(BaseModel):
    """
    Одна связь дружбы глазами владельца списка:
      - user     -> профиль ДРУГА
      - user_id  -> владелец списка
    """
    id: int
    user_id: int
    friend_id: int
    created_at: datetime
    user: UserShortOut

    class Config:
        from_attributes = True
