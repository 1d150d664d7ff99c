# src/schemas/event.py
from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel

class EventOut(BaseModel):
    id: int
    type: str
    actor_id: int
    group_id: Optional[int] = None
    target_user_id: Optional[int] = None
    expense_id: Optional[int] = None
    data: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True
