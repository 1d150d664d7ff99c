# src/schemas/group.py
# -----------------------------------------------------------------------------
# СХЕМЫ Pydantic: Group
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import List
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .group_member import GroupMemberOut


class GroupCreate(BaseModel):
    name: str = Field(..., description="Название группы")
    # друзья, которых сразу добавить в группу (владелец добавляется всегда)
    member_ids: List[int] = Field(default_factory=list, description="ID участников")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Group name is required")
        return v


class GroupOut(BaseModel):
    id: int = Field(..., description="ID группы")
    name: str = Field(..., description="Название группы")
    owner_id: int = Field(..., description="ID владельца группы")
    created_at: datetime
    members: List[GroupMemberOut] = Field(default_factory=list, description="Состав группы")

    class Config:
        from_attributes = True
