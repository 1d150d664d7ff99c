# src/schemas/group_member.py
from pydantic import BaseModel
from .user import UserShortOut

class GroupMemberCreate(BaseModel):
    user_id: int

class GroupMemberOut(BaseModel):
    id: int
    group_id: int
    user_id: int
    user: UserShortOut
    class Config:
        from_attributes = True
