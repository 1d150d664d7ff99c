from sqlalchemy import Column, Integer, String, DateTime, JSON, func, UniqueConstraint, Index
from sqlalchemy.dialects.postgresql import JSONB
from src.db import Base

class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)

    # кто совершил действие
    actor_id = Column(Integer, nullable=False)

    # к какой группе относится (может быть NULL для персональных событий)
    group_id = Column(Integer, nullable=True)

    # над кем действие (дружба, settle-up): может быть NULL
    target_user_id = Column(Integer, nullable=True)

    # связь с расходом, если событие о расходе
    expense_id = Column(Integer, nullable=True)

    # тип события
    type = Column(String(64), nullable=False)

    # произвольные данные события (JSONB на PostgreSQL)
    data = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True, default=dict)

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    # идемпотентный ключ, чтобы не записывать дубль при ретраях
    idempotency_key = Column(String(128), nullable=True)

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_events_idempotency_key"),
        Index("ix_events_actor", "actor_id"),
        Index("ix_events_target", "target_user_id"),
    )

    def __repr__(self) -> str:
        return f"<Event id={self.id} type={self.type} actor={self.actor_id} group={self.group_id}>"
