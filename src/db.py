# src/db.py
# Инициализация SQLAlchemy: Base, ленивый объект Database (движок + сессии) и get_db.
#
#   • Движок создаётся один раз при первом обращении (под threading.Lock),
#     повторные вызовы получают уже готовый объект.
#   • Первое подключение проверяется SELECT 1 и повторяется с экспоненциальной паузой.

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from src import config

log = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """
    Держит движок и фабрику сессий. Создание ленивое и идемпотентное:
    конкурентные первые вызовы init() создадут движок ровно один раз.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        engine_factory: Callable[..., Engine] = create_engine,
        retries: int = config.DB_CONNECT_RETRIES,
        backoff: float = config.DB_CONNECT_BACKOFF,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._url = url
        self._engine_factory = engine_factory
        self._retries = retries
        self._backoff = backoff
        self._sleep = sleep
        self._lock = threading.Lock()
        self._engine: Optional[Engine] = None
        self._sessionmaker: Optional[sessionmaker] = None

    @property
    def initialized(self) -> bool:
        return self._engine is not None

    def _create_engine(self) -> Engine:
        url = self._url or config.DATABASE_URL
        if not url:
            raise RuntimeError("DATABASE_URL is not set")
        if url.startswith("sqlite"):
            return self._engine_factory(url)
        return self._engine_factory(
            url,
            pool_size=config.DB_POOL_SIZE,
            max_overflow=config.DB_MAX_OVERFLOW,
            pool_timeout=60,
            pool_recycle=1800,
            pool_pre_ping=True,
        )

    def _connect_with_retry(self, engine: Engine) -> None:
        attempt = 0
        while True:
            try:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                return
            except OperationalError:
                if attempt >= self._retries:
                    log.exception("database connection failed, giving up after %s retries", attempt)
                    raise
                delay = self._backoff * (2 ** attempt)
                attempt += 1
                log.warning(
                    "database connection failed, retrying in %.1fs (%s attempts left)",
                    delay,
                    self._retries - attempt + 1,
                )
                self._sleep(delay)

    def init(self) -> Engine:
        if self._engine is not None:
            return self._engine
        with self._lock:
            # второй поток мог успеть, пока мы ждали лок
            if self._engine is None:
                engine = self._create_engine()
                self._connect_with_retry(engine)
                self._sessionmaker = sessionmaker(autocommit=False, autoflush=False, bind=engine)
                self._engine = engine
                log.info("database engine initialised")
        return self._engine

    @property
    def engine(self) -> Engine:
        return self.init()

    def session(self) -> Session:
        self.init()
        return self._sessionmaker()

    def dispose(self) -> None:
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._sessionmaker = None


database = Database()

# модели регистрируются в Base.metadata при импорте
from src.models import (  # noqa: E402,F401
    user,
    friend,
    group,
    group_member,
    expense,
    expense_split,
    event,
)


def get_db():
    db = database.session()
    try:
        yield db
    finally:
        db.close()
