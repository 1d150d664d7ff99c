# tests/conftest.py
# Общие фикстуры: SQLite в памяти вместо PostgreSQL, авторизация по заголовку X-Test-User.

import os

os.environ.setdefault("TELEGRAM_BOT_TOKEN", "test-token")

import pytest
from fastapi import Depends, HTTPException, Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.db import Base, get_db
from src.main import app
from src.models.user import User
from src.services.friends import ensure_friendship
from src.utils.telegram_dep import get_current_telegram_user


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def _current_user(request: Request, db: Session = Depends(get_db)) -> User:
        raw = request.headers.get("X-Test-User")
        user = db.get(User, int(raw)) if raw else None
        if user is None:
            raise HTTPException(status_code=401, detail="User is not registered")
        return user

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_telegram_user] = _current_user
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db):
    counter = {"n": 0}

    def _make(name: str, email: str = None) -> User:
        counter["n"] += 1
        user = User(
            telegram_id=1000 + counter["n"],
            name=name,
            first_name=name,
            email=email if email is not None else f"{name.lower()}@example.com",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def befriend(db):
    def _befriend(a: User, b: User):
        link = ensure_friendship(db, a.id, b.id)
        db.commit()
        return link

    return _befriend


def auth(user: User) -> dict:
    return {"X-Test-User": str(user.id)}
