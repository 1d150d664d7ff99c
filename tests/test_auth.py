from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from src.models.user import User
from src.utils import telegram_dep
from src.utils.refs import Resolved, Unresolved, display_email, display_name, resolve_users


class FakeAuthenticator:
    def __init__(self, **tg_user):
        self.tg_user = SimpleNamespace(**tg_user)

    def validate(self, init_data):
        if init_data != "valid":
            raise ValueError("bad hash")
        return SimpleNamespace(user=self.tg_user)


@pytest.fixture()
def tg_user(monkeypatch):
    fake = FakeAuthenticator(id=777, first_name="Ivan", last_name="Petrov", username="ivan", language_code="ru-RU")
    monkeypatch.setattr(telegram_dep, "get_authenticator", lambda: fake)
    return fake


def test_first_login_creates_user(client, db, tg_user):
    r = client.post("/api/auth/telegram", json={"initData": "valid"})

    assert r.status_code == 200, r.text
    assert r.json()["name"] == "Ivan Petrov"
    assert r.json()["language_code"] == "ru"
    assert db.query(User).filter(User.telegram_id == 777).count() == 1


def test_login_updates_profile_but_keeps_chosen_name(client, db, tg_user):
    client.post("/api/auth/telegram", json={"initData": "valid"})
    user = db.query(User).filter(User.telegram_id == 777).one()
    user.name = "Vanya"
    db.commit()

    tg_user.tg_user.username = "ivan_p"
    r = client.post("/api/auth/telegram", json={"initData": "valid"})

    assert (r.json()["name"], r.json()["username"]) == ("Vanya", "ivan_p")


def test_invalid_init_data_is_401(client, tg_user):
    assert client.post("/api/auth/telegram", json={"initData": "forged"}).status_code == 401


def test_missing_init_data_is_400(client, tg_user):
    assert client.post("/api/auth/telegram", json={}).status_code == 400


def test_login_body_must_be_json(client, tg_user):
    r = client.post("/api/auth/telegram", content="initData=valid", headers={"Content-Type": "application/json"})
    assert r.status_code == 400


def test_protected_routes_do_not_register_users(db, tg_user):
    with pytest.raises(HTTPException) as exc:
        telegram_dep.validate_and_sync_user("valid", db, create_if_missing=False)

    assert exc.value.status_code == 401
    assert db.query(User).filter(User.telegram_id == 777).count() == 0


def test_authenticator_requires_token(monkeypatch):
    telegram_dep.get_authenticator.cache_clear()
    monkeypatch.setattr("src.config.TELEGRAM_BOT_TOKEN", None)
    with pytest.raises(RuntimeError):
        telegram_dep.get_authenticator()
    telegram_dep.get_authenticator.cache_clear()


def test_resolve_users_marks_missing_as_unresolved(db, make_user):
    alice = make_user("Alice")

    refs = resolve_users(db, [alice.id, 9999])

    assert refs[alice.id] == Resolved(id=alice.id, name="Alice", email="alice@example.com")
    assert refs[9999] == Unresolved(id=9999)
    assert display_name(refs[9999]) == "Unknown"
    assert display_email(refs[9999]) == ""
    assert display_name(refs[alice.id]) == "Alice"
