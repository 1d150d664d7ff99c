from decimal import Decimal

from src.models.expense import Expense
from src.models.expense_split import ExpenseSplit
from src.models.event import Event
from tests.conftest import auth


def _expense(client, payer, amount, *user_ids):
    body = {"description": "Shared", "amount": amount, "splits": [{"user_id": uid} for uid in user_ids]}
    r = client.post("/api/expenses/", json=body, headers=auth(payer))
    assert r.status_code == 201, r.text
    return r.json()


def test_balance_for_two_way_debts(client, make_user, befriend):
    alice, bob = make_user("Alice"), make_user("Bob")
    befriend(alice, bob)
    e1 = _expense(client, alice, "100", bob.id)   # Bob должен 50
    _expense(client, bob, "40", alice.id)          # Alice должна 20

    data = client.get("/api/dashboard/balance", headers=auth(alice)).json()

    assert (data["total_owed"], data["total_owe"], data["net_balance"]) == ("50.00", "20.00", "30.00")
    assert data["counterparties"] == [{
        "user_id": bob.id,
        "name": "Bob",
        "email": "bob@example.com",
        "you_owe": "20.00",
        "they_owe": "50.00",
        "net_amount": "30.00",
    }]

    client.post(f"/api/expenses/{e1['id']}/settle", json={}, headers=auth(bob))
    data = client.get("/api/dashboard/balance", headers=auth(alice)).json()
    assert (data["total_owed"], data["net_balance"]) == ("0.00", "-20.00")
    assert data["counterparties"][0]["net_amount"] == "-20.00"


def test_empty_balance(client, make_user):
    alice = make_user("Alice")
    data = client.get("/api/dashboard/balance", headers=auth(alice)).json()
    assert data == {"total_owed": "0.00", "total_owe": "0.00", "net_balance": "0.00", "counterparties": []}


def test_unresolvable_counterparty_is_shown_as_unknown(client, db, make_user):
    alice = make_user("Alice")
    expense = Expense(description="Legacy", amount=Decimal("10.00"), payer_id=alice.id, type="split", split_type="exact")
    expense.splits = [ExpenseSplit(user_id=4242, position=0, amount=Decimal("10.00"))]
    db.add(expense)
    db.commit()

    data = client.get("/api/dashboard/balance", headers=auth(alice)).json()

    assert data["counterparties"][0]["user_id"] == 4242
    assert data["counterparties"][0]["name"] == "Unknown"
    assert data["counterparties"][0]["email"] == ""


def test_summary_counts(client, make_user, befriend):
    alice, bob = make_user("Alice"), make_user("Bob")
    befriend(alice, bob)
    e1 = _expense(client, alice, "10", bob.id)
    _expense(client, bob, "30", alice.id)
    client.post("/api/expenses/", json={"description": "Tea", "amount": "2", "type": "solo"}, headers=auth(alice))
    client.post(f"/api/expenses/{e1['id']}/settle", json={"user_id": bob.id}, headers=auth(alice))

    data = client.get("/api/dashboard/summary", headers=auth(alice)).json()

    assert data == {"expense_count": 3, "total_paid": "12.00", "open_expense_count": 1}


def test_settle_up_clears_pair_and_records_payment(client, db, make_user, befriend):
    alice, bob, carol = make_user("Alice"), make_user("Bob"), make_user("Carol")
    befriend(alice, bob)
    befriend(alice, carol)
    _expense(client, alice, "100", bob.id)
    _expense(client, bob, "40", alice.id)
    _expense(client, alice, "20", carol.id)

    r = client.post("/api/settlements/", json={"friend_id": bob.id, "amount": "30"}, headers=auth(alice))

    assert r.status_code == 201, r.text
    result = r.json()
    assert (result["from_user_id"], result["to_user_id"], result["amount"]) == (bob.id, alice.id, "30.00")
    assert len(result["settled_split_ids"]) == 2

    balance = client.get("/api/dashboard/balance", headers=auth(alice)).json()
    assert [c["user_id"] for c in balance["counterparties"]] == [carol.id]
    assert balance["net_balance"] == "10.00"

    record = client.get(f"/api/expenses/{result['expense_id']}", headers=auth(bob)).json()
    assert record["type"] == "settlement"
    assert record["payer_id"] == bob.id
    assert record["splits"][0]["settled"] is True

    again = client.post("/api/settlements/", json={"friend_id": bob.id}, headers=auth(alice))
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "nothing_to_settle"

    assert db.query(Event).filter(Event.type == "settlement_recorded").count() == 1


def test_settle_up_amount_must_match_open_balance(client, make_user, befriend):
    alice, bob = make_user("Alice"), make_user("Bob")
    befriend(alice, bob)
    _expense(client, alice, "100", bob.id)

    r = client.post("/api/settlements/", json={"friend_id": alice.id, "amount": "10"}, headers=auth(bob))

    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "settlement_amount_mismatch"
    assert r.json()["detail"]["expected"] == "50.00"

    # ничего не погашено
    balance = client.get("/api/dashboard/balance", headers=auth(alice)).json()
    assert balance["total_owed"] == "50.00"


def test_events_feed_lists_my_activity(client, make_user, befriend):
    alice, bob = make_user("Alice"), make_user("Bob")
    befriend(alice, bob)
    _expense(client, alice, "10", bob.id)

    feed = client.get("/api/events/", headers=auth(alice)).json()
    assert [e["type"] for e in feed][-1] == "friendship_created"
    assert "expense_created" in [e["type"] for e in feed]

    only_expenses = client.get("/api/events/", params={"types": ["expense"]}, headers=auth(alice)).json()
    assert {e["type"] for e in only_expenses} == {"expense_created"}


def test_settlement_record_cannot_be_deleted(client, make_user, befriend):
    alice, bob = make_user("Alice"), make_user("Bob")
    befriend(alice, bob)
    _expense(client, alice, "100", bob.id)
    result = client.post("/api/settlements/", json={"friend_id": alice.id}, headers=auth(bob)).json()

    r = client.delete(f"/api/expenses/{result['expense_id']}", headers=auth(bob))

    assert r.status_code == 409
    assert client.get(f"/api/expenses/{result['expense_id']}", headers=auth(bob)).status_code == 200
    balance = client.get("/api/dashboard/balance", headers=auth(alice)).json()
    assert balance["total_owed"] == "0.00"
