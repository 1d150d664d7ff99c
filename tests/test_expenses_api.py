from src.models.event import Event
from tests.conftest import auth


def _equal_expense(amount, *user_ids, **extra):
    body = {
        "description": "Dinner",
        "amount": amount,
        "split_type": "equal",
        "splits": [{"user_id": uid} for uid in user_ids],
    }
    body.update(extra)
    return body


def test_create_equal_expense_keeps_payer_share(client, make_user, befriend):
    alice, bob, carol = make_user("Alice"), make_user("Bob"), make_user("Carol")
    befriend(alice, bob)
    befriend(alice, carol)

    r = client.post("/api/expenses/", json=_equal_expense("100", bob.id, carol.id), headers=auth(alice))

    assert r.status_code == 201, r.text
    data = r.json()
    assert data["amount"] == "100.00"
    assert data["payer_share"] == "33.34"
    assert [(s["user_id"], s["amount"], s["settled"]) for s in data["splits"]] == [
        (bob.id, "33.33", False),
        (carol.id, "33.33", False),
    ]


def test_expense_round_trip_preserves_amounts(client, make_user, befriend):
    alice, bob = make_user("Alice"), make_user("Bob")
    befriend(alice, bob)
    body = {
        "description": "Taxi",
        "amount": "45.50",
        "split_type": "exact",
        "label": "transport",
        "splits": [{"user_id": bob.id, "amount": "30.25"}, {"user_id": alice.id, "amount": "15.25"}],
    }

    created = client.post("/api/expenses/", json=body, headers=auth(alice)).json()
    fetched = client.get(f"/api/expenses/{created['id']}", headers=auth(bob)).json()

    assert fetched["amount"] == created["amount"] == "45.50"
    assert fetched["label"] == "transport"
    assert [(s["amount"], s["settled"]) for s in fetched["splits"]] == [("30.25", False)]
    assert fetched["payer_share"] == "15.25"


def test_percentage_mismatch_is_422_with_expected_and_actual(client, make_user, befriend):
    alice, bob, carol = make_user("Alice"), make_user("Bob"), make_user("Carol")
    befriend(alice, bob)
    befriend(alice, carol)
    body = {
        "description": "Groceries",
        "amount": "100",
        "split_type": "percentage",
        "splits": [{"user_id": bob.id, "percentage": 60}, {"user_id": carol.id, "percentage": 30}],
    }

    r = client.post("/api/expenses/", json=body, headers=auth(alice))

    assert r.status_code == 422
    detail = r.json()["detail"]
    assert detail["code"] == "percentage_sum_mismatch"
    assert detail["expected"] == "100"
    assert detail["actual"] == "90"


def test_exact_mismatch_is_422(client, make_user, befriend):
    alice, bob = make_user("Alice"), make_user("Bob")
    befriend(alice, bob)
    body = {
        "description": "Hotel",
        "amount": "100",
        "split_type": "exact",
        "splits": [{"user_id": bob.id, "amount": "30"}, {"user_id": alice.id, "amount": "50"}],
    }

    r = client.post("/api/expenses/", json=body, headers=auth(alice))

    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "split_sum_mismatch"
    assert r.json()["detail"]["actual"] == "80.00"


def test_split_expense_needs_participants(client, make_user):
    alice = make_user("Alice")
    r = client.post("/api/expenses/", json=_equal_expense("10"), headers=auth(alice))
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "no_participants"


def test_non_positive_amount_is_rejected(client, make_user, befriend):
    alice, bob = make_user("Alice"), make_user("Bob")
    befriend(alice, bob)
    r = client.post("/api/expenses/", json=_equal_expense("0", bob.id), headers=auth(alice))
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "invalid_amount"


def test_participants_must_be_friends(client, make_user):
    alice, stranger = make_user("Alice"), make_user("Mallory")
    r = client.post("/api/expenses/", json=_equal_expense("10", stranger.id), headers=auth(alice))
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "participant_not_allowed"
    assert r.json()["detail"]["user_ids"] == [stranger.id]


def test_solo_expense_has_no_splits(client, make_user):
    alice = make_user("Alice")
    body = {"description": "Coffee", "amount": "4.20", "type": "solo"}
    data = client.post("/api/expenses/", json=body, headers=auth(alice)).json()
    assert data["splits"] == []
    assert data["split_type"] is None
    assert data["payer_share"] == "4.20"


def test_list_filters_sort_and_total_header(client, make_user, befriend):
    alice, bob = make_user("Alice"), make_user("Bob")
    befriend(alice, bob)
    client.post("/api/expenses/", json=_equal_expense("10", bob.id, label="food"), headers=auth(alice))
    client.post("/api/expenses/", json=_equal_expense("30", alice.id, label="rent"), headers=auth(bob))
    client.post("/api/expenses/", json=_equal_expense("20", bob.id, label="food"), headers=auth(alice))

    r = client.get("/api/expenses/", params={"sort": "amount-desc"}, headers=auth(alice))
    assert r.headers["X-Total-Count"] == "3"
    assert [e["amount"] for e in r.json()] == ["30.00", "20.00", "10.00"]

    r = client.get("/api/expenses/", params={"label": "food", "sort": "amount-asc"}, headers=auth(alice))
    assert [e["amount"] for e in r.json()] == ["10.00", "20.00"]

    r = client.get("/api/expenses/", params={"role": "participating"}, headers=auth(alice))
    assert [e["payer_id"] for e in r.json()] == [bob.id]

    r = client.get("/api/expenses/", params={"limit": 1}, headers=auth(alice))
    assert len(r.json()) == 1
    assert r.headers["X-Total-Count"] == "3"


def test_outsider_cannot_see_expense(client, make_user, befriend):
    alice, bob, eve = make_user("Alice"), make_user("Bob"), make_user("Eve")
    befriend(alice, bob)
    created = client.post("/api/expenses/", json=_equal_expense("10", bob.id), headers=auth(alice)).json()

    assert client.get(f"/api/expenses/{created['id']}", headers=auth(eve)).status_code == 403
    assert client.get("/api/expenses/999", headers=auth(eve)).status_code == 404


def test_update_replaces_splits_and_keeps_unchanged_settled_flags(client, make_user, befriend):
    alice, bob, carol = make_user("Alice"), make_user("Bob"), make_user("Carol")
    befriend(alice, bob)
    befriend(alice, carol)
    body = {
        "description": "Trip",
        "amount": "90",
        "split_type": "exact",
        "splits": [
            {"user_id": alice.id, "amount": "30"},
            {"user_id": bob.id, "amount": "30"},
            {"user_id": carol.id, "amount": "30"},
        ],
    }
    created = client.post("/api/expenses/", json=body, headers=auth(alice)).json()
    client.post(f"/api/expenses/{created['id']}/settle", json={}, headers=auth(bob))

    body["splits"][2]["amount"] = "40"
    body["amount"] = "100"
    r = client.put(f"/api/expenses/{created['id']}", json=body, headers=auth(alice))

    assert r.status_code == 200, r.text
    splits = {s["user_id"]: s for s in r.json()["splits"]}
    assert splits[bob.id]["settled"] is True
    assert splits[carol.id]["amount"] == "40.00"
    assert splits[carol.id]["settled"] is False
    assert r.json()["payer_share"] == "30.00"


def test_only_payer_can_update_or_delete(client, make_user, befriend):
    alice, bob = make_user("Alice"), make_user("Bob")
    befriend(alice, bob)
    body = _equal_expense("10", bob.id)
    created = client.post("/api/expenses/", json=body, headers=auth(alice)).json()

    assert client.put(f"/api/expenses/{created['id']}", json=body, headers=auth(bob)).status_code == 403
    assert client.delete(f"/api/expenses/{created['id']}", headers=auth(bob)).status_code == 403


def test_delete_is_idempotent_and_logged(client, db, make_user, befriend):
    alice, bob = make_user("Alice"), make_user("Bob")
    befriend(alice, bob)
    created = client.post("/api/expenses/", json=_equal_expense("10", bob.id), headers=auth(alice)).json()

    assert client.delete(f"/api/expenses/{created['id']}", headers=auth(alice)).status_code == 204
    assert client.delete(f"/api/expenses/{created['id']}", headers=auth(alice)).status_code == 204
    assert client.get(f"/api/expenses/{created['id']}", headers=auth(alice)).status_code == 404

    types = [e.type for e in db.query(Event).order_by(Event.id).all()]
    assert types.count("expense_deleted") == 1


def test_settle_rules(client, make_user, befriend):
    alice, bob, carol = make_user("Alice"), make_user("Bob"), make_user("Carol")
    befriend(alice, bob)
    befriend(alice, carol)
    created = client.post("/api/expenses/", json=_equal_expense("30", bob.id, carol.id), headers=auth(alice)).json()
    url = f"/api/expenses/{created['id']}/settle"

    # участник гасит только свою долю
    assert client.post(url, json={"user_id": carol.id}, headers=auth(bob)).status_code == 403
    r = client.post(url, json={}, headers=auth(bob))
    assert r.status_code == 200
    assert r.json()["settled"] is True

    # плательщик должен указать, чью долю гасит
    assert client.post(url, json={}, headers=auth(alice)).status_code == 422
    r = client.post(url, json={"user_id": carol.id}, headers=auth(alice))
    assert r.json()["user_id"] == carol.id
    assert r.json()["settled"] is True

    # повторное погашение ничего не ломает
    assert client.post(url, json={}, headers=auth(bob)).status_code == 200


def test_settling_a_reopened_share_is_logged_again(client, db, make_user, befriend):
    alice, bob = make_user("Alice"), make_user("Bob")
    befriend(alice, bob)
    body = _equal_expense("100", bob.id)
    created = client.post("/api/expenses/", json=body, headers=auth(alice)).json()
    url = f"/api/expenses/{created['id']}/settle"
    assert client.post(url, json={}, headers=auth(bob)).status_code == 200

    body["amount"] = "200"
    r = client.put(f"/api/expenses/{created['id']}", json=body, headers=auth(alice))
    assert r.json()["splits"][0]["settled"] is False

    r = client.post(url, json={}, headers=auth(bob))
    assert r.json()["settled"] is True
    assert db.query(Event).filter(Event.type == "split_settled").count() == 2


def test_amount_must_fit_money_column(client, make_user, befriend):
    alice, bob = make_user("Alice"), make_user("Bob")
    befriend(alice, bob)

    r = client.post("/api/expenses/", json=_equal_expense("12345678901", bob.id), headers=auth(alice))
    assert r.status_code == 422

    r = client.post("/api/expenses/", json=_equal_expense("9999999999.99", bob.id), headers=auth(alice))
    assert r.status_code == 201, r.text


def test_groceries_label_is_accepted(client, make_user, befriend):
    alice, bob = make_user("Alice"), make_user("Bob")
    befriend(alice, bob)
    r = client.post("/api/expenses/", json=_equal_expense("12", bob.id, label="groceries"), headers=auth(alice))
    assert r.status_code == 201, r.text
    assert r.json()["label"] == "groceries"


def test_batch_import_continues_past_bad_records(client, make_user, befriend):
    alice, bob = make_user("Alice"), make_user("Bob")
    befriend(alice, bob)
    items = [
        _equal_expense("10", bob.id),
        {
            "description": "Bad percentages",
            "amount": "100",
            "split_type": "percentage",
            "splits": [{"user_id": bob.id, "percentage": 60}, {"user_id": alice.id, "percentage": 30}],
        },
        {"description": "", "amount": "5"},
        _equal_expense("20", bob.id),
    ]

    r = client.post("/api/expenses/batch", json={"items": items}, headers=auth(alice))

    assert r.status_code == 200, r.text
    data = r.json()
    assert (data["created"], data["failed"]) == (2, 2)
    results = data["results"]
    assert [x["ok"] for x in results] == [True, False, False, True]
    assert results[1]["error"]["code"] == "percentage_sum_mismatch"
    assert results[2]["error"]["code"] == "validation_error"
    assert results[3]["expense"]["amount"] == "20.00"

    listed = client.get("/api/expenses/", headers=auth(alice))
    assert listed.headers["X-Total-Count"] == "2"
