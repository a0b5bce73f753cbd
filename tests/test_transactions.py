"""
Transactions: split rules, payment status, edits, listing filters.
"""
from datetime import timedelta
from unittest.mock import patch

import pytest

from paypals.models.audit_log import AuditLog
from paypals.models.notification import Notification, TRANSACTION_CREATED
from paypals.models.transaction import Transaction
from paypals.models.transaction_member import TransactionMember
from paypals.utils.clock import utc_now


@pytest.fixture
def circle(make_circle, alice, bob, carol):
    return make_circle(alice, bob, carol)


def _create(client, circle_id, total, participants, **extra):
    body = {"name": "Dinner", "total_amount": total, "participants": participants, **extra}
    return client.post(f"/api/transactions/{circle_id}", json=body)


def _shares(data):
    return {m["user_id"]: m for m in data["members"]}


# ===== Split rules =====

def test_exact_split_including_creator(login_as, db_session, circle, alice, bob, carol):
    res = _create(login_as(alice), circle.id, 90, [
        {"user_id": alice.id, "amount_owed": 30},
        {"user_id": bob.id, "amount_owed": 30},
        {"user_id": carol.id, "amount_owed": 30},
    ])
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["total_amount"] == 90.0
    assert data["status"] == "pending"
    assert data["can_edit"] is True
    assert len(data["members"]) == 3
    assert data["payment_progress"] == {"paid_count": 0, "total_count": 3, "percentage": 0}

    notified = {n.user_id for n in db_session.query(Notification).filter_by(type=TRANSACTION_CREATED)}
    assert notified == {bob.id, carol.id}


def test_creator_auto_added_with_remainder(login_as, db_session, circle, alice, bob):
    res = _create(login_as(alice), circle.id, 100, [{"user_id": bob.id, "amount_owed": 40}])
    assert res.status_code == 201
    shares = _shares(res.json()["data"])
    assert shares[alice.id]["amount_owed"] == 60.0
    assert shares[alice.id]["payment_status"] == "pending"
    assert shares[bob.id]["amount_owed"] == 40.0
    assert db_session.query(AuditLog).filter_by(action_type="auto_add_creator").count() == 1


def test_creator_auto_added_with_zero_share_is_paid(login_as, circle, alice, bob):
    res = _create(login_as(alice), circle.id, 40, [{"user_id": bob.id, "amount_owed": 40}])
    shares = _shares(res.json()["data"])
    assert shares[alice.id]["amount_owed"] == 0.0
    assert shares[alice.id]["payment_status"] == "paid"


def test_mismatched_sum_is_rejected(login_as, circle, alice, bob):
    res = _create(login_as(alice), circle.id, 100, [
        {"user_id": alice.id, "amount_owed": 30},
        {"user_id": bob.id, "amount_owed": 30},
    ])
    assert res.status_code == 400
    assert res.json()["detail"] == "Total amount (100.00) does not match sum of participant amounts (60.00)"


def test_rounding_tolerance_accepts_one_cent(login_as, circle, alice, bob, carol):
    res = _create(login_as(alice), circle.id, 100, [
        {"user_id": alice.id, "amount_owed": "33.33"},
        {"user_id": bob.id, "amount_owed": "33.33"},
        {"user_id": carol.id, "amount_owed": "33.33"},
    ])
    assert res.status_code == 201


def test_participants_exceeding_total_without_creator(login_as, circle, alice, bob):
    res = _create(login_as(alice), circle.id, 50, [{"user_id": bob.id, "amount_owed": 60}])
    assert res.status_code == 400
    assert res.json()["detail"] == "Total amount (50.00) is less than sum of participant amounts (60.00)"


def test_empty_participants_rejected(login_as, circle, alice):
    res = _create(login_as(alice), circle.id, 50, [])
    assert res.status_code == 400
    assert res.json()["detail"] == "At least one participant is required in this transaction"


def test_non_member_participant_is_audited(login_as, db_session, circle, alice, make_user):
    outsider = make_user("mallory")
    res = _create(login_as(alice), circle.id, 50, [{"user_id": outsider.id, "amount_owed": 50}])
    assert res.status_code == 400
    assert res.json()["detail"] == f"Participants with IDs [{outsider.id}] are not members of this circle"

    db_session.expire_all()
    assert db_session.query(AuditLog).filter_by(action_type="security_violation").count() == 1
    assert db_session.query(Transaction).count() == 0


def test_non_member_cannot_create(login_as, make_circle, alice, make_user):
    circle = make_circle(alice)
    outsider = make_user("mallory")
    res = _create(login_as(outsider), circle.id, 10, [{"user_id": outsider.id, "amount_owed": 10}])
    assert res.status_code == 403


def test_shape_errors_are_422(login_as, circle, alice, bob):
    assert _create(login_as(alice), circle.id, 0, [{"user_id": bob.id, "amount_owed": 0}]).status_code == 422
    assert _create(login_as(alice), circle.id, 10, [{"amount_owed": 10}]).status_code == 422


# ===== External participants =====

def test_external_participant_token_flow(login_as, client, db_session, circle, alice, bob):
    with patch("paypals.routers.transactions.email_service.send_external_participant_email", return_value=True) as send:
        res = _create(login_as(alice), circle.id, 60, [
            {"user_id": bob.id, "amount_owed": 20},
            {"email": "Guest@Example.com", "amount_owed": 20},
        ])
    assert res.status_code == 201
    tx_id = res.json()["data"]["id"]

    ext = db_session.query(TransactionMember).filter_by(transaction_id=tx_id, user_id=None).one()
    assert ext.email == "guest@example.com"
    assert len(ext.access_token) == 64
    send.assert_called_once()

    assert client.get("/api/transactions/external/bogus").status_code == 401

    res = client.get(f"/api/transactions/external/{ext.access_token}")
    assert res.status_code == 200
    assert res.json()["data"]["external_participant"]["amount_owed"] == 20.0

    res = client.patch(
        f"/api/transactions/external/{ext.access_token}/payment",
        json={"payment_status": "paid", "payment_method": "cash"},
    )
    assert res.status_code == 200
    assert res.json()["data"]["external_participant"]["payment_status"] == "paid"
    assert res.json()["data"]["allMembersPaid"] is False


def test_expired_external_token(client, db_session, login_as, circle, alice):
    res = _create(login_as(alice), circle.id, 10, [{"email": "late@example.com", "amount_owed": 10}])
    tx_id = res.json()["data"]["id"]
    ext = db_session.query(TransactionMember).filter_by(transaction_id=tx_id, user_id=None).one()
    ext.access_token_expires = utc_now() - timedelta(days=1)
    db_session.commit()

    res = client.get(f"/api/transactions/external/{ext.access_token}")
    assert res.status_code == 401
    assert res.json()["detail"] == "Access token has expired"


# ===== Payment status =====

def test_transaction_completes_when_everyone_paid(login_as, circle, alice, bob):
    tx = _create(login_as(alice), circle.id, 50, [
        {"user_id": alice.id, "amount_owed": 25},
        {"user_id": bob.id, "amount_owed": 25},
    ]).json()["data"]

    res = login_as(bob).patch(f"/api/transactions/{tx['id']}/status", json={"payment_status": "paid"})
    assert res.status_code == 200
    assert res.json()["data"]["transaction_status"] == "pending"

    res = login_as(alice).patch(f"/api/transactions/{tx['id']}/status", json={"payment_status": "paid"})
    assert res.json()["data"]["transaction_status"] == "completed"
    assert res.json()["data"]["allMembersPaid"] is True

    res = login_as(bob).patch(f"/api/transactions/{tx['id']}/status", json={"payment_status": "pending"})
    assert res.json()["data"]["transaction_status"] == "pending"


def test_status_update_validation(login_as, circle, alice, bob, make_user):
    tx = _create(login_as(alice), circle.id, 10, [{"user_id": bob.id, "amount_owed": 10}]).json()["data"]

    assert login_as(bob).patch(f"/api/transactions/{tx['id']}/status", json={"payment_status": "done"}).status_code == 400
    assert login_as(make_user("zoe")).patch(
        f"/api/transactions/{tx['id']}/status", json={"payment_status": "paid"},
    ).status_code == 403
    assert login_as(bob).patch("/api/transactions/999/status", json={"payment_status": "paid"}).status_code == 404


def test_bulk_status_skips_foreign_transactions(login_as, circle, alice, bob, carol):
    a = _create(login_as(alice), circle.id, 10, [{"user_id": bob.id, "amount_owed": 10}]).json()["data"]
    b = _create(login_as(alice), circle.id, 10, [{"user_id": carol.id, "amount_owed": 10}]).json()["data"]

    res = login_as(bob).patch(
        "/api/transactions/bulk/status",
        json={"transaction_ids": [a["id"], b["id"], 999], "payment_status": "paid"},
    )
    assert res.status_code == 200
    assert res.json()["data"] == {"updated_ids": [a["id"]], "skipped_ids": [b["id"], 999]}


# ===== Edit / delete =====

def test_update_keeps_status_of_unchanged_shares(login_as, db_session, circle, alice, bob, carol):
    tx = _create(login_as(alice), circle.id, 60, [
        {"user_id": bob.id, "amount_owed": 30},
        {"user_id": carol.id, "amount_owed": 30},
    ]).json()["data"]
    login_as(bob).patch(f"/api/transactions/{tx['id']}/status", json={"payment_status": "paid"})

    res = login_as(alice).put(f"/api/transactions/{tx['id']}", json={
        "name": "Dinner + drinks",
        "total_amount": 80,
        "participants": [
            {"user_id": bob.id, "amount_owed": 30},
            {"user_id": carol.id, "amount_owed": 50},
        ],
    })
    assert res.status_code == 200
    shares = _shares(res.json()["data"])
    assert shares[bob.id]["payment_status"] == "paid"
    assert shares[carol.id]["payment_status"] == "pending"
    assert shares[carol.id]["amount_owed"] == 50.0
    assert shares[alice.id]["amount_owed"] == 0.0


def test_update_requires_creator_or_admin(login_as, make_circle, alice, bob, carol):
    circle = make_circle(alice, bob, carol)
    tx = _create(login_as(bob), circle.id, 10, [{"user_id": carol.id, "amount_owed": 10}]).json()["data"]
    body = {"name": "X", "total_amount": 10, "participants": [{"user_id": carol.id, "amount_owed": 10}]}

    assert login_as(carol).put(f"/api/transactions/{tx['id']}", json=body).status_code == 403
    # alice is the circle admin
    assert login_as(alice).put(f"/api/transactions/{tx['id']}", json=body).status_code == 200


def test_update_with_mismatched_sum_is_rejected(login_as, circle, alice, bob):
    """A rejected update leaves the stored split as it was."""
    c = login_as(alice)
    tx = _create(c, circle.id, 10, [
        {"user_id": alice.id, "amount_owed": 4},
        {"user_id": bob.id, "amount_owed": 6},
    ]).json()["data"]

    res = c.put(f"/api/transactions/{tx['id']}", json={
        "name": "Lunch",
        "total_amount": 10,
        "participants": [
            {"user_id": alice.id, "amount_owed": 4},
            {"user_id": bob.id, "amount_owed": 10},
        ],
    })
    assert res.status_code == 400
    assert res.json()["detail"] == "Total amount (10.00) does not match sum of participant amounts (14.00)"

    stored = c.get(f"/api/transactions/{tx['id']}").json()["data"]
    assert stored["total_amount"] == 10.0
    shares = _shares(stored)
    assert shares[alice.id]["amount_owed"] == 4.0
    assert shares[bob.id]["amount_owed"] == 6.0


def test_delete_blocked_after_someone_paid(login_as, circle, alice, bob):
    tx = _create(login_as(alice), circle.id, 10, [{"user_id": bob.id, "amount_owed": 10}]).json()["data"]
    login_as(bob).patch(f"/api/transactions/{tx['id']}/status", json={"payment_status": "paid"})

    res = login_as(alice).delete(f"/api/transactions/{tx['id']}")
    assert res.status_code == 400

    login_as(bob).patch(f"/api/transactions/{tx['id']}/status", json={"payment_status": "pending"})
    assert login_as(bob).delete(f"/api/transactions/{tx['id']}").status_code == 403
    assert login_as(alice).delete(f"/api/transactions/{tx['id']}").status_code == 200
    assert login_as(alice).get(f"/api/transactions/{tx['id']}").status_code == 404


# ===== Listing =====

def test_circle_listing_filters_and_pagination(login_as, circle, alice, bob, carol):
    c = login_as(alice)
    _create(c, circle.id, 10, [{"user_id": bob.id, "amount_owed": 10}], name="Taxi", category="Transport")
    _create(c, circle.id, 90, [{"user_id": carol.id, "amount_owed": 90}], name="Groceries", category="food")
    _create(c, circle.id, 30, [{"user_id": bob.id, "amount_owed": 30}], name="Lunch", category="food")

    url = f"/api/transactions/circle/{circle.id}"
    res = c.get(url, params={"limit": 2})
    body = res.json()["data"]
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2, "hasNext": True, "hasPrev": False}

    names = [t["name"] for t in c.get(url, params={"category": "food", "sortBy": "total_amount", "sortOrder": "asc"}).json()["data"]["transactions"]]
    assert names == ["Lunch", "Groceries"]

    names = [t["name"] for t in login_as(bob).get(url, params={"userOnly": "true"}).json()["data"]["transactions"]]
    assert sorted(names) == ["Lunch", "Taxi"]

    names = [t["name"] for t in c.get(url, params={"search": "TAX"}).json()["data"]["transactions"]]
    assert names == ["Taxi"]

    names = [t["name"] for t in c.get(url, params={"minAmount": 20, "maxAmount": 50}).json()["data"]["transactions"]]
    assert names == ["Lunch"]


@pytest.mark.parametrize("params", [
    {"page": 0},
    {"limit": 0},
    {"sortOrder": "up"},
    {"sortBy": "colour"},
    {"minAmount": -1},
    {"minAmount": 10, "maxAmount": 5},
    {"status": "maybe"},
])
def test_circle_listing_rejects_bad_params(login_as, circle, alice, params):
    assert login_as(alice).get(f"/api/transactions/circle/{circle.id}", params=params).status_code == 400


def test_user_summary(login_as, circle, alice, bob):
    c = login_as(alice)
    a = _create(c, circle.id, 40, [{"user_id": bob.id, "amount_owed": 15}], category="food").json()["data"]
    _create(c, circle.id, 20, [{"user_id": bob.id, "amount_owed": 5}], category="transport")
    login_as(bob).patch(f"/api/transactions/{a['id']}/status", json={"payment_status": "paid"})

    summary = login_as(bob).get("/api/transactions/user/summary").json()["data"]["summary"]
    assert summary["total_transactions"] == 2
    assert summary["total_amount_owed"] == 20.0
    assert summary["paid_amount"] == 15.0
    assert summary["pending_amount"] == 5.0
    assert summary["categories"]["food"]["count"] == 1


def test_reminder_notifies_debtor(login_as, db_session, circle, alice, bob):
    tx = _create(login_as(alice), circle.id, 10, [{"user_id": bob.id, "amount_owed": 10}]).json()["data"]

    assert login_as(alice).post(f"/api/transactions/reminder/{alice.id}").status_code == 400
    res = login_as(alice).post(f"/api/transactions/reminder/{bob.id}", json={"transaction_id": tx["id"]})
    assert res.status_code == 200
    assert res.json()["data"]["reminders_sent"] == 1

    assert db_session.query(Notification).filter_by(user_id=bob.id, type="payment_due").count() == 1
