from decimal import Decimal

from sqlalchemy import select

from cashora.models import ActivityLog, Notification, PlatformSettings, SendRequest, Transaction
from cashora.models.platform_settings import SINGLETON_ID


def test_transfer_moves_money_and_notifies_both_sides(client, seed, user, other_user, auth):
    r = client.post(
        "/api/user/transfer",
        json={"recipient_id": str(other_user.id), "amount": "150.50", "description": "Rent"},
        headers=auth(user),
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["message"] == "Transfer successful"
    assert body["balance"] == "849.50"
    assert body["transaction"]["type"] == "transfer"
    assert body["transaction"]["status"] == "completed"
    assert body["transaction"]["amount"] == "150.50"
    assert body["transaction"]["sender"]["email"] == user.email
    assert body["transaction"]["recipient"]["email"] == other_user.email

    assert seed.balance(user) == Decimal("849.50")
    assert seed.balance(other_user) == Decimal("350.50")

    kinds = {(n.user_id, n.type) for n in seed.all(select(Notification))}
    assert kinds == {(user.id, "money_sent"), (other_user.id, "money_received")}
    assert [a.type for a in seed.all(select(ActivityLog).where(ActivityLog.user_id == user.id))] == ["money_sent"]


def test_transfer_rejects_insufficient_balance(client, seed, user, other_user, auth):
    r = client.post("/api/user/transfer", json={"recipient_id": str(user.id), "amount": 5}, headers=auth(other_user))
    assert r.status_code == 200

    r = client.post("/api/user/transfer", json={"recipient_id": str(user.id), "amount": 500}, headers=auth(other_user))
    assert r.status_code == 400
    assert r.json()["error"] == "Insufficient balance"
    assert seed.balance(other_user) == Decimal("195")
    assert len(seed.all(select(Transaction))) == 1


def test_transfer_to_self_is_rejected(client, user, auth):
    r = client.post("/api/user/transfer", json={"recipient_id": str(user.id), "amount": 10}, headers=auth(user))
    assert r.status_code == 400
    assert r.json()["error"] == "Cannot send money to yourself"


def test_transfer_to_inactive_recipient(client, seed, user, auth):
    pending = seed.user("wait@example.com", full_name="Wai Ting", status="pending")
    r = client.post("/api/user/transfer", json={"recipient_id": str(pending.id), "amount": 10}, headers=auth(user))
    assert r.status_code == 400
    assert r.json()["error"] == "Recipient account is not active"


def test_transfer_requires_active_sender(client, seed, other_user, auth):
    pending = seed.user("wait@example.com", full_name="Wai Ting", status="pending", balance="100")
    r = client.post("/api/user/transfer", json={"recipient_id": str(other_user.id), "amount": 10}, headers=auth(pending))
    assert r.status_code == 403
    assert r.json()["error"] == "Account not verified"


def test_transfer_amount_validation(client, user, other_user, auth):
    for amount, message in [("0", "Amount must be greater than 0"), ("1.234", "Amount cannot have more than 2 decimal places")]:
        r = client.post("/api/user/transfer", json={"recipient_id": str(other_user.id), "amount": amount}, headers=auth(user))
        assert r.status_code == 400
        assert r.json()["error"] == message


def test_transfer_daily_limit(client, seed, user, other_user, auth):
    capped = seed.user("capped@example.com", full_name="Cap Ped", balance="1000", send_limit=Decimal("100"))
    headers = auth(capped)
    assert client.post("/api/user/transfer", json={"recipient_id": str(other_user.id), "amount": 80}, headers=headers).status_code == 200

    r = client.post("/api/user/transfer", json={"recipient_id": str(other_user.id), "amount": 30}, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Daily transfer limit exceeded"

    limits = client.get("/api/user/transfer/limits", headers=headers).json()
    assert limits["daily"] == {"limit": "100.00", "used": "80.00", "remaining": "20.00", "count": 1}


def test_transfer_blocked_in_maintenance(client, seed, user, other_user, auth):
    seed.add(PlatformSettings(id=SINGLETON_ID, maintenance_mode=True))
    r = client.post("/api/user/transfer", json={"recipient_id": str(other_user.id), "amount": 10}, headers=auth(user))
    assert r.status_code == 503
    assert r.json()["code"] == "MAINTENANCE"


def test_send_validate_reports_errors_without_raising(client, user, other_user, auth):
    ok = client.post("/api/user/send/validate", json={"recipient_id": str(other_user.id), "amount": 10}, headers=auth(user))
    assert ok.json() == {"valid": True, "error": None}

    ko = client.post("/api/user/send/validate", json={"recipient_id": str(other_user.id), "amount": 5000}, headers=auth(user))
    assert ko.status_code == 200
    assert ko.json() == {"valid": False, "error": "Insufficient balance"}


def test_transfer_history_filters(client, user, other_user, auth):
    client.post("/api/user/transfer", json={"recipient_id": str(other_user.id), "amount": 10}, headers=auth(user))
    client.post("/api/user/transfer", json={"recipient_id": str(user.id), "amount": 20}, headers=auth(other_user))

    everything = client.get("/api/user/transfer/history", headers=auth(user)).json()
    assert everything["pagination"]["total"] == 2

    sent = client.get("/api/user/transfer/history", params={"type": "sent"}, headers=auth(user)).json()
    assert [t["amount"] for t in sent["transfers"]] == ["10.00"]

    received = client.get("/api/user/transfer/history", params={"type": "received"}, headers=auth(user)).json()
    assert [t["amount"] for t in received["transfers"]] == ["20.00"]


def test_recipient_search_lists_active_users_only(client, seed, user, other_user, auth):
    seed.user("wait@example.com", full_name="Sara Waiting", status="pending")
    r = client.get("/api/user/transfer/recipients", params={"q": "sara"}, headers=auth(user))
    assert [p["email"] for p in r.json()] == [other_user.email]


def test_send_request_then_admin_approval(client, seed, user, other_user, admin, auth):
    r = client.post(
        "/api/user/send-requests",
        json={"recipient_id": str(other_user.id), "amount": 100, "description": "Loan"},
        headers=auth(user),
    )
    assert r.status_code == 201, r.text
    request_id = r.json()["send_request"]["id"]
    assert r.json()["send_request"]["status"] == "pending"
    assert seed.balance(user) == Decimal("1000")

    mine = client.get("/api/user/send-requests", params={"status": "pending"}, headers=auth(user)).json()
    assert [s["id"] for s in mine["data"]] == [request_id]

    r = client.put("/api/admin/sending", json={"id": request_id, "action": "approve"}, headers=auth(admin))
    assert r.status_code == 200, r.text
    assert r.json()["message"] == "Sending request approved"
    assert r.json()["transaction"]["type"] == "transfer"
    assert seed.balance(user) == Decimal("900")
    assert seed.balance(other_user) == Decimal("300")

    again = client.put("/api/admin/sending", json={"id": request_id, "action": "approve"}, headers=auth(admin))
    assert again.status_code == 400
    assert again.json()["error"] == "Can only process pending requests"
    assert seed.balance(user) == Decimal("900")


def test_send_request_rejection_requires_reason(client, seed, user, other_user, admin, auth):
    r = client.post("/api/user/send-requests", json={"recipient_id": str(other_user.id), "amount": 50}, headers=auth(user))
    request_id = r.json()["send_request"]["id"]

    r = client.put("/api/admin/sending", json={"id": request_id, "action": "reject"}, headers=auth(admin))
    assert r.status_code == 400
    assert r.json()["error"] == "Rejection reason is required"

    r = client.put("/api/admin/sending", json={"id": request_id, "action": "reject", "reason": "Suspicious"}, headers=auth(admin))
    assert r.status_code == 200
    assert r.json()["send_request"]["status"] == "rejected"
    assert r.json()["transaction"] is None
    assert seed.all(select(SendRequest))[0].rejection_reason == "Suspicious"
    assert seed.balance(user) == Decimal("1000")


def test_send_request_approval_rechecks_account_status(client, seed, user, other_user, admin, auth):
    r = client.post("/api/user/send-requests", json={"recipient_id": str(other_user.id), "amount": 50}, headers=auth(user))
    request_id = r.json()["send_request"]["id"]
    assert client.put(f"/api/admin/users/{other_user.id}", json={"status": "closed"}, headers=auth(admin)).status_code == 200

    r = client.put("/api/admin/sending", json={"id": request_id, "action": "approve"}, headers=auth(admin))
    assert r.status_code == 400
    assert r.json()["error"] == "Recipient account is not active"
    assert seed.balance(other_user) == Decimal("200")
    assert seed.balance(user) == Decimal("1000")
    assert seed.all(select(SendRequest))[0].status == "pending"


def test_send_request_approval_requires_active_sender(client, seed, user, other_user, admin, auth):
    r = client.post("/api/user/send-requests", json={"recipient_id": str(other_user.id), "amount": 50}, headers=auth(user))
    request_id = r.json()["send_request"]["id"]
    client.put(f"/api/admin/users/{user.id}", json={"status": "suspended"}, headers=auth(admin))

    r = client.put("/api/admin/sending", json={"id": request_id, "action": "approve"}, headers=auth(admin))
    assert r.status_code == 400
    assert r.json()["error"] == "Sender account is not active"
    assert seed.balance(other_user) == Decimal("200")
