from decimal import Decimal

from sqlalchemy import select

from cashora.models import AdminAuditLog, Notification, Profile, Transaction
from cashora.services.email_service import email_service


def _actions(seed) -> list[str]:
    return [a.action for a in seed.all(select(AdminAuditLog).order_by(AdminAuditLog.created_at))]


# ---------------------------------------------------------------------------
# Utilisateurs
# ---------------------------------------------------------------------------

def test_admin_routes_reject_regular_users(client, user, auth):
    for path in ("/api/admin/users", "/api/admin/dashboard", "/api/admin/transactions", "/api/admin/settings"):
        r = client.get(path, headers=auth(user))
        assert r.status_code == 403, path


def test_list_users_filters(client, seed, user, other_user, admin, auth):
    seed.user("wait@example.com", full_name="Wai Ting", status="pending")

    everyone = client.get("/api/admin/users", headers=auth(admin)).json()
    assert everyone["pagination"]["total"] == 4

    search = client.get("/api/admin/users", params={"q": "SARA"}, headers=auth(admin)).json()
    assert [u["email"] for u in search["data"]] == [other_user.email]

    pending = client.get("/api/admin/users/pending", headers=auth(admin)).json()
    assert [u["email"] for u in pending["data"]] == ["wait@example.com"]


def test_user_detail_includes_totals(client, user, other_user, admin, auth):
    client.post("/api/user/transfer", json={"recipient_id": str(other_user.id), "amount": 40}, headers=auth(user))

    r = client.get(f"/api/admin/users/{user.id}", headers=auth(admin))
    assert r.status_code == 200
    body = r.json()
    assert body["profile"]["email"] == user.email
    assert Decimal(body["totals"]["total_sent"]) == Decimal("40")
    assert body["bank_accounts"] == 0
    assert body["pending_requests"] == 0


def test_approve_pending_user(client, seed, admin, auth):
    pending = seed.user("wait@example.com", full_name="Wai Ting", status="pending")

    r = client.put(f"/api/admin/users/{pending.id}/approve", headers=auth(admin))
    assert r.status_code == 200
    assert r.json()["status"] == "active"
    assert r.json()["verification_level"] == 1
    assert r.json()["verified_at"] is not None

    again = client.put(f"/api/admin/users/{pending.id}/approve", headers=auth(admin))
    assert again.status_code == 400
    assert again.json()["error"] == "User is already verified"

    notices = seed.all(select(Notification).where(Notification.user_id == pending.id))
    assert [n.type for n in notices] == ["account_verified"]
    assert _actions(seed) == ["APPROVE_USER"]


def test_reject_user_requires_reason(client, seed, admin, auth):
    pending = seed.user("wait@example.com", full_name="Wai Ting", status="pending")

    r = client.put(f"/api/admin/users/{pending.id}/reject", json={"reason": "  "}, headers=auth(admin))
    assert r.status_code == 400

    r = client.put(f"/api/admin/users/{pending.id}/reject", json={"reason": "Documents unreadable"}, headers=auth(admin))
    assert r.status_code == 200
    assert r.json()["status"] == "rejected"
    assert seed.get(Profile, pending.id).rejection_reason == "Documents unreadable"


def test_suspend_user_blocks_api_access(client, user, admin, auth):
    r = client.put(f"/api/admin/users/{user.id}", json={"status": "suspended"}, headers=auth(admin))
    assert r.status_code == 200
    assert r.json()["status"] == "suspended"

    blocked = client.get("/api/user/profile", headers=auth(user))
    assert blocked.status_code == 403
    assert blocked.json()["error"] == "Account is suspended"


def test_admin_cannot_modify_self(client, admin, auth):
    r = client.put(f"/api/admin/users/{admin.id}", json={"role": "user"}, headers=auth(admin))
    assert r.status_code == 400
    assert r.json()["error"] == "Cannot modify your own account"


def test_unknown_user_is_404(client, admin, auth):
    r = client.get("/api/admin/users/00000000-0000-0000-0000-000000000000", headers=auth(admin))
    assert r.status_code == 404
    assert r.json()["error"] == "User not found"


def test_balance_adjustment_records_transaction(client, seed, user, admin, auth):
    r = client.put(f"/api/admin/users/{user.id}/balance", json={"amount": "750", "note": "Correction"}, headers=auth(admin))
    assert r.status_code == 200, r.text
    assert r.json() == {
        "message": "Balance updated",
        "old_balance": "1000.00",
        "new_balance": "750.00",
        "difference": "-250.00",
    }
    assert seed.balance(user) == Decimal("750")

    tx = seed.all(select(Transaction).where(Transaction.type == "admin_adjustment"))
    assert len(tx) == 1
    assert tx[0].amount == Decimal("250")
    assert tx[0].sender_id == user.id

    negative = client.put(f"/api/admin/users/{user.id}/balance", json={"amount": "-1"}, headers=auth(admin))
    assert negative.status_code == 400
    assert negative.json()["error"] == "Balance cannot be negative"


def test_update_limits(client, seed, user, admin, auth):
    payload = {"daily_limit": "1000", "monthly_limit": "5000", "send_limit": "300", "withdraw_limit": "200"}
    r = client.put(f"/api/admin/users/{user.id}/limits", json=payload, headers=auth(admin))
    assert r.status_code == 200
    assert r.json()["message"] == "Limits updated"
    assert r.json()["profile"]["send_limit"] == "300.00"

    limits = client.get("/api/user/transfer/limits", headers=auth(user)).json()
    assert limits["daily"]["limit"] == "300.00"
    assert "UPDATE_USER_LIMITS" in _actions(seed)


# ---------------------------------------------------------------------------
# Envois groupés
# ---------------------------------------------------------------------------

def test_validate_recipients(client, user, other_user, admin, auth):
    r = client.post(
        "/api/admin/sending/validate",
        json={"recipients": [{"email": "ABEBE@example.com"}, {"email": "ghost@example.com"}]},
        headers=auth(admin),
    )
    assert r.status_code == 200
    body = r.json()
    assert [p["email"] for p in body["valid"]] == [user.email]
    assert body["invalid"] == ["ghost@example.com"]
    assert (body["total_valid"], body["total_invalid"]) == (1, 1)


def test_bulk_send_credits_every_recipient(client, seed, user, other_user, admin, auth):
    r = client.post(
        "/api/admin/sending/bulk",
        json={"recipients": [{"email": user.email}, {"email": other_user.email}], "amount": "25", "description": "Promo"},
        headers=auth(admin),
    )
    assert r.status_code == 200, r.text
    assert r.json() == {"message": "Sent to 2 recipients", "count": 2}
    assert seed.balance(user) == Decimal("1025")
    assert seed.balance(other_user) == Decimal("225")
    assert len(seed.all(select(Transaction).where(Transaction.type == "admin_transfer"))) == 2


def test_bulk_send_is_all_or_nothing(client, seed, user, admin, auth):
    r = client.post(
        "/api/admin/sending/bulk",
        json={"recipients": [{"email": user.email}, {"email": "ghost@example.com"}], "amount": "25"},
        headers=auth(admin),
    )
    assert r.status_code == 400
    assert r.json()["details"]["missing"] == ["ghost@example.com"]
    assert seed.balance(user) == Decimal("1000")


# ---------------------------------------------------------------------------
# Banques
# ---------------------------------------------------------------------------

def test_bank_crud(client, seed, user, admin, auth):
    r = client.post("/api/admin/banks", json={"name": "Awash Bank", "code": "awash"}, headers=auth(admin))
    assert r.status_code == 201, r.text
    bank_id = r.json()["id"]
    assert r.json()["code"] == "AWASH"

    dup = client.post("/api/admin/banks", json={"name": "Awash Again", "code": "AWASH"}, headers=auth(admin))
    assert dup.status_code == 400
    assert dup.json()["error"] == "Bank code already exists"

    r = client.put(f"/api/admin/banks/{bank_id}", json={"status": "inactive"}, headers=auth(admin))
    assert r.json()["status"] == "inactive"

    visible = client.get("/api/banks", headers=auth(user)).json()
    assert bank_id not in [b["id"] for b in visible]

    r = client.delete(f"/api/admin/banks/{bank_id}", headers=auth(admin))
    assert r.json() == {"message": "Bank deleted"}
    assert _actions(seed) == ["CREATE_BANK", "UPDATE_BANK", "DELETE_BANK"]


def test_bank_with_accounts_cannot_be_deleted(client, bank, bank_account, admin, auth):
    r = client.delete(f"/api/admin/banks/{bank.id}", headers=auth(admin))
    assert r.status_code == 400
    assert r.json()["error"] == "Bank has linked accounts"

    users = client.get(f"/api/admin/banks/{bank.id}/users", headers=auth(admin))
    assert users.status_code == 200


# ---------------------------------------------------------------------------
# Paramètres, emails, dashboard, journaux
# ---------------------------------------------------------------------------

def test_platform_settings_update(client, seed, user, other_user, admin, auth):
    r = client.get("/api/admin/settings", headers=auth(admin))
    assert r.status_code == 200
    assert r.json()["sending_min"] == "1.00"

    r = client.put("/api/admin/settings", json={"sending_min": "50"}, headers=auth(admin))
    assert r.status_code == 200
    assert r.json()["sending_min"] == "50.00"

    too_small = client.post("/api/user/transfer", json={"recipient_id": str(other_user.id), "amount": 20}, headers=auth(user))
    assert too_small.status_code == 400
    assert too_small.json()["error"] == "Minimum sending amount is 50.00"

    incoherent = client.put("/api/admin/settings", json={"deposit_min": "900000"}, headers=auth(admin))
    assert incoherent.status_code == 400
    assert incoherent.json()["error"] == "Invalid limit values"


def test_send_email_to_selected_users(client, seed, user, other_user, admin, auth):
    none = client.post("/api/admin/email/send", json={"subject": "Hi", "body": "Hello"}, headers=auth(admin))
    assert none.status_code == 400
    assert none.json()["error"] == "No recipients selected"

    r = client.post(
        "/api/admin/email/send",
        json={"user_ids": [str(user.id)], "subject": "Maintenance", "body": "Tonight at 22:00"},
        headers=auth(admin),
    )
    assert r.json() == {"sent": 1}
    assert [m.to for m in email_service.outbox] == [user.email]

    everyone = client.post("/api/admin/email/send", json={"all_users": True, "subject": "News", "body": "Hello"}, headers=auth(admin))
    assert everyone.json() == {"sent": 2}


def test_dashboard_and_reports(client, seed, user, other_user, admin, auth):
    client.post("/api/user/transfer", json={"recipient_id": str(other_user.id), "amount": 60}, headers=auth(user))

    dash = client.get("/api/admin/dashboard", headers=auth(admin))
    assert dash.status_code == 200
    body = dash.json()
    assert body["total_users"] == 2
    assert body["active_users"] == 2
    assert Decimal(body["total_balance"]) == Decimal("1200")
    assert Decimal(body["transaction_volume"]["by_type"]["transfer"]) == Decimal("60")

    stats = client.get("/api/admin/stats", headers=auth(admin)).json()
    assert all(isinstance(v, int) for v in stats.values())

    report = client.get("/api/admin/reports/transactions", params={"days": 7}, headers=auth(admin)).json()
    assert len(report["days"]) == 7
    assert sum(day["count"] for day in report["days"]) == 1

    users = client.get("/api/admin/reports/users", params={"days": 7}, headers=auth(admin))
    assert users.status_code == 200


def test_admin_transactions_and_logs(client, seed, user, other_user, admin, auth):
    sent = client.post("/api/user/transfer", json={"recipient_id": str(other_user.id), "amount": 10}, headers=auth(user))
    tx_id = sent.json()["transaction"]["id"]
    client.put(f"/api/admin/users/{user.id}/limits", json={
        "daily_limit": "1", "monthly_limit": "1", "send_limit": "1", "withdraw_limit": "1",
    }, headers=auth(admin))

    listing = client.get("/api/admin/transactions", params={"type": "transfer"}, headers=auth(admin)).json()
    assert [t["id"] for t in listing["data"]] == [tx_id]

    one = client.get(f"/api/admin/transactions/{tx_id}", headers=auth(admin))
    assert one.json()["sender"]["email"] == user.email

    missing = client.get("/api/admin/transactions/00000000-0000-0000-0000-000000000000", headers=auth(admin))
    assert missing.status_code == 404

    stats = client.get("/api/admin/transactions/stats", headers=auth(admin)).json()
    assert stats["counts"] == {"completed": 1}

    audit = client.get("/api/admin/logs/audit", params={"action": "UPDATE_USER_LIMITS"}, headers=auth(admin)).json()
    assert audit["pagination"]["total"] == 1

    activity = client.get("/api/admin/logs/activity", params={"user_id": str(user.id)}, headers=auth(admin)).json()
    assert [a["type"] for a in activity["data"]] == ["money_sent"]

    security = client.get("/api/admin/logs/security", headers=auth(admin))
    assert security.status_code == 200


def test_admin_search(client, user, other_user, admin, auth):
    sent = client.post(
        "/api/user/transfer",
        json={"recipient_id": str(other_user.id), "amount": 10, "description": "Coffee beans"},
        headers=auth(user),
    ).json()["transaction"]

    users = client.get("/api/search/users", params={"q": "kebede"}, headers=auth(admin)).json()
    assert [u["email"] for u in users] == [user.email]

    by_reference = client.get("/api/search/transactions", params={"q": sent["reference"]}, headers=auth(admin)).json()
    by_description = client.get("/api/search/transactions", params={"q": "coffee"}, headers=auth(admin)).json()
    assert [t["id"] for t in by_reference] == [t["id"] for t in by_description] == [sent["id"]]

    assert client.get("/api/search/users", params={"q": "kebede"}, headers=auth(user)).status_code == 403


def test_admin_support_queue(client, user, admin, auth):
    client.post("/api/user/support/tickets", json={"subject": "Card issue", "description": "Help"}, headers=auth(user))
    queue = client.get("/api/admin/support", params={"status": "open"}, headers=auth(admin)).json()
    assert [t["subject"] for t in queue["data"]] == ["Card issue"]


# ---------------------------------------------------------------------------
# Modèles d’email
# ---------------------------------------------------------------------------

def test_email_templates_create_list_and_send(client, seed, user, other_user, admin, auth):
    payload = {"name": "welcome", "subject": "Welcome to Cashora", "content": "Hello {name}, your wallet is ready."}
    r = client.post("/api/admin/email/templates", json=payload, headers=auth(admin))
    assert r.status_code == 201, r.text
    template_id = r.json()["id"]
    assert r.json()["created_by"] == str(admin.id)

    dup = client.post("/api/admin/email/templates", json=payload, headers=auth(admin))
    assert dup.status_code == 400
    assert dup.json()["error"] == "Template name already exists"

    listed = client.get("/api/admin/email/templates", headers=auth(admin)).json()
    assert [t["name"] for t in listed] == ["welcome"]

    r = client.post(
        "/api/admin/email/send", json={"user_ids": [str(user.id)], "template_id": template_id}, headers=auth(admin)
    )
    assert r.json() == {"sent": 1}
    mail = email_service.outbox[-1]
    assert mail.subject == "Welcome to Cashora"
    assert mail.body == "Hello Abebe Kebede, your wallet is ready."

    r = client.delete(f"/api/admin/email/templates/{template_id}", headers=auth(admin))
    assert r.json() == {"message": "Template deleted"}
    gone = client.post(
        "/api/admin/email/send", json={"user_ids": [str(user.id)], "template_id": template_id}, headers=auth(admin)
    )
    assert gone.status_code == 404
    assert gone.json()["error"] == "Template not found"
    assert {"CREATE_EMAIL_TEMPLATE", "DELETE_EMAIL_TEMPLATE"} <= set(_actions(seed))


def test_send_email_needs_content(client, user, admin, auth):
    r = client.post("/api/admin/email/send", json={"user_ids": [str(user.id)], "subject": "Only a subject"}, headers=auth(admin))
    assert r.status_code == 400
    assert r.json()["error"] == "Subject and body are required"


def test_email_templates_require_admin(client, user, auth):
    assert client.get("/api/admin/email/templates", headers=auth(user)).status_code == 403


# ---------------------------------------------------------------------------
# Vérifications d’identité
# ---------------------------------------------------------------------------

def _submit_documents(client, user, auth):
    jpeg = b"\xff\xd8\xff\xe0" + b"\x00" * 32
    files = {
        "id_front": ("front.jpg", jpeg, "image/jpeg"),
        "id_back": ("back.jpg", jpeg, "image/jpeg"),
        "selfie": ("selfie.jpg", jpeg, "image/jpeg"),
    }
    r = client.post(
        "/api/user/profile/verify",
        data={"id_type": "passport", "id_number": "EP1234567"},
        files=files,
        headers=auth(user),
    )
    assert r.status_code == 201, r.text
    return r.json()["id"]


def test_admin_approves_identity_verification(client, seed, user, admin, auth):
    verification_id = _submit_documents(client, user, auth)

    queue = client.get("/api/admin/verifications", params={"status": "pending"}, headers=auth(admin)).json()
    assert [(v["id"], v["user"]["email"]) for v in queue["data"]] == [(verification_id, user.email)]

    doc = client.get(f"/api/admin/verifications/{verification_id}/documents/selfie", headers=auth(admin))
    assert doc.status_code == 200
    assert doc.content.startswith(b"\xff\xd8")
    bad_kind = client.get(f"/api/admin/verifications/{verification_id}/documents/passport", headers=auth(admin))
    assert bad_kind.status_code == 400

    r = client.put(f"/api/admin/verifications/{verification_id}", json={"action": "approve"}, headers=auth(admin))
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "approved"
    assert r.json()["reviewed_by"] == str(admin.id)

    profile = seed.get(Profile, user.id)
    assert profile.verification_level == 2
    assert profile.verified_by == admin.id

    again = client.put(f"/api/admin/verifications/{verification_id}", json={"action": "approve"}, headers=auth(admin))
    assert again.status_code == 400
    assert again.json()["error"] == "Verification request already processed"

    notices = seed.all(select(Notification).where(Notification.user_id == user.id, Notification.type == "verification_approved"))
    assert len(notices) == 1
    assert "APPROVE_VERIFICATION" in _actions(seed)


def test_admin_rejects_identity_verification(client, seed, user, admin, auth):
    verification_id = _submit_documents(client, user, auth)

    r = client.put(f"/api/admin/verifications/{verification_id}", json={"action": "reject"}, headers=auth(admin))
    assert r.status_code == 400
    assert r.json()["error"] == "Rejection reason is required"

    r = client.put(
        f"/api/admin/verifications/{verification_id}", json={"action": "reject", "reason": "Blurry photo"}, headers=auth(admin)
    )
    assert r.json()["status"] == "rejected"
    assert r.json()["rejection_reason"] == "Blurry photo"
    assert seed.get(Profile, user.id).verification_level == 0

    # Un refus permet de soumettre un nouveau dossier
    _submit_documents(client, user, auth)


def test_verification_admin_routes_require_admin(client, user, auth):
    assert client.get("/api/admin/verifications", headers=auth(user)).status_code == 403
