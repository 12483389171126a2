import csv
import io
from decimal import Decimal

from sqlalchemy import select

from cashora.core import storage as storage_module
from cashora.models import BankAccount, Notification, Profile, ProfileVerification, SecurityLog, SupportTicket

PASSWORD = "Passw0rd1"


def _transfer(client, auth, sender, recipient, amount=25):
    return client.post("/api/user/transfer", json={"recipient_id": str(recipient.id), "amount": amount}, headers=auth(sender))


# ---------------------------------------------------------------------------
# Comptes bancaires
# ---------------------------------------------------------------------------

def test_first_bank_account_becomes_default(client, seed, user, bank, auth):
    payload = {"bank_id": str(bank.id), "account_number": "100020003000", "account_name": "Abebe Kebede"}
    first = client.post("/api/user/bank-accounts", json=payload, headers=auth(user))
    assert first.status_code == 201, first.text
    assert first.json()["is_default"] is True
    assert first.json()["account_number"] == "100020003000"
    assert first.json()["bank"]["code"] == "CBE"

    dup = client.post("/api/user/bank-accounts", json=payload, headers=auth(user))
    assert dup.status_code == 400
    assert dup.json()["error"] == "Bank account already exists"

    second = client.post(
        "/api/user/bank-accounts", json={**payload, "account_number": "5555666677"}, headers=auth(user)
    )
    assert second.json()["is_default"] is False

    r = client.put(f"/api/user/bank-accounts/{second.json()['id']}/default", headers=auth(user))
    assert r.json()["is_default"] is True
    listed = client.get("/api/user/bank-accounts", headers=auth(user)).json()
    assert [a["id"] for a in listed] == [second.json()["id"], first.json()["id"]]
    assert [a["is_default"] for a in listed] == [True, False]


def test_bank_account_validation(client, seed, user, bank, auth):
    r = client.post(
        "/api/user/bank-accounts",
        json={"bank_id": str(bank.id), "account_number": "12AB", "account_name": "Abebe Kebede"},
        headers=auth(user),
    )
    assert r.status_code == 400

    closed = seed.bank(code="OLD", name="Old Bank", status="inactive")
    r = client.post(
        "/api/user/bank-accounts",
        json={"bank_id": str(closed.id), "account_number": "1000200030", "account_name": "Abebe Kebede"},
        headers=auth(user),
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid bank selected"


def test_deleting_default_promotes_next_account(client, seed, user, bank, bank_account, auth):
    backup = seed.bank_account(user, bank, number="9999888877", default=False)

    r = client.delete(f"/api/user/bank-accounts/{bank_account.id}", headers=auth(user))
    assert r.json() == {"message": "Bank account deleted"}
    assert seed.get(BankAccount, backup.id).is_default is True


def test_bank_accounts_are_private(client, other_user, bank_account, auth):
    r = client.post(f"/api/user/bank-accounts/{bank_account.id}/verify", headers=auth(other_user))
    assert r.status_code == 404
    assert r.json()["error"] == "Bank account not found"


def test_verify_bank_account(client, user, bank_account, auth):
    r = client.post(f"/api/user/bank-accounts/{bank_account.id}/verify", headers=auth(user))
    assert r.status_code == 200
    assert r.json()["is_verified"] is True
    assert r.json()["verified_at"] is not None


# ---------------------------------------------------------------------------
# Profil
# ---------------------------------------------------------------------------

def test_profile_read_and_update(client, seed, user, auth):
    r = client.get("/api/user/profile", headers=auth(user))
    assert r.json()["full_name"] == "Abebe Kebede"
    assert "password_hash" not in r.json()

    r = client.put("/api/user/profile", json={"full_name": "Abebe Kebede Bekele", "phone": "+251911234567"}, headers=auth(user))
    assert r.status_code == 200, r.text
    assert r.json()["full_name"] == "Abebe Kebede Bekele"

    bad = client.put("/api/user/profile", json={"full_name": "1"}, headers=auth(user))
    assert bad.status_code == 400

    activities = client.get("/api/user/profile/activities", headers=auth(user)).json()
    assert [a["type"] for a in activities["data"]] == ["profile_updated"]


def test_avatar_upload(client, seed, user, auth):
    png = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
    r = client.post("/api/user/profile/avatar", files={"file": ("me.png", png, "image/png")}, headers=auth(user))
    assert r.status_code == 200, r.text
    url = r.json()["avatar_url"]
    assert url.endswith(".png")

    saved = storage_module.storage.root / url.split("/", 2)[-1]
    assert saved.read_bytes() == png

    wrong = client.post("/api/user/profile/avatar", files={"file": ("me.gif", b"GIF89a", "image/gif")}, headers=auth(user))
    assert wrong.status_code == 400
    assert wrong.json()["error"] == "Invalid file type"


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

def test_notifications_read_and_delete(client, seed, user, other_user, auth):
    _transfer(client, auth, other_user, user, 10)
    _transfer(client, auth, other_user, user, 15)

    listing = client.get("/api/user/notifications", headers=auth(user)).json()
    assert listing["unread_count"] == 2
    assert {n["type"] for n in listing["data"]} == {"money_received"}

    first_id = listing["data"][0]["id"]
    r = client.put(f"/api/user/notifications/{first_id}/read", headers=auth(user))
    assert r.json()["read"] is True
    assert client.get("/api/user/notifications", headers=auth(user)).json()["unread_count"] == 1

    r = client.patch("/api/user/notifications/read-all", headers=auth(user))
    assert r.json() == {"message": "1 notifications marked as read"}

    r = client.delete(f"/api/user/notifications/{first_id}", headers=auth(user))
    assert r.json() == {"message": "Notification deleted"}
    assert len(seed.all(select(Notification).where(Notification.user_id == user.id))) == 1


def test_notifications_of_others_are_hidden(client, seed, user, other_user, auth):
    _transfer(client, auth, user, other_user, 10)
    theirs = seed.all(select(Notification).where(Notification.user_id == other_user.id))[0]

    r = client.put(f"/api/user/notifications/{theirs.id}/read", headers=auth(user))
    assert r.status_code == 404


def test_admins_see_shared_notifications(client, seed, user, admin, auth):
    client.post("/api/user/deposit", json={"amount": "50", "full_name": "Abebe Kebede"}, headers=auth(user))

    mine = client.get("/api/user/notifications", headers=auth(user)).json()
    assert mine["data"] == []

    shared = client.get("/api/user/notifications", headers=auth(admin)).json()
    assert [n["type"] for n in shared["data"]] == ["deposit_request"]


def test_notification_preferences(client, user, other_user, auth):
    prefs = client.get("/api/user/notifications/preferences", headers=auth(user)).json()
    assert prefs["email_notifications"] is True
    assert prefs["marketing_emails"] is False

    r = client.put("/api/user/notifications/preferences", json={"email_notifications": False}, headers=auth(user))
    assert r.json()["email_notifications"] is False
    assert r.json()["security_alerts"] is True


# ---------------------------------------------------------------------------
# Support
# ---------------------------------------------------------------------------

def test_support_ticket_conversation(client, seed, user, admin, auth):
    r = client.post(
        "/api/user/support/tickets",
        json={"subject": "Withdrawal delay", "description": "My withdrawal is still pending", "priority": "high"},
        headers=auth(user),
    )
    assert r.status_code == 201, r.text
    ticket = r.json()
    assert ticket["status"] == "open"
    assert [m["sender_type"] for m in ticket["messages"]] == ["user"]

    reply = client.post(f"/api/admin/support/{ticket['id']}/reply", json={"message": "Looking into it"}, headers=auth(admin))
    assert reply.status_code == 201
    assert reply.json()["status"] == "in_progress"
    assert reply.json()["assigned_to"] == str(admin.id)

    follow = client.post(
        f"/api/user/support/tickets/{ticket['id']}/messages", json={"message": "Thanks"}, headers=auth(user)
    )
    assert follow.status_code == 201

    detail = client.get(f"/api/user/support/tickets/{ticket['id']}", headers=auth(user)).json()
    assert [m["sender_type"] for m in detail["messages"]] == ["user", "admin", "user"]

    notices = seed.all(select(Notification).where(Notification.user_id == user.id))
    assert [n.type for n in notices] == ["support_reply"]


def test_closed_ticket_rejects_messages(client, seed, user, admin, auth):
    ticket_id = client.post(
        "/api/user/support/tickets",
        json={"subject": "Question", "description": "How do fees work?"},
        headers=auth(user),
    ).json()["id"]

    r = client.put(f"/api/admin/support/{ticket_id}/status", json={"status": "closed"}, headers=auth(admin))
    assert r.json()["status"] == "closed"

    r = client.post(f"/api/user/support/tickets/{ticket_id}/messages", json={"message": "Hello?"}, headers=auth(user))
    assert r.status_code == 400
    assert r.json()["error"] == "Ticket is closed"

    listed = client.get("/api/user/support/tickets", params={"status": "closed"}, headers=auth(user)).json()
    assert listed["pagination"]["total"] == 1


def test_tickets_are_private(client, seed, user, other_user, auth):
    ticket_id = client.post(
        "/api/user/support/tickets", json={"subject": "Question", "description": "Fees?"}, headers=auth(user)
    ).json()["id"]
    r = client.get(f"/api/user/support/tickets/{ticket_id}", headers=auth(other_user))
    assert r.status_code == 404
    assert len(seed.all(select(SupportTicket))) == 1


# ---------------------------------------------------------------------------
# Dashboard & transactions
# ---------------------------------------------------------------------------

def test_user_dashboard(client, user, other_user, auth):
    _transfer(client, auth, user, other_user, 100)
    _transfer(client, auth, other_user, user, 40)

    dash = client.get("/api/user/dashboard", headers=auth(user)).json()
    assert Decimal(dash["current_balance"]) == Decimal("940")
    assert Decimal(dash["total_sent"]) == Decimal("100")
    assert Decimal(dash["total_received"]) == Decimal("40")
    assert len(dash["recent_transactions"]) == 2
    assert dash["unread_notifications"] == 2

    chart = client.get("/api/user/dashboard/chart", params={"days": 7}, headers=auth(user)).json()
    assert len(chart["days"]) == 7
    assert Decimal(chart["days"][-1]["outgoing"]) == Decimal("100")


def test_transaction_list_detail_and_exports(client, user, other_user, auth):
    tx_id = _transfer(client, auth, user, other_user, 75).json()["transaction"]["id"]

    listing = client.get("/api/user/transactions", params={"type": "transfer"}, headers=auth(user)).json()
    assert [t["id"] for t in listing["data"]] == [tx_id]
    assert client.get("/api/user/transactions", params={"type": "deposit"}, headers=auth(user)).json()["data"] == []

    detail = client.get(f"/api/user/transactions/{tx_id}", headers=auth(other_user))
    assert detail.status_code == 200

    export = client.get("/api/user/transactions/export", headers=auth(user))
    assert export.headers["content-type"].startswith("text/csv")
    rows = list(csv.DictReader(io.StringIO(export.text)))
    assert [(r["direction"], r["amount"], r["counterparty"]) for r in rows] == [("out", "75.00", "Sara Tadesse")]

    receipt = client.get(f"/api/user/transactions/{tx_id}/receipt", headers=auth(user))
    assert receipt.status_code == 200
    assert receipt.headers["content-type"] == "application/pdf"
    assert receipt.content.startswith(b"%PDF")


def test_transaction_of_others_is_404(client, seed, user, other_user, auth):
    stranger = seed.user("third@example.com", full_name="Third Party")
    tx_id = _transfer(client, auth, user, other_user, 5).json()["transaction"]["id"]
    r = client.get(f"/api/user/transactions/{tx_id}", headers=auth(stranger))
    assert r.status_code == 404


# ---------------------------------------------------------------------------
# Compte
# ---------------------------------------------------------------------------

def test_change_password(client, seed, user, auth):
    wrong = client.put(
        "/api/user/account/password", json={"current_password": "nope", "new_password": "Another99"}, headers=auth(user)
    )
    assert wrong.status_code == 400
    assert wrong.json()["error"] == "Current password is incorrect"

    r = client.put(
        "/api/user/account/password", json={"current_password": PASSWORD, "new_password": "Another99"}, headers=auth(user)
    )
    assert r.json() == {"message": "Password updated"}
    assert client.post("/api/auth/login", json={"email": user.email, "password": "Another99"}).status_code == 200

    events = [e.event for e in seed.all(select(SecurityLog).where(SecurityLog.user_id == user.id))]
    assert "password_changed" in events


def test_close_account_requires_zero_balance(client, seed, user, auth):
    r = client.post("/api/user/account/close", json={"password": PASSWORD}, headers=auth(user))
    assert r.status_code == 400
    assert r.json()["error"] == "Account balance must be zero before closing"

    empty = seed.user("empty@example.com", full_name="Empty Wallet")
    r = client.post("/api/user/account/close", json={"password": PASSWORD}, headers=auth(empty))
    assert r.json() == {"message": "Account closed"}
    assert seed.get(Profile, empty.id).status == "closed"

    after = client.get("/api/user/profile", headers=auth(empty))
    assert after.status_code == 403


def test_close_account_refuses_pending_requests(client, seed, admin, auth):
    empty = seed.user("empty@example.com", full_name="Empty Wallet")
    r = client.post("/api/user/deposit", json={"amount": "100", "full_name": "Empty Wallet"}, headers=auth(empty))
    assert r.status_code == 201, r.text

    r = client.post("/api/user/account/close", json={"password": PASSWORD}, headers=auth(empty))
    assert r.status_code == 400
    assert r.json()["error"] == "Pending requests must be resolved before closing"
    assert seed.get(Profile, empty.id).status == "active"


def test_account_export(client, user, other_user, bank_account, auth):
    _transfer(client, auth, user, other_user, 12)
    r = client.get("/api/user/account/export", headers=auth(user))
    assert r.status_code == 200
    body = r.json()
    assert body["profile"]["email"] == user.email
    assert len(body["transactions"]) == 1
    assert body["transactions"][0]["amount"] == "12.00"
    assert [a["account_number"] for a in body["bank_accounts"]] == ["1000200030"]


# ---------------------------------------------------------------------------
# Vérification d’identité
# ---------------------------------------------------------------------------

JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 32
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
ID_FIELDS = {"id_type": "national_id", "id_number": "ET-1234567"}


def _documents(selfie=("me.jpg", JPEG, "image/jpeg")):
    files = {"id_front": ("front.jpg", JPEG, "image/jpeg"), "id_back": ("back.png", PNG, "image/png")}
    if selfie is not None:
        files["selfie"] = selfie
    return files


def test_submit_identity_verification(client, seed, user, auth):
    before = client.get("/api/user/profile/verification", headers=auth(user)).json()
    assert before == {"verification_level": 0, "verification": None}

    r = client.post("/api/user/profile/verify", data=ID_FIELDS, files=_documents(), headers=auth(user))
    assert r.status_code == 201, r.text
    assert r.json()["status"] == "pending"
    assert r.json()["id_type"] == "national_id"

    stored = sorted(p.name for p in (storage_module.storage.private_root / "verifications").iterdir())
    assert len(stored) == 3
    assert all(name.startswith(str(user.id)) for name in stored)
    assert not (storage_module.storage.root / "verifications").exists()

    notices = seed.all(select(Notification).where(Notification.type.in_(["verification_submitted", "verification_request"])))
    assert sorted(n.audience for n in notices) == ["admin", "user"]

    status = client.get("/api/user/profile/verification", headers=auth(user)).json()
    assert status["verification"]["status"] == "pending"

    again = client.post("/api/user/profile/verify", data=ID_FIELDS, files=_documents(), headers=auth(user))
    assert again.status_code == 400
    assert again.json()["error"] == "Verification request is already pending"


def test_identity_verification_document_rules(client, seed, user, auth):
    missing = client.post("/api/user/profile/verify", data=ID_FIELDS, files=_documents(selfie=None), headers=auth(user))
    assert missing.status_code == 400
    assert missing.json()["error"] == "All verification documents are required"

    gif = client.post(
        "/api/user/profile/verify", data=ID_FIELDS, files=_documents(("me.gif", b"GIF89a", "image/gif")), headers=auth(user)
    )
    assert gif.status_code == 400
    assert gif.json()["error"] == "Invalid file type. Only JPEG and PNG images are allowed."

    huge = JPEG + b"\x00" * (5 * 1024 * 1024)
    big = client.post(
        "/api/user/profile/verify", data=ID_FIELDS, files=_documents(("me.jpg", huge, "image/jpeg")), headers=auth(user)
    )
    assert big.status_code == 400
    assert big.json()["error"] == "File size too large. Maximum size is 5MB per file."

    assert seed.all(select(ProfileVerification)) == []
    assert not (storage_module.storage.private_root / "verifications").exists()


def test_verified_profile_cannot_resubmit(client, seed, auth):
    verified = seed.user("kyc@example.com", full_name="Kyc Done", verification_level=2)
    r = client.post("/api/user/profile/verify", data=ID_FIELDS, files=_documents(), headers=auth(verified))
    assert r.status_code == 400
    assert r.json()["error"] == "Profile is already verified"
