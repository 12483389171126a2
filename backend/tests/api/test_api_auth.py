import pyotp
from sqlalchemy import select

from cashora.core.security import create_reset_token
from cashora.core.settings import settings
from cashora.models import LoginAttempt, Notification, Profile, SecurityLog
from cashora.services.email_service import email_service

PASSWORD = "Passw0rd1"

SIGNUP = {"email": "New.User@Example.com", "password": "Secret123", "full_name": "New User", "phone": "0911234567"}


def _login(client, email="abebe@example.com", password=PASSWORD, **extra):
    return client.post("/api/auth/login", json={"email": email, "password": password, **extra})


def test_signup_creates_pending_profile(client, seed):
    r = client.post("/api/auth/signup", json=SIGNUP)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["access_token"]
    assert body["requires_2fa"] is False
    assert body["user"]["email"] == "new.user@example.com"
    assert body["user"]["status"] == "pending"
    assert body["user"]["balance"] == "0.00"

    notices = seed.all(select(Notification).where(Notification.type == "new_user"))
    assert len(notices) == 1
    assert notices[0].audience == "admin"


def test_signup_rejects_duplicate_email(client, user):
    r = client.post("/api/auth/signup", json={**SIGNUP, "email": "ABEBE@example.com"})
    assert r.status_code == 400
    assert r.json()["error"] == "Email already registered"


def test_signup_rejects_weak_password(client):
    r = client.post("/api/auth/signup", json={**SIGNUP, "password": "password"})
    assert r.status_code == 400
    assert r.json()["code"] == "WEAK_PASSWORD"


def test_signup_missing_field_is_invalid_input(client):
    r = client.post("/api/auth/signup", json={"email": "x@example.com"})
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "Invalid input"
    assert body["code"] == "VALIDATION_ERROR"
    assert any(d["loc"][-1] == "password" for d in body["details"])
    assert body["request_id"]


def test_login_success_records_device_and_attempt(client, seed, user):
    r = _login(client)
    assert r.status_code == 200, r.text
    assert r.json()["user"]["id"] == str(user.id)

    attempts = seed.all(select(LoginAttempt).where(LoginAttempt.email == user.email))
    assert [a.success for a in attempts] == [True]
    assert seed.get(Profile, user.id).last_login_at is not None

    r = client.get("/api/auth/device-history", headers={"Authorization": f"Bearer {r.json()['access_token']}"})
    assert r.status_code == 200
    assert len(r.json()) == 1
    assert r.json()[0]["login_count"] == 1
    assert [m.template for m in email_service.outbox] == ["NEW_LOGIN"]

    again = _login(client)
    assert again.status_code == 200
    assert [m.template for m in email_service.outbox] == ["NEW_LOGIN"]


def test_login_wrong_password(client, seed, user):
    r = _login(client, password="Wrong1234")
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid email or password"

    events = seed.all(select(SecurityLog).where(SecurityLog.user_id == user.id))
    assert [e.event for e in events] == ["login_failed"]


def test_login_unknown_email_has_same_message(client):
    r = _login(client, email="ghost@example.com")
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid email or password"


def test_login_lockout_after_repeated_failures(client, user):
    for _ in range(settings.LOGIN_MAX_ATTEMPTS):
        assert _login(client, password="Wrong1234").status_code == 401

    r = _login(client)
    assert r.status_code == 429
    assert r.json()["code"] == "LOGIN_LOCKED"
    assert r.json()["details"]["wait_time"] >= 1


def test_login_blocked_statuses(client, seed):
    seed.user("sus@example.com", full_name="Sus Pended", status="suspended")
    seed.user("rej@example.com", full_name="Re Jected", status="rejected")

    r = _login(client, email="sus@example.com")
    assert r.status_code == 403
    assert r.json()["error"] == "Account is suspended"

    r = _login(client, email="rej@example.com")
    assert r.status_code == 403
    assert r.json()["error"] == "Account has been rejected"


def test_pending_user_can_log_in(client, seed):
    seed.user("wait@example.com", full_name="Wai Ting", status="pending")
    r = _login(client, email="wait@example.com")
    assert r.status_code == 200
    assert r.json()["user"]["status"] == "pending"


def test_current_user_requires_token(client, user, auth):
    assert client.get("/api/auth/user").status_code == 401
    assert client.get("/api/auth/user", headers={"Authorization": "Bearer nope"}).status_code == 401

    r = client.get("/api/auth/user", headers=auth(user))
    assert r.status_code == 200
    assert r.json()["email"] == user.email


def test_two_factor_flow(client, user, auth):
    headers = auth(user)
    setup = client.post("/api/auth/enable-2fa", headers=headers)
    assert setup.status_code == 200
    secret = setup.json()["secret"]
    assert setup.json()["qr_code"].startswith("data:image/svg+xml;base64,")

    wrong = next(c for c in ("111111", "222222", "333333", "444444") if not pyotp.TOTP(secret).verify(c, valid_window=1))
    bad = client.post("/api/auth/verify-2fa", json={"token": wrong}, headers=headers)
    assert bad.status_code == 400
    assert bad.json()["error"] == "Invalid 2FA token"

    ok = client.post("/api/auth/verify-2fa", json={"token": pyotp.TOTP(secret).now()}, headers=headers)
    assert ok.status_code == 200
    assert ok.json() == {"two_factor_enabled": True}

    check = client.get("/api/auth/check-2fa", params={"user_id": str(user.id)})
    assert check.json() == {"two_factor_enabled": True}

    r = _login(client)
    assert r.status_code == 200
    assert r.json()["requires_2fa"] is True
    assert r.json()["access_token"] is None

    r = _login(client, totp_code=pyotp.TOTP(secret).now())
    assert r.status_code == 200
    assert r.json()["access_token"]

    off = client.post("/api/auth/disable-2fa", json={"token": pyotp.TOTP(secret).now()}, headers=headers)
    assert off.json() == {"two_factor_enabled": False}


def test_check_2fa_requires_user_id(client):
    r = client.get("/api/auth/check-2fa")
    assert r.status_code == 400
    assert r.json()["error"] == "user_id is required"


def test_block_status(client, seed, user):
    suspended = seed.user("sus@example.com", full_name="Sus Pended", status="suspended")
    assert client.get("/api/auth/block-status", params={"user_id": str(user.id)}).json() == {"blocked": False}
    assert client.get("/api/auth/block-status", params={"user_id": str(suspended.id)}).json() == {"blocked": True}


def test_recover_and_reset_password(client, user):
    r = client.post("/api/auth/recover", json={"email": "ghost@example.com"})
    assert r.status_code == 200
    same = client.post("/api/auth/recover", json={"email": user.email})
    assert same.json() == r.json()
    assert [m.to for m in email_service.outbox] == [user.email]
    assert email_service.outbox[0].template == "PASSWORD_RESET"

    token = create_reset_token(user.id, user.password_hash)
    r = client.post("/api/auth/reset-password", json={"token": token, "password": "NewPass99"})
    assert r.status_code == 200
    assert _login(client, password="NewPass99").status_code == 200
    assert _login(client).status_code == 401


def test_reset_password_rejects_access_token(client, user, auth):
    access = auth(user)["Authorization"].split()[1]
    r = client.post("/api/auth/reset-password", json={"token": access, "password": "NewPass99"})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid or expired reset token"


def test_reset_token_is_single_use(client, user):
    token = create_reset_token(user.id, user.password_hash)
    first = client.post("/api/auth/reset-password", json={"token": token, "password": "NewPass99"})
    assert first.status_code == 200

    replay = client.post("/api/auth/reset-password", json={"token": token, "password": "Other123x"})
    assert replay.status_code == 400
    assert replay.json()["error"] == "Invalid or expired reset token"
    assert _login(client, password="Other123x").status_code == 401
    assert _login(client, password="NewPass99").status_code == 200


def test_reset_token_dies_after_password_change(client, user, auth):
    token = create_reset_token(user.id, user.password_hash)
    r = client.put(
        "/api/user/account/password",
        json={"current_password": PASSWORD, "new_password": "Changed99"},
        headers=auth(user),
    )
    assert r.status_code == 200, r.text

    stale = client.post("/api/auth/reset-password", json={"token": token, "password": "NewPass99"})
    assert stale.status_code == 400


def test_active_2fa_secret_needs_current_code_to_rotate(client, user, auth):
    headers = auth(user)
    secret = client.post("/api/auth/enable-2fa", headers=headers).json()["secret"]
    client.post("/api/auth/verify-2fa", json={"token": pyotp.TOTP(secret).now()}, headers=headers)

    blind = client.post("/api/auth/enable-2fa", headers=headers)
    assert blind.status_code == 400
    assert blind.json()["error"] == "Invalid 2FA token"
    assert client.get("/api/auth/check-2fa", params={"user_id": str(user.id)}).json() == {"two_factor_enabled": True}

    rotated = client.post("/api/auth/enable-2fa", json={"token": pyotp.TOTP(secret).now()}, headers=headers)
    assert rotated.status_code == 200
    assert rotated.json()["secret"] != secret


QUESTIONS = [
    {"question": "First school?", "answer": "Bole Primary"},
    {"question": "Favourite dish?", "answer": "Doro Wat"},
    {"question": "Birth town?", "answer": "Bahir Dar"},
]


def test_security_questions_need_three(client, user, auth):
    r = client.post("/api/auth/security-questions", json={"questions": QUESTIONS[:2]}, headers=auth(user))
    assert r.status_code == 400
    assert r.json()["error"] == "At least 3 security questions are required"

    twice = [QUESTIONS[0], QUESTIONS[0], QUESTIONS[1]]
    r = client.post("/api/auth/security-questions", json={"questions": twice}, headers=auth(user))
    assert r.status_code == 400
    assert r.json()["error"] == "Security questions must be different"


def test_security_questions_set_list_and_verify(client, seed, user, other_user, auth):
    r = client.post("/api/auth/security-questions", json={"questions": QUESTIONS}, headers=auth(user))
    assert r.status_code == 200, r.text

    listed = client.get("/api/auth/security-questions", headers=auth(user)).json()["questions"]
    assert {q["question"] for q in listed} == {q["question"] for q in QUESTIONS}
    assert all("answer" not in q and "answer_hash" not in q for q in listed)

    dish = next(q["id"] for q in listed if q["question"] == "Favourite dish?")
    wrong = client.put("/api/auth/security-questions", json={"question_id": dish, "answer": "Injera"}, headers=auth(user))
    assert wrong.status_code == 400
    assert wrong.json()["error"] == "Incorrect answer"

    ok = client.put("/api/auth/security-questions", json={"question_id": dish, "answer": "  doro WAT "}, headers=auth(user))
    assert ok.status_code == 200
    assert ok.json() == {"message": "Security question verified"}

    foreign = client.put("/api/auth/security-questions", json={"question_id": dish, "answer": "Doro Wat"}, headers=auth(other_user))
    assert foreign.status_code == 404
    assert foreign.json()["error"] == "Question not found"

    events = [e.event for e in seed.all(select(SecurityLog).where(SecurityLog.user_id == user.id))]
    assert {"security_questions_updated", "security_question_verification_failed", "security_question_verified"} <= set(events)


def test_security_questions_are_replaced(client, user, auth):
    client.post("/api/auth/security-questions", json={"questions": QUESTIONS}, headers=auth(user))
    replacement = [{"question": f"Question {i}?", "answer": f"answer {i}"} for i in range(4)]
    client.post("/api/auth/security-questions", json={"questions": replacement}, headers=auth(user))

    listed = client.get("/api/auth/security-questions", headers=auth(user)).json()["questions"]
    assert sorted(q["question"] for q in listed) == [f"Question {i}?" for i in range(4)]
