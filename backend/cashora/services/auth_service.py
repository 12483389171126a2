from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.core.device import DeviceInfo, LocationInfo, is_suspicious_move, lookup_location, parse_device
from cashora.core.errors import AppHTTPException, bad_request, not_found
from cashora.core.security import (
    PASSWORD_RESET,
    create_reset_token,
    create_token,
    decode_token,
    hash_password,
    password_fingerprint,
    verify_password,
)
from cashora.core.settings import settings
from cashora.core.totp import TotpSetup, new_setup, verify_token
from cashora.core.validation import validate_email, validate_name, validate_password, validate_phone
from cashora.models.deposit_request import DepositRequest
from cashora.models.device_history import DeviceHistory
from cashora.models.login_attempt import LoginAttempt
from cashora.models.notification import Notification
from cashora.models.notification_preference import NotificationPreference
from cashora.models.profile import Profile
from cashora.models.security_question import SecurityQuestion
from cashora.models.send_request import SendRequest
from cashora.models.withdrawal_request import WithdrawalRequest
from cashora.services.audit_service import NO_CLIENT, ClientInfo, log_activity, log_security_event
from cashora.services.email_service import email_service
from cashora.services.notification_service import DEFAULT_PREFERENCES, notify_admins
from cashora.services.platform_service import get_platform_settings

"""
Auth Service.

Rôle (fonctionnel) :
- Inscription : création du profil (status pending) + préférences de notification par défaut.
- Connexion :
  - verrouillage après LOGIN_MAX_ATTEMPTS échecs sur LOGIN_LOCKOUT_MINUTES (429),
  - second facteur TOTP si activé,
  - historique des tentatives (appareil + localisation) et des appareils connus,
  - emails de sécurité : NEW_LOGIN (appareil inconnu), SUSPICIOUS_LOGIN (déplacement improbable).
- 2FA : initialisation, vérification, désactivation.
- Questions de sécurité : au moins 3, réponses hachées (normalisées), vérification journalisée.
- Mot de passe : récupération par jeton court, réinitialisation, changement, fermeture de compte.

Les emails partent APRÈS commit : un rollback n’émet jamais d’email.
"""

log = logging.getLogger("cashora.auth")

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_2FA = "Invalid 2FA token"
INVALID_RESET = "Invalid or expired reset token"

BLOCKED_MESSAGES = {
    "suspended": "Account is suspended",
    "closed": "Account is closed",
    "rejected": "Account has been rejected",
}


@dataclass
class AuthResult:
    user: Optional[Profile] = None
    access_token: Optional[str] = None
    requires_2fa: bool = False
    notifications: List[Notification] = field(default_factory=list)


def _as_utc(dt: datetime) -> datetime:
    # SQLite relit des datetimes naïfs
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def access_token_for(user: Profile) -> str:
    return create_token(user.id, role=user.role)


# ---------------------------------------------------------------------------
# Inscription
# ---------------------------------------------------------------------------

async def signup(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    full_name: str,
    phone: Optional[str] = None,
    client: ClientInfo = NO_CLIENT,
) -> AuthResult:
    email = validate_email(email)
    password = validate_password(password)
    full_name = validate_name(full_name)
    phone = validate_phone(phone)

    exists = (await db.execute(select(Profile.id).where(Profile.email == email))).scalar_one_or_none()
    if exists is not None:
        raise bad_request("Email already registered", code="EMAIL_TAKEN")

    platform = await get_platform_settings(db)
    user = Profile(
        email=email,
        password_hash=hash_password(password),
        full_name=full_name,
        phone=phone,
        role="user",
        status="pending",
        daily_limit=platform.default_daily_limit,
        monthly_limit=platform.default_monthly_limit,
        send_limit=platform.default_send_limit,
        withdraw_limit=platform.default_withdraw_limit,
    )
    db.add(user)
    await db.flush()

    db.add(NotificationPreference(user_id=user.id, **DEFAULT_PREFERENCES))
    log_activity(db, user.id, "account_created", description="Account created", client=client)
    admin_notice = notify_admins(
        db,
        "new_user",
        "New User Registration",
        f"{full_name} ({email}) signed up and awaits verification",
        {"user_id": str(user.id)},
    )
    await db.commit()

    log.info("signup", extra={"user_id": str(user.id)})
    return AuthResult(user=user, access_token=access_token_for(user), notifications=[admin_notice])


# ---------------------------------------------------------------------------
# Connexion
# ---------------------------------------------------------------------------

async def _check_lockout(db: AsyncSession, email: str) -> None:
    since = datetime.now(timezone.utc) - timedelta(minutes=settings.LOGIN_LOCKOUT_MINUTES)
    failures, oldest = (
        await db.execute(
            select(func.count(LoginAttempt.id), func.min(LoginAttempt.created_at)).where(
                LoginAttempt.email == email,
                LoginAttempt.success.is_(False),
                LoginAttempt.created_at >= since,
            )
        )
    ).one()

    if failures >= settings.LOGIN_MAX_ATTEMPTS:
        unlock_at = _as_utc(oldest) + timedelta(minutes=settings.LOGIN_LOCKOUT_MINUTES)
        remaining = (unlock_at - datetime.now(timezone.utc)).total_seconds() / 60
        wait_time = max(1, math.ceil(remaining))
        log.warning("login_locked", extra={"event": "login_locked"})
        raise AppHTTPException(
            429,
            "LOGIN_LOCKED",
            f"Too many login attempts. Please try again in {settings.LOGIN_LOCKOUT_MINUTES} minutes.",
            details={"wait_time": wait_time},
        )


def _record_attempt(
    db: AsyncSession,
    email: str,
    *,
    user_id: Optional[uuid.UUID],
    success: bool,
    client: ClientInfo,
    device: Optional[DeviceInfo] = None,
    location: Optional[LocationInfo] = None,
    reason: Optional[str] = None,
) -> LoginAttempt:
    attempt = LoginAttempt(
        email=email,
        user_id=user_id,
        success=success,
        failure_reason=reason,
        ip_address=client.ip_address,
        user_agent=(client.user_agent or "")[:500] or None,
        device=device.as_dict() if device else None,
        location=location.as_dict() if location else None,
    )
    db.add(attempt)
    return attempt


async def _fail(
    db: AsyncSession, email: str, user: Optional[Profile], reason: str, message: str, client: ClientInfo
) -> AppHTTPException:
    _record_attempt(db, email, user_id=user.id if user else None, success=False, client=client, reason=reason)
    if user is not None:
        log_security_event(db, user.id, "login_failed", data={"reason": reason}, client=client)
    await db.commit()
    return AppHTTPException(401, "INVALID_CREDENTIALS" if reason != "invalid_2fa" else "INVALID_2FA", message)


async def _previous_location(db: AsyncSession, user_id: uuid.UUID) -> LocationInfo:
    row = (
        await db.execute(
            select(LoginAttempt.location)
            .where(LoginAttempt.user_id == user_id, LoginAttempt.success.is_(True))
            .order_by(LoginAttempt.created_at.desc())
            .limit(1)
        )
    ).scalar_one_or_none()
    return LocationInfo.from_dict(row)


async def _touch_device(
    db: AsyncSession, user_id: uuid.UUID, device: DeviceInfo, location: LocationInfo, ip: Optional[str]
) -> bool:
    """Met à jour l’historique d’appareils. Retourne True si l’appareil est nouveau."""
    now = datetime.now(timezone.utc)
    known = (
        await db.execute(
            select(DeviceHistory).where(DeviceHistory.user_id == user_id, DeviceHistory.device_key == device.key)
        )
    ).scalars().first()

    if known is None:
        db.add(
            DeviceHistory(
                user_id=user_id,
                device_key=device.key,
                browser=device.browser[:100],
                os=device.os[:100],
                device_type=device.device_type,
                ip_address=ip,
                location=location.as_dict(),
                login_count=1,
                first_seen_at=now,
                last_seen_at=now,
            )
        )
        return True

    known.login_count += 1
    known.last_seen_at = now
    known.ip_address = ip
    known.location = location.as_dict()
    return False


async def login(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    totp_code: Optional[str] = None,
    client: ClientInfo = NO_CLIENT,
) -> AuthResult:
    email = (email or "").strip().lower()
    await _check_lockout(db, email)

    user = (await db.execute(select(Profile).where(Profile.email == email))).scalars().first()
    if user is None or not verify_password(password, user.password_hash):
        raise await _fail(db, email, user, "invalid_credentials", INVALID_CREDENTIALS, client)

    if user.status in BLOCKED_MESSAGES:
        _record_attempt(db, email, user_id=user.id, success=False, client=client, reason=f"account_{user.status}")
        await db.commit()
        raise AppHTTPException(403, "ACCOUNT_BLOCKED", BLOCKED_MESSAGES[user.status])

    if user.two_factor_enabled:
        if not totp_code:
            return AuthResult(user=None, requires_2fa=True)
        if not verify_token(user.two_factor_secret, totp_code):
            raise await _fail(db, email, user, "invalid_2fa", INVALID_2FA, client)

    device = parse_device(client.user_agent)
    location = lookup_location(client.ip_address)
    previous = await _previous_location(db, user.id)

    is_new_device = await _touch_device(db, user.id, device, location, client.ip_address)
    suspicious = is_suspicious_move(previous, location)

    _record_attempt(db, email, user_id=user.id, success=True, client=client, device=device, location=location)
    user.last_login_at = datetime.now(timezone.utc)
    user.last_login_ip = client.ip_address
    user.last_login_device = f"{device.browser} on {device.os}"[:255]
    log_security_event(
        db,
        user.id,
        "login_success",
        data={"device": device.as_dict(), "location": location.as_dict(), "new_device": is_new_device},
        client=client,
    )
    if suspicious:
        log_security_event(db, user.id, "suspicious_login", data={"location": location.as_dict()}, client=client)
    await db.commit()

    if is_new_device:
        await email_service.send_template(
            db, user, "NEW_LOGIN", {"browser": device.browser, "os": device.os, "ip": client.ip_address or "unknown"}
        )
    if suspicious:
        place = ", ".join(p for p in (location.city, location.country) if p) or "unknown location"
        await email_service.send_template(
            db, user, "SUSPICIOUS_LOGIN", {"location": place, "ip": client.ip_address or "unknown"}
        )

    log.info("login_success", extra={"user_id": str(user.id)})
    return AuthResult(user=user, access_token=access_token_for(user))


# ---------------------------------------------------------------------------
# 2FA
# ---------------------------------------------------------------------------

async def enable_2fa(
    db: AsyncSession, user: Profile, token: Optional[str] = None, *, client: ClientInfo = NO_CLIENT
) -> TotpSetup:
    # Un secret actif ne se remplace qu’avec un code valide
    if user.two_factor_enabled and not (token and verify_token(user.two_factor_secret, token)):
        raise bad_request(INVALID_2FA, code="INVALID_2FA")
    setup = new_setup(user.email)
    user.two_factor_secret = setup.secret
    user.two_factor_enabled = False
    log_security_event(db, user.id, "2fa_setup_initiated", client=client)
    await db.commit()
    return setup


async def verify_2fa(db: AsyncSession, user: Profile, token: str, *, client: ClientInfo = NO_CLIENT) -> None:
    if not user.two_factor_secret:
        raise bad_request("2FA not set up", code="2FA_NOT_SETUP")

    if not verify_token(user.two_factor_secret, token):
        log_security_event(db, user.id, "2fa_verification_failed", client=client)
        await db.commit()
        raise bad_request(INVALID_2FA, code="INVALID_2FA")

    user.two_factor_enabled = True
    log_security_event(db, user.id, "2fa_enabled", client=client)
    await db.commit()


async def disable_2fa(db: AsyncSession, user: Profile, token: str, *, client: ClientInfo = NO_CLIENT) -> None:
    if not user.two_factor_enabled:
        raise bad_request("2FA is not enabled", code="2FA_NOT_ENABLED")
    if not verify_token(user.two_factor_secret, token):
        raise bad_request(INVALID_2FA, code="INVALID_2FA")

    user.two_factor_enabled = False
    user.two_factor_secret = None
    log_security_event(db, user.id, "2fa_disabled", client=client)
    await db.commit()


# ---------------------------------------------------------------------------
# Questions de sécurité
# ---------------------------------------------------------------------------

MIN_SECURITY_QUESTIONS = 3


def _normalize_answer(answer: str) -> str:
    return (answer or "").strip().lower()


async def set_security_questions(
    db: AsyncSession, user: Profile, questions: List[tuple[str, str]], *, client: ClientInfo = NO_CLIENT
) -> List[SecurityQuestion]:
    """Remplace le jeu de questions de l’utilisateur."""
    cleaned = [(q.strip(), _normalize_answer(a)) for q, a in questions]
    if len(cleaned) < MIN_SECURITY_QUESTIONS:
        raise bad_request("At least 3 security questions are required", code="SECURITY_QUESTIONS_REQUIRED")
    if any(not q or not a for q, a in cleaned):
        raise bad_request("Questions and answers cannot be empty", code="INVALID_SECURITY_QUESTION")
    if len({q.lower() for q, _ in cleaned}) != len(cleaned):
        raise bad_request("Security questions must be different", code="DUPLICATE_SECURITY_QUESTION")

    existing = (await db.execute(select(SecurityQuestion).where(SecurityQuestion.user_id == user.id))).scalars().all()
    for row in existing:
        await db.delete(row)

    rows = [SecurityQuestion(user_id=user.id, question=q, answer_hash=hash_password(a)) for q, a in cleaned]
    db.add_all(rows)
    log_security_event(db, user.id, "security_questions_updated", data={"count": len(rows)}, client=client)
    await db.commit()
    return rows


async def list_security_questions(db: AsyncSession, user_id: uuid.UUID) -> List[SecurityQuestion]:
    rows = (
        await db.execute(
            select(SecurityQuestion).where(SecurityQuestion.user_id == user_id).order_by(SecurityQuestion.created_at)
        )
    ).scalars().all()
    return list(rows)


async def verify_security_question(
    db: AsyncSession, user: Profile, question_id: uuid.UUID, answer: str, *, client: ClientInfo = NO_CLIENT
) -> None:
    row = await db.get(SecurityQuestion, question_id)
    if row is None or row.user_id != user.id:
        raise not_found("Question not found")

    if not verify_password(_normalize_answer(answer), row.answer_hash):
        log_security_event(db, user.id, "security_question_verification_failed", client=client)
        await db.commit()
        raise bad_request("Incorrect answer", code="INCORRECT_ANSWER")

    log_security_event(db, user.id, "security_question_verified", client=client)
    await db.commit()


async def get_profile_or_404(db: AsyncSession, user_id: uuid.UUID) -> Profile:
    user = await db.get(Profile, user_id)
    if user is None:
        raise not_found("User not found")
    return user


async def list_devices(db: AsyncSession, user_id: uuid.UUID) -> List[DeviceHistory]:
    rows = (
        await db.execute(
            select(DeviceHistory).where(DeviceHistory.user_id == user_id).order_by(DeviceHistory.last_seen_at.desc())
        )
    ).scalars().all()
    return list(rows)


# ---------------------------------------------------------------------------
# Mot de passe
# ---------------------------------------------------------------------------

async def recover(db: AsyncSession, email: str, *, client: ClientInfo = NO_CLIENT) -> None:
    """Envoie un jeton de réinitialisation si l’email est connu (réponse identique sinon)."""
    normalized = (email or "").strip().lower()
    user = (await db.execute(select(Profile).where(Profile.email == normalized))).scalars().first()
    if user is None:
        log.info("password_recover_unknown_email")
        return

    log_security_event(db, user.id, "password_reset_requested", client=client)
    await db.commit()
    token = create_reset_token(user.id, user.password_hash)
    await email_service.send_template(db, user, "PASSWORD_RESET", {"token": token})


async def reset_password(db: AsyncSession, token: str, password: str, *, client: ClientInfo = NO_CLIENT) -> None:
    claims = decode_token(token, expected_type=PASSWORD_RESET)
    if claims is None:
        raise bad_request(INVALID_RESET, code="INVALID_RESET_TOKEN")

    try:
        user_id = uuid.UUID(claims["sub"])
    except ValueError:
        raise bad_request(INVALID_RESET, code="INVALID_RESET_TOKEN")

    user = await db.get(Profile, user_id)
    if user is None or claims.get("pwd") != password_fingerprint(user.password_hash):
        raise bad_request(INVALID_RESET, code="INVALID_RESET_TOKEN")

    user.password_hash = hash_password(validate_password(password))
    log_security_event(db, user.id, "password_reset", client=client)
    await db.commit()


async def change_password(
    db: AsyncSession, user: Profile, current_password: str, new_password: str, *, client: ClientInfo = NO_CLIENT
) -> None:
    if not verify_password(current_password, user.password_hash):
        raise bad_request("Current password is incorrect", code="INVALID_PASSWORD")

    user.password_hash = hash_password(validate_password(new_password))
    log_security_event(db, user.id, "password_changed", client=client)
    await db.commit()


async def count_pending_requests(db: AsyncSession, user_id: uuid.UUID) -> int:
    total = 0
    for model, owner in (
        (DepositRequest, DepositRequest.user_id),
        (WithdrawalRequest, WithdrawalRequest.user_id),
        (SendRequest, SendRequest.sender_id),
    ):
        total += (
            await db.execute(select(func.count()).select_from(model).where(owner == user_id, model.status == "pending"))
        ).scalar_one()
    return total


async def close_account(db: AsyncSession, user: Profile, password: str, *, client: ClientInfo = NO_CLIENT) -> None:
    if not verify_password(password, user.password_hash):
        raise bad_request("Current password is incorrect", code="INVALID_PASSWORD")
    if user.balance != 0:
        raise bad_request("Account balance must be zero before closing", code="BALANCE_NOT_ZERO")
    if await count_pending_requests(db, user.id):
        raise bad_request("Pending requests must be resolved before closing", code="PENDING_REQUESTS")

    user.status = "closed"
    log_security_event(db, user.id, "account_closed", client=client)
    log_activity(db, user.id, "account_closed", description="Account closed by owner", client=client)
    await db.commit()
    log.info("account_closed", extra={"user_id": str(user.id)})
