# backend/scripts/seed_demo.py
from __future__ import annotations

import argparse
import sys
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import Session, sessionmaker

# Permet de lancer le script depuis backend/ sans souci d'import
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

from cashora.core.security import hash_password
from cashora.core.settings import settings
from cashora.models import (
    ActivityLog,
    AdminAuditLog,
    Bank,
    BankAccount,
    DepositRequest,
    DeviceHistory,
    LoginAttempt,
    Notification,
    NotificationPreference,
    PlatformSettings,
    Profile,
    SecurityLog,
    SendRequest,
    SupportMessage,
    SupportTicket,
    Transaction,
    WithdrawalRequest,
)
from cashora.models.platform_settings import SINGLETON_ID
from cashora.services.notification_service import DEFAULT_PREFERENCES

"""
Seed de démonstration.

Crée (de façon idempotente) :
- les paramètres plateforme (valeurs par défaut),
- trois banques,
- un administrateur,
- deux utilisateurs actifs, chacun avec un compte bancaire par défaut et un dépôt initial approuvé.

Usage :
    python scripts/seed_demo.py [--reset] [--password Demo1234] [--deposit 5000]
"""

BANKS = [
    ("Commercial Bank of Ethiopia", "CBE"),
    ("Awash Bank", "AWASH"),
    ("Dashen Bank", "DASHEN"),
]

ADMIN = ("admin@cashora.app", "Cashora Admin")

DEMO_USERS = [
    ("abebe@example.com", "Abebe Kebede", "CBE", "1000123456789"),
    ("sara@example.com", "Sara Tesfaye", "AWASH", "0134567890123"),
]


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def reference(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10].upper()}"


def reset_all(db: Session) -> None:
    # ordre inverse des FK
    for model in (
        SupportMessage,
        SupportTicket,
        Notification,
        NotificationPreference,
        ActivityLog,
        SecurityLog,
        AdminAuditLog,
        LoginAttempt,
        DeviceHistory,
        SendRequest,
        WithdrawalRequest,
        DepositRequest,
        Transaction,
        BankAccount,
        Bank,
        PlatformSettings,
        Profile,
    ):
        db.execute(delete(model))
    db.commit()
    print("✅ Reset done (all demo data deleted).")


def get_or_create_profile(db: Session, email: str, full_name: str, password: str, role: str) -> tuple[Profile, bool]:
    profile = db.execute(select(Profile).where(Profile.email == email)).scalars().first()
    if profile is not None:
        return profile, False

    profile = Profile(
        email=email,
        full_name=full_name,
        password_hash=hash_password(password),
        role=role,
        status="active",
        verification_level=1,
        verified_at=now_utc(),
    )
    db.add(profile)
    db.flush()
    db.add(NotificationPreference(user_id=profile.id, **DEFAULT_PREFERENCES))
    return profile, True


def seed(reset: bool, password: str, deposit: Decimal) -> None:
    engine = create_engine(settings.DATABASE_URL_SYNC, future=True)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    with SessionLocal() as db:
        if reset:
            reset_all(db)

        if db.get(PlatformSettings, SINGLETON_ID) is None:
            db.add(PlatformSettings(id=SINGLETON_ID))

        banks = {}
        for name, code in BANKS:
            bank = db.execute(select(Bank).where(Bank.code == code)).scalars().first()
            if bank is None:
                bank = Bank(name=name, code=code, status="active")
                db.add(bank)
                db.flush()
            banks[code] = bank

        admin, _ = get_or_create_profile(db, ADMIN[0], ADMIN[1], password, "admin")

        created_users = 0
        for email, full_name, bank_code, account_number in DEMO_USERS:
            user, created = get_or_create_profile(db, email, full_name, password, "user")
            if not created:
                continue
            created_users += 1

            db.add(
                BankAccount(
                    user_id=user.id,
                    bank_id=banks[bank_code].id,
                    account_number=account_number,
                    account_name=full_name,
                    is_default=True,
                )
            )

            # Dépôt initial : demande approuvée + transaction + solde
            ref = reference("DEP")
            tx = Transaction(
                type="deposit",
                status="completed",
                amount=deposit,
                recipient_id=user.id,
                reference=ref,
                description=f"Deposit by {full_name}",
                processed_by=admin.id,
                processed_at=now_utc(),
            )
            db.add(tx)
            db.flush()
            db.add(
                DepositRequest(
                    user_id=user.id,
                    amount=deposit,
                    depositor_name=full_name,
                    reference=ref,
                    status="approved",
                    transaction_id=tx.id,
                    processed_by=admin.id,
                    processed_at=now_utc(),
                )
            )
            user.balance = user.balance + deposit

        db.commit()

        print("✅ Seed terminé.")
        print(f"   - Banques: {len(banks)}")
        print(f"   - Admin: {admin.email}")
        print(f"   - Utilisateurs démo créés: {created_users} (dépôt initial {deposit} {settings.CURRENCY})")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--reset", action="store_true", help="Supprime toutes les données avant de reseed")
    parser.add_argument("--password", default="Demo1234", help="Mot de passe des comptes démo")
    parser.add_argument("--deposit", type=Decimal, default=Decimal("5000.00"), help="Dépôt initial par utilisateur")
    args = parser.parse_args()

    seed(reset=args.reset, password=args.password, deposit=args.deposit)


if __name__ == "__main__":
    main()
