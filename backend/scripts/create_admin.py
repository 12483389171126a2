# backend/scripts/create_admin.py
from __future__ import annotations

import argparse
import getpass
import sys
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

# Permet de lancer le script depuis backend/ sans souci d'import
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

from cashora.core.errors import AppHTTPException
from cashora.core.security import hash_password
from cashora.core.settings import settings
from cashora.core.validation import validate_email, validate_name, validate_password
from cashora.models import NotificationPreference, Profile
from cashora.services.notification_service import DEFAULT_PREFERENCES

"""
Création / promotion d’un administrateur.

- Email inconnu : crée un profil admin actif (mot de passe demandé si absent).
- Email existant : promeut le profil en admin et l’active (mot de passe inchangé sauf --password).

Usage :
    python scripts/create_admin.py admin@cashora.app --name "Cashora Admin"
"""


def run(email: str, name: str | None, password: str | None) -> int:
    engine = create_engine(settings.DATABASE_URL_SYNC, future=True)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    with SessionLocal() as db:
        profile = db.execute(select(Profile).where(Profile.email == email)).scalars().first()

        if profile is None:
            if not name:
                print("❌ --name est requis pour créer un nouveau compte.")
                return 1
            if password is None:
                password = getpass.getpass("Mot de passe : ")
            profile = Profile(
                email=email,
                full_name=validate_name(name),
                password_hash=hash_password(validate_password(password)),
                role="admin",
                status="active",
                verification_level=1,
                verified_at=datetime.now(timezone.utc),
            )
            db.add(profile)
            db.flush()
            db.add(NotificationPreference(user_id=profile.id, **DEFAULT_PREFERENCES))
            action = "créé"
        else:
            profile.role = "admin"
            profile.status = "active"
            if password:
                profile.password_hash = hash_password(validate_password(password))
            action = "promu"

        db.commit()
        print(f"✅ Administrateur {action} : {profile.email} ({profile.id})")
        return 0


def main():
    parser = argparse.ArgumentParser(description="Crée ou promeut un administrateur Cashora.")
    parser.add_argument("email", help="Email du compte")
    parser.add_argument("--name", help="Nom complet (obligatoire pour un nouveau compte)")
    parser.add_argument("--password", help="Mot de passe (sinon demandé en interactif)")
    args = parser.parse_args()

    try:
        code = run(validate_email(args.email), args.name, args.password)
    except AppHTTPException as exc:
        print(f"❌ {exc.message}")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
