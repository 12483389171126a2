from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Request
from jose import JWTError, jwt
from passlib.context import CryptContext

from cashora.core.settings import settings

"""
Core Security (mots de passe + JWT).

Rôle (fonctionnel) :
- Hash / vérification des mots de passe (passlib, schéma pbkdf2_sha256).
- Émission / décodage des jetons JWT (python-jose) :
  - type "access"         : session API (Authorization: Bearer <token>)
  - type "password_reset" : lien de réinitialisation (courte durée, usage unique :
    le claim "pwd" porte une empreinte du hash courant, invalidée par tout changement)

Notes :
- decode_token() ne lève jamais : None si signature invalide, expiré ou type inattendu.
- Le rôle est embarqué dans le jeton (utile au WebSocket, qui n’ouvre pas de session DB),
  mais les dépendances HTTP relisent toujours le profil en base.
"""

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

ACCESS = "access"
PASSWORD_RESET = "password_reset"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def create_token(
    user_id: uuid.UUID,
    *,
    role: str = "user",
    token_type: str = ACCESS,
    expires_minutes: Optional[int] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> str:
    """Construit un JWT signé (sub = id du profil)."""
    if expires_minutes is None:
        expires_minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES

    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
    }
    if extra:
        payload.update(extra)
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def password_fingerprint(password_hash: str | None) -> str:
    return hashlib.sha256((password_hash or "").encode("utf-8")).hexdigest()[:16]


def create_reset_token(user_id: uuid.UUID, password_hash: str | None) -> str:
    return create_token(
        user_id,
        token_type=PASSWORD_RESET,
        expires_minutes=settings.RESET_TOKEN_EXPIRE_MINUTES,
        extra={"pwd": password_fingerprint(password_hash)},
    )


def decode_token(token: str, *, expected_type: str = ACCESS) -> Optional[Dict[str, Any]]:
    """Décode et valide un JWT. Retourne les claims, ou None si invalide."""
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None

    if claims.get("type") != expected_type or not claims.get("sub"):
        return None
    return claims


def extract_bearer(request: Request) -> Optional[str]:
    """Extrait le token depuis Authorization: Bearer <token>."""
    auth = request.headers.get("authorization")
    if auth:
        parts = auth.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1].strip()
    return None
