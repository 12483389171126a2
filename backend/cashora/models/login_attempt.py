from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cashora.db.base import Base, CreatedAt, UUIDPrimaryKey

"""
Model LoginAttempt.

Rôle (fonctionnel) :
- Historise chaque tentative de connexion (réussie ou non), indexée par email.
- Sert au verrouillage : N échecs sur la fenêtre LOGIN_LOCKOUT_MINUTES => 429.
- Conserve l’appareil et la localisation (détection de connexion suspecte).
"""


class LoginAttempt(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "login_attempts"

    email: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    failure_reason: Mapped[str | None] = mapped_column(String(50), nullable=True)

    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    device: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    location: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_login_attempts_email_date", "email", "created_at"),
    )
