from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cashora.db.base import Base, CreatedAt, UUIDPrimaryKey, utcnow

"""
Model Profile.

Rôle (fonctionnel) :
- Représente un compte Cashora (utilisateur ou administrateur).
- Porte le solde (balance) et les plafonds individuels :
  - daily_limit / monthly_limit : dépôts
  - send_limit : transferts par jour
  - withdraw_limit : retraits par jour
- Porte l’état de sécurité : hash du mot de passe, secret TOTP, dernière connexion.

Cycle de vie (status) :
- pending   : inscrit, en attente de validation admin
- active    : validé (peut déplacer de l’argent)
- rejected  : validation refusée
- suspended : bloqué par un admin
- closed    : fermé à la demande de l’utilisateur

Invariant :
- balance >= 0 (contrainte CHECK, en plus des contrôles du ledger).
"""

ROLES = ("user", "admin")
STATUSES = ("pending", "active", "rejected", "suspended", "closed")


class Profile(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "profiles"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user", index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)

    # Solde et plafonds
    balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    daily_limit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("50000.00"))
    monthly_limit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("500000.00"))
    send_limit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("25000.00"))
    withdraw_limit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("25000.00"))

    # Vérification (KYC simplifiée)
    verification_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    verified_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # 2FA
    two_factor_secret: Mapped[str | None] = mapped_column(String(64), nullable=True)
    two_factor_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Dernière connexion
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_login_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_login_device: Mapped[str | None] = mapped_column(String(255), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_profiles_balance_non_negative"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
