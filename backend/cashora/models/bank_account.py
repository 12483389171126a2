from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cashora.db.base import Base, CreatedAt, UUIDPrimaryKey

"""
Model BankAccount.

Rôle (fonctionnel) :
- Compte bancaire d’un utilisateur (destination des retraits).
- Un seul compte par défaut par utilisateur (géré par l’API : bascule atomique).
- Unicité (user, banque, numéro) : un même compte ne peut pas être ajouté deux fois.
"""


class BankAccount(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "bank_accounts"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    bank_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("banks.id", ondelete="RESTRICT"), nullable=False, index=True)
    account_number: Mapped[str] = mapped_column(String(16), nullable=False)
    account_name: Mapped[str] = mapped_column(String(100), nullable=False)

    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    bank = relationship("Bank", lazy="joined")

    __table_args__ = (
        UniqueConstraint("user_id", "bank_id", "account_number", name="uq_bank_accounts_user_bank_number"),
    )
