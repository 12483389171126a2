from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cashora.db.base import Base, CreatedAt, UUIDPrimaryKey

"""
Model Transaction.

Rôle (fonctionnel) :
- Écriture du grand livre : chaque mouvement de solde produit exactement une ligne.
- Les parties sont exprimées par sender_id (débité) et recipient_id (crédité) :
  - deposit          : recipient = utilisateur
  - withdrawal       : sender = utilisateur
  - transfer         : sender + recipient
  - admin_adjustment : recipient (crédit) ou sender (débit)
  - admin_transfer   : recipient (envoi groupé admin)
- reference : identifiant lisible unique (ex: TRF-4F2A9C01D3).

Index :
- (sender_id, created_at) et (recipient_id, created_at) : historiques utilisateur et plafonds journaliers.
"""

TYPES = ("deposit", "withdrawal", "transfer", "admin_adjustment", "admin_transfer")


class Transaction(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "transactions"

    type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="completed", index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    sender_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    recipient_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)

    reference: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)

    processed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    sender = relationship("Profile", foreign_keys=[sender_id], lazy="joined")
    recipient = relationship("Profile", foreign_keys=[recipient_id], lazy="joined")

    __table_args__ = (
        Index("ix_transactions_sender_date", "sender_id", "created_at"),
        Index("ix_transactions_recipient_date", "recipient_id", "created_at"),
    )
