from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cashora.db.base import Base, CreatedAt, UUIDPrimaryKey

"""
Model DepositRequest.

Rôle (fonctionnel) :
- Déclaration de dépôt faite par un utilisateur (virement effectué hors plateforme).
- Reste `pending` jusqu’à décision admin (approved / rejected), une seule fois.
- Une approbation crée la Transaction `deposit` (transaction_id) et crédite le solde.
"""


class DepositRequest(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "deposit_requests"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    depositor_name: Mapped[str] = mapped_column(String(100), nullable=False)
    reference: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    transaction_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True)
    processed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_deposit_requests_status_date", "status", "created_at"),
    )
