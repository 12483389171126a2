from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cashora.db.base import Base, utcnow

"""
Model PlatformSettings.

Rôle (fonctionnel) :
- Paramètres globaux de la plateforme (ligne unique, id = 1).
- Bornes min/max par opération (envoi, retrait, dépôt) appliquées par le ledger.
- Plafonds par défaut des nouveaux comptes.
- maintenance_mode : bloque les opérations d’argent côté utilisateur.
"""

SINGLETON_ID = 1


class PlatformSettings(Base):
    __tablename__ = "platform_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SINGLETON_ID)

    sending_min: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("1.00"))
    sending_max: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("100000.00"))
    withdrawal_min: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("10.00"))
    withdrawal_max: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("100000.00"))
    deposit_min: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("10.00"))
    deposit_max: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("500000.00"))

    default_daily_limit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("50000.00"))
    default_monthly_limit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("500000.00"))
    default_send_limit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("25000.00"))
    default_withdraw_limit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("25000.00"))

    maintenance_mode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    updated_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
