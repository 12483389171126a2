from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cashora.db.base import Base, CreatedAt, UUIDPrimaryKey

"""
Model AdminAuditLog.

Rôle (fonctionnel) :
- Trace de conformité de chaque action administrative (approbation, ajustement de solde, plafonds…).
- Écrite dans la MÊME transaction que l’action auditée (pas d’action sans trace, pas de trace sans action).

Champs :
- admin_id : auteur ; user_id : profil ciblé (optionnel) ; target_id : entité ciblée (demande, banque…)
- action   : code stable (APPROVE_DEPOSIT, UPDATE_USER_LIMITS, ...)
- details  : JSON libre (ancien/nouvel état, montant, note)
- ip_address / user_agent / request_id : contexte de la requête
"""


class AdminAuditLog(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "admin_audit_logs"

    admin_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    target_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        Index("ix_admin_audit_logs_action_date", "action", "created_at"),
    )
