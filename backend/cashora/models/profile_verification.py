from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cashora.db.base import Base, CreatedAt, UUIDPrimaryKey

"""
Model ProfileVerification.

Rôle (fonctionnel) :
- Dossier de vérification d’identité soumis par un utilisateur : type et numéro de pièce,
  recto / verso de la pièce et selfie (URLs du bucket "verifications").
- Workflow : pending -> approved | rejected (traité par un admin).
- Une approbation porte le profil au niveau de vérification 2 (documents contrôlés).
"""

ID_TYPES = ("national_id", "passport", "driving_license")
STATUSES = ("pending", "approved", "rejected")


class ProfileVerification(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "profile_verifications"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    id_type: Mapped[str] = mapped_column(String(30), nullable=False)
    id_number: Mapped[str] = mapped_column(String(50), nullable=False)
    id_front_url: Mapped[str] = mapped_column(String(500), nullable=False)
    id_back_url: Mapped[str] = mapped_column(String(500), nullable=False)
    selfie_url: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)

    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    user = relationship("Profile", foreign_keys=[user_id], lazy="joined")

    __table_args__ = (
        Index("ix_profile_verifications_user_status", "user_id", "status"),
    )
