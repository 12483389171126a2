from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cashora.db.base import Base, CreatedAt, UUIDPrimaryKey, utcnow

"""
Model EmailTemplate.

Modèle d’email réutilisable par l’admin (sujet + contenu) pour les envois groupés.
"""


class EmailTemplate(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "email_templates"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
