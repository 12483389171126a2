from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from cashora.db.base import Base, CreatedAt, UUIDPrimaryKey, utcnow

"""
Model Bank.

Catalogue des banques partenaires (géré par les admins).
Seules les banques `active` sont proposées lors de l’ajout d’un compte.
"""


class Bank(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "banks"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)
    logo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
