from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cashora.db.base import Base, CreatedAt, UUIDPrimaryKey

"""
Model Notification.

Rôle (fonctionnel) :
- Notification in-app, persistée puis poussée en temps réel (WebSocket).
- audience :
  - "user"  : destinée à user_id
  - "admin" : boîte partagée des administrateurs (user_id NULL)
- type : clé fonctionnelle (money_sent, deposit_approved, limits_update, ...).
"""


class Notification(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "notifications"

    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=True, index=True)
    audience: Mapped[str] = mapped_column(String(10), nullable=False, default="user")
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "read"),
    )
