from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cashora.db.base import Base, CreatedAt, UUIDPrimaryKey, utcnow

"""
Model SupportTicket.

Rôle (fonctionnel) :
- Ticket de support ouvert par un utilisateur.
- Workflow : open -> in_progress (réponse admin) -> resolved -> closed.
  Un message utilisateur sur un ticket `resolved` le rouvre (open).
"""

PRIORITIES = ("low", "medium", "high", "urgent")
STATUSES = ("open", "in_progress", "resolved", "closed")


class SupportTicket(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "support_tickets"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open", index=True)
    assigned_to: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    messages = relationship(
        "SupportMessage",
        back_populates="ticket",
        order_by="SupportMessage.created_at",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_support_tickets_status_priority", "status", "priority"),
    )
