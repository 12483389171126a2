from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cashora.db.base import Base, CreatedAt, UUIDPrimaryKey

"""
Model SupportMessage.

Message d’un fil de ticket (sender_type = user | admin).
"""


class SupportMessage(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "support_messages"

    ticket_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("support_tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    sender_type: Mapped[str] = mapped_column(String(10), nullable=False, default="user")
    message: Mapped[str] = mapped_column(Text, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    ticket = relationship("SupportTicket", back_populates="messages")
