from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import JSON, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cashora.db.base import Base, CreatedAt, UUIDPrimaryKey

"""
Model ActivityLog.

Journal d’activité fonctionnel (fil “activités” du profil, activités admin) :
actor_type = user | admin ; type = deposit_requested, deposit_approved, settings_update, ...
"""


class ActivityLog(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "activity_logs"

    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=True, index=True)
    actor_type: Mapped[str] = mapped_column(String(10), nullable=False, default="user")
    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
