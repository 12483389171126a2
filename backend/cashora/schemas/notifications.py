from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from cashora.schemas.common import Pagination

"""
Schemas Notifications (liste, préférences).
"""


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: Optional[UUID] = None
    audience: str
    type: str
    title: str
    content: str
    data: Optional[dict[str, Any]] = None
    read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListOut(BaseModel):
    data: list[NotificationOut]
    unread_count: int
    pagination: Pagination


class PreferencesOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    email_notifications: bool
    push_notifications: bool
    transaction_alerts: bool
    security_alerts: bool
    marketing_emails: bool


class PreferencesUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email_notifications: Optional[bool] = None
    push_notifications: Optional[bool] = None
    transaction_alerts: Optional[bool] = None
    security_alerts: Optional[bool] = None
    marketing_emails: Optional[bool] = None
