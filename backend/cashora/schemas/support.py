from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from cashora.schemas.common import Pagination

"""
Schemas Support (tickets + messages).
"""


class TicketCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    subject: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
    priority: str = Field(default="medium", pattern=r"^(low|medium|high|urgent)$")


class MessageCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    message: str = Field(..., min_length=1, max_length=5000)


class TicketStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: str = Field(..., pattern=r"^(open|in_progress|resolved|closed)$")


class SupportMessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    ticket_id: UUID
    sender_id: Optional[UUID] = None
    sender_type: str
    message: str
    read: bool
    created_at: datetime


class TicketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    subject: str
    description: str
    priority: str
    status: str
    assigned_to: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class TicketDetailOut(TicketOut):
    messages: list[SupportMessageOut] = []


class TicketListOut(BaseModel):
    data: list[TicketOut]
    pagination: Pagination
