from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from cashora.schemas.common import Pagination

"""
Schemas Profil.

- ProfileOut : vue publique d’un compte (jamais le hash ni le secret TOTP).
- ProfileUpdate : champs modifiables par l’utilisateur lui-même.
- ActivityOut : entrée du journal d’activité.
"""


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str
    status: str
    balance: Decimal
    daily_limit: Decimal
    monthly_limit: Decimal
    send_limit: Decimal
    withdraw_limit: Decimal
    verification_level: int
    verified_at: Optional[datetime] = None
    two_factor_enabled: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime


class ProfileBrief(BaseModel):
    """Vue réduite (destinataires, listes admin)."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: str


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    full_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)


class ActivityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: Optional[UUID] = None
    actor_type: str
    type: str
    description: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    created_at: datetime


class ActivityListOut(BaseModel):
    data: list[ActivityOut]
    pagination: Pagination


class PasswordChangeIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    current_password: str = Field(..., max_length=128)
    new_password: str = Field(..., max_length=128)


class CloseAccountIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    password: str = Field(..., max_length=128)


class VerificationOut(BaseModel):
    """Dossier de vérification vu par son propriétaire (sans les clés de fichiers)."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    id_type: str
    status: str
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime


class VerificationStatusOut(BaseModel):
    verification_level: int
    verification: Optional[VerificationOut] = None
