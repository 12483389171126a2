from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from cashora.schemas.profile import ProfileOut

"""
Schemas Auth.

Contrat HTTP de /api/auth : inscription, connexion (avec 2FA éventuelle),
activation/vérification/désactivation TOTP, récupération de mot de passe, appareils.
"""


class SignupIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=128)
    full_name: str = Field(..., max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)


class LoginIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=128)
    totp_code: Optional[str] = Field(default=None, max_length=10)


class AuthOut(BaseModel):
    access_token: Optional[str] = None
    token_type: str = "bearer"
    requires_2fa: bool = False
    user: Optional[ProfileOut] = None


class TotpTokenIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    token: str = Field(..., min_length=6, max_length=10)


class TwoFactorEnableIn(BaseModel):
    """Code courant, exigé seulement pour régénérer un secret déjà actif."""
    model_config = ConfigDict(extra="forbid")

    token: Optional[str] = Field(default=None, min_length=6, max_length=10)


class TwoFactorSetupOut(BaseModel):
    secret: str
    otpauth_url: str
    qr_code: str


class TwoFactorStatusOut(BaseModel):
    two_factor_enabled: bool


class SecurityQuestionIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    question: str = Field(..., max_length=200)
    answer: str = Field(..., max_length=200)


class SecurityQuestionsIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    questions: list[SecurityQuestionIn] = Field(default_factory=list, max_length=10)


class SecurityAnswerIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    question_id: UUID
    answer: str = Field(..., max_length=200)


class SecurityQuestionOut(BaseModel):
    """Question seule : la réponse hachée ne sort jamais."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    question: str
    created_at: datetime


class SecurityQuestionsOut(BaseModel):
    questions: list[SecurityQuestionOut]


class BlockStatusOut(BaseModel):
    blocked: bool


class RecoverIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str = Field(..., max_length=255)


class ResetPasswordIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    token: str
    password: str = Field(..., max_length=128)


class DeviceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    browser: str
    os: str
    device_type: str
    ip_address: Optional[str] = None
    location: Optional[dict[str, Any]] = None
    login_count: int
    first_seen_at: datetime
    last_seen_at: datetime
