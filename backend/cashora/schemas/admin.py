from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cashora.schemas.common import Pagination, coerce_decimal
from cashora.schemas.banks import BankAccountOut
from cashora.schemas.ledger import (
    DepositRequestOut,
    SendRequestOut,
    TransactionOut,
    WithdrawalRequestOut,
)
from cashora.schemas.profile import ActivityOut, ProfileBrief, ProfileOut

"""
Schemas Admin.

Rôle (fonctionnel) :
- Payloads des actions administratives (décisions, ajustements, plafonds, paramètres).
- Vues de lecture des journaux (audit, activité, sécurité) et des paramètres plateforme.
"""


class RejectIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reason: Optional[str] = Field(default=None, max_length=500)


class ApproveIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    note: Optional[str] = Field(default=None, max_length=500)


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Optional[str] = Field(default=None, pattern=r"^(pending|active|rejected|suspended|closed)$")
    role: Optional[str] = Field(default=None, pattern=r"^(user|admin)$")


class BalanceUpdate(BaseModel):
    """amount = NOUVEAU solde (et non un delta)."""
    model_config = ConfigDict(extra="forbid")

    amount: Decimal
    note: Optional[str] = Field(default=None, max_length=500)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_to_decimal(cls, v: Any) -> Any:
        return coerce_decimal(v)


class LimitsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    daily_limit: Decimal = Field(..., ge=0)
    monthly_limit: Decimal = Field(..., ge=0)
    send_limit: Decimal = Field(..., ge=0)
    withdraw_limit: Decimal = Field(..., ge=0)

    @field_validator("daily_limit", "monthly_limit", "send_limit", "withdraw_limit", mode="before")
    @classmethod
    def _limits_to_decimal(cls, v: Any) -> Any:
        return coerce_decimal(v)


class UserDetailOut(BaseModel):
    profile: ProfileOut
    totals: dict[str, Decimal]
    bank_accounts: int
    pending_requests: int


class UserListOut(BaseModel):
    data: list[ProfileOut]
    pagination: Pagination


class SendingActionIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: UUID
    action: str = Field(..., pattern=r"^(approve|reject)$")
    reason: Optional[str] = Field(default=None, max_length=500)


class RecipientIn(BaseModel):
    email: str = Field(..., max_length=255)


class ValidateRecipientsIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    recipients: list[RecipientIn] = Field(..., min_length=1, max_length=500)


class BulkSendIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    recipients: list[RecipientIn] = Field(..., min_length=1, max_length=500)
    amount: Decimal
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_to_decimal(cls, v: Any) -> Any:
        return coerce_decimal(v)


class EmailSendIn(BaseModel):
    """Sujet + corps libres, ou un modèle enregistré (template_id)."""
    model_config = ConfigDict(extra="forbid")

    user_ids: list[UUID] = Field(default_factory=list)
    all_users: bool = False
    template_id: Optional[UUID] = None
    subject: Optional[str] = Field(default=None, min_length=1, max_length=200)
    body: Optional[str] = Field(default=None, min_length=1, max_length=10000)


class EmailTemplateIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    subject: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=10000)


class EmailTemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    subject: str
    content: str
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class VerificationReviewIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    action: str = Field(..., pattern=r"^(approve|reject)$")
    reason: Optional[str] = Field(default=None, max_length=500)


class AdminVerificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    user: Optional[ProfileBrief] = None
    id_type: str
    id_number: str
    status: str
    rejection_reason: Optional[str] = None
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime


class VerificationListOut(BaseModel):
    data: list[AdminVerificationOut]
    pagination: Pagination


class AuditLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    admin_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    target_id: Optional[str] = None
    action: str
    details: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None
    created_at: datetime


class SecurityLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: Optional[UUID] = None
    event: str
    data: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class PlatformSettingsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sending_min: Decimal
    sending_max: Decimal
    withdrawal_min: Decimal
    withdrawal_max: Decimal
    deposit_min: Decimal
    deposit_max: Decimal
    default_daily_limit: Decimal
    default_monthly_limit: Decimal
    default_send_limit: Decimal
    default_withdraw_limit: Decimal
    maintenance_mode: bool
    updated_at: datetime
    updated_by: Optional[UUID] = None


class PlatformSettingsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sending_min: Optional[Decimal] = Field(default=None, ge=0)
    sending_max: Optional[Decimal] = Field(default=None, ge=0)
    withdrawal_min: Optional[Decimal] = Field(default=None, ge=0)
    withdrawal_max: Optional[Decimal] = Field(default=None, ge=0)
    deposit_min: Optional[Decimal] = Field(default=None, ge=0)
    deposit_max: Optional[Decimal] = Field(default=None, ge=0)
    default_daily_limit: Optional[Decimal] = Field(default=None, ge=0)
    default_monthly_limit: Optional[Decimal] = Field(default=None, ge=0)
    default_send_limit: Optional[Decimal] = Field(default=None, ge=0)
    default_withdraw_limit: Optional[Decimal] = Field(default=None, ge=0)
    maintenance_mode: Optional[bool] = None

    @field_validator(
        "sending_min",
        "sending_max",
        "withdrawal_min",
        "withdrawal_max",
        "deposit_min",
        "deposit_max",
        "default_daily_limit",
        "default_monthly_limit",
        "default_send_limit",
        "default_withdraw_limit",
        mode="before",
    )
    @classmethod
    def _to_decimal(cls, v: Any) -> Any:
        return coerce_decimal(v)


class DepositDecisionOut(BaseModel):
    message: str
    deposit_request: DepositRequestOut
    transaction: Optional[TransactionOut] = None


class WithdrawalDecisionOut(BaseModel):
    message: str
    withdrawal_request: WithdrawalRequestOut
    transaction: Optional[TransactionOut] = None


class SendDecisionOut(BaseModel):
    message: str
    send_request: SendRequestOut
    transaction: Optional[TransactionOut] = None


class BalanceUpdateOut(BaseModel):
    message: str
    old_balance: Decimal
    new_balance: Decimal
    difference: Decimal


class LimitsUpdateOut(BaseModel):
    message: str
    profile: ProfileOut


class RecipientsValidationOut(BaseModel):
    valid: list[ProfileBrief]
    invalid: list[str]
    total_valid: int
    total_invalid: int


class BulkSendOut(BaseModel):
    message: str
    count: int


class EmailSentOut(BaseModel):
    sent: int


class UnifiedRequestOut(BaseModel):
    """Ligne de la vue unifiée /admin/requests (dépôt, retrait ou envoi)."""
    id: UUID
    type: str
    user_id: UUID
    user: Optional[ProfileBrief] = None
    amount: Decimal
    status: str
    reference: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None


class RequestListOut(BaseModel):
    data: list[UnifiedRequestOut]
    pagination: Pagination


class DepositAdminListOut(BaseModel):
    data: list[DepositRequestOut]
    pagination: Pagination


class WithdrawalAdminListOut(BaseModel):
    data: list[WithdrawalRequestOut]
    pagination: Pagination


class SendAdminListOut(BaseModel):
    data: list[SendRequestOut]
    pagination: Pagination


class AuditLogListOut(BaseModel):
    data: list[AuditLogOut]
    pagination: Pagination


class ActivityLogListOut(BaseModel):
    data: list[ActivityOut]
    pagination: Pagination


class SecurityLogListOut(BaseModel):
    data: list[SecurityLogOut]
    pagination: Pagination


class BankUsersOut(BaseModel):
    data: list[BankAccountOut]
    total: int
