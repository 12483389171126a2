from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cashora.schemas.common import Pagination, coerce_decimal
from cashora.schemas.profile import ProfileBrief

"""
Schemas Ledger (Pydantic).

Rôle (fonctionnel) :
- Contrat HTTP des mouvements d’argent : dépôts, retraits, transferts, demandes d’envoi.
- Les payloads d’entrée sont stricts (extra="forbid") ; les montants sont normalisés en Decimal.
- Les règles métier (montant > 0, 2 décimales, bornes plateforme, plafonds) sont appliquées
  par le ledger pour produire des messages d’erreur stables (400).
"""


class _AmountIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount: Decimal

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_to_decimal(cls, v: Any) -> Any:
        return coerce_decimal(v)


class DepositCreate(_AmountIn):
    full_name: str = Field(..., max_length=100)


class WithdrawalCreate(_AmountIn):
    bank_account_id: UUID


class TransferCreate(_AmountIn):
    recipient_id: UUID
    description: Optional[str] = Field(default=None, max_length=1000)


class SendRequestCreate(TransferCreate):
    pass


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    status: str
    amount: Decimal
    reference: str
    description: Optional[str] = None
    sender_id: Optional[UUID] = None
    recipient_id: Optional[UUID] = None
    sender: Optional[ProfileBrief] = None
    recipient: Optional[ProfileBrief] = None
    meta: Optional[dict[str, Any]] = Field(default=None, serialization_alias="metadata")
    processed_at: Optional[datetime] = None
    created_at: datetime


class DepositRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    amount: Decimal
    depositor_name: str
    reference: str
    status: str
    rejection_reason: Optional[str] = None
    transaction_id: Optional[UUID] = None
    processed_by: Optional[UUID] = None
    processed_at: Optional[datetime] = None
    created_at: datetime


class WithdrawalRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    bank_account_id: Optional[UUID] = None
    amount: Decimal
    reference: str
    status: str
    rejection_reason: Optional[str] = None
    transaction_id: Optional[UUID] = None
    processed_by: Optional[UUID] = None
    processed_at: Optional[datetime] = None
    created_at: datetime


class SendRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sender_id: UUID
    recipient_id: UUID
    amount: Decimal
    description: Optional[str] = None
    status: str
    rejection_reason: Optional[str] = None
    transaction_id: Optional[UUID] = None
    processed_by: Optional[UUID] = None
    processed_at: Optional[datetime] = None
    created_at: datetime


class TransferOut(BaseModel):
    message: str
    transaction: TransactionOut
    balance: Decimal


class TransferHistoryOut(BaseModel):
    transfers: list[TransactionOut]
    pagination: Pagination


class TransactionListOut(BaseModel):
    data: list[TransactionOut]
    pagination: Pagination


class TransactionTotals(BaseModel):
    total_sent: Decimal = Decimal("0")
    total_received: Decimal = Decimal("0")
    total_deposited: Decimal = Decimal("0")
    total_withdrawn: Decimal = Decimal("0")


class PeriodUsage(BaseModel):
    limit: Decimal
    used: Decimal
    remaining: Decimal
    count: int


class DepositLimitsOut(BaseModel):
    daily: PeriodUsage
    monthly: PeriodUsage
    min_amount: Decimal
    max_amount: Decimal


class WithdrawalLimitsOut(BaseModel):
    daily: PeriodUsage
    pending_amount: Decimal
    available_balance: Decimal
    min_amount: Decimal
    max_amount: Decimal


class TransferLimitsOut(BaseModel):
    daily: PeriodUsage
    min_amount: Decimal
    max_amount: Decimal


class ValidationOut(BaseModel):
    valid: bool
    error: Optional[str] = None


class DepositRequestResult(BaseModel):
    message: str
    deposit_request: DepositRequestOut


class WithdrawalRequestResult(BaseModel):
    message: str
    withdrawal_request: WithdrawalRequestOut


class SendRequestResult(BaseModel):
    message: str
    send_request: SendRequestOut


class DepositHistoryOut(BaseModel):
    data: list[DepositRequestOut]
    pagination: Pagination


class WithdrawalHistoryOut(BaseModel):
    data: list[WithdrawalRequestOut]
    pagination: Pagination


class SendRequestListOut(BaseModel):
    data: list[SendRequestOut]
    pagination: Pagination
