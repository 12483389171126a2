from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

"""
Schemas Banques et comptes bancaires.
"""


class BankOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    code: str
    status: str
    logo_url: Optional[str] = None
    created_at: datetime


class BankCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=2, max_length=100)
    code: str = Field(..., min_length=2, max_length=20)
    status: str = Field(default="active", pattern=r"^(active|inactive)$")
    logo_url: Optional[str] = Field(default=None, max_length=500)


class BankUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    code: Optional[str] = Field(default=None, min_length=2, max_length=20)
    status: Optional[str] = Field(default=None, pattern=r"^(active|inactive)$")
    logo_url: Optional[str] = Field(default=None, max_length=500)


class BankAccountCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    bank_id: UUID
    account_number: str = Field(..., max_length=32)
    account_name: str = Field(..., max_length=100)


class BankAccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    bank_id: UUID
    bank: Optional[BankOut] = None
    account_number: str
    account_name: str
    is_default: bool
    is_verified: bool
    verified_at: Optional[datetime] = None
    created_at: datetime
