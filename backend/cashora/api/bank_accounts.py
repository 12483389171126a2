from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import get_client_info, require_user
from cashora.core.errors import bad_request, not_found
from cashora.core.validation import validate_account_number, validate_name
from cashora.db.session import get_db
from cashora.models.bank import Bank
from cashora.models.bank_account import BankAccount
from cashora.models.profile import Profile
from cashora.models.withdrawal_request import WithdrawalRequest
from cashora.schemas.banks import BankAccountCreate, BankAccountOut
from cashora.schemas.common import MessageOut
from cashora.services.audit_service import log_activity

"""
API Comptes bancaires (côté utilisateur).

Rôle (fonctionnel) :
- Lister / ajouter / supprimer ses comptes bancaires (destinations de retrait).
- Choisir le compte par défaut (un seul par utilisateur).
- Marquer un compte comme vérifié.

Règles :
- le premier compte ajouté devient le compte par défaut ;
- un compte ayant des retraits en attente ne peut pas être supprimé ;
- supprimer le compte par défaut promeut le plus ancien compte restant.
"""

router = APIRouter(prefix="/api/user/bank-accounts", tags=["bank-accounts"])


async def _own_account(db: AsyncSession, user: Profile, account_id: uuid.UUID) -> BankAccount:
    account = (
        await db.execute(select(BankAccount).where(BankAccount.id == account_id, BankAccount.user_id == user.id))
    ).scalars().first()
    if account is None:
        raise not_found("Bank account not found")
    return account


@router.get("", response_model=List[BankAccountOut])
async def list_bank_accounts(user: Profile = Depends(require_user), db: AsyncSession = Depends(get_db)):
    rows = (
        await db.execute(
            select(BankAccount)
            .where(BankAccount.user_id == user.id)
            .order_by(BankAccount.is_default.desc(), BankAccount.created_at.asc())
        )
    ).scalars().all()
    return list(rows)


@router.post("", response_model=BankAccountOut, status_code=201)
async def add_bank_account(
    payload: BankAccountCreate,
    request: Request,
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    account_number = validate_account_number(payload.account_number)
    account_name = validate_name(payload.account_name)

    bank = await db.get(Bank, payload.bank_id)
    if bank is None or bank.status != "active":
        raise bad_request("Invalid bank selected", code="INVALID_BANK")

    duplicate = (
        await db.execute(
            select(BankAccount.id).where(
                BankAccount.user_id == user.id,
                BankAccount.bank_id == bank.id,
                BankAccount.account_number == account_number,
            )
        )
    ).scalar_one_or_none()
    if duplicate is not None:
        raise bad_request("Bank account already exists", code="BANK_ACCOUNT_EXISTS")

    existing = (
        await db.execute(select(func.count(BankAccount.id)).where(BankAccount.user_id == user.id))
    ).scalar_one()

    account = BankAccount(
        user_id=user.id,
        bank_id=bank.id,
        bank=bank,
        account_number=account_number,
        account_name=account_name,
        is_default=existing == 0,
    )
    db.add(account)
    log_activity(
        db,
        user.id,
        "bank_account_added",
        description=f"Bank account added ({bank.name})",
        data={"bank_id": str(bank.id)},
        client=get_client_info(request),
    )
    await db.commit()
    return account


@router.put("/{account_id}/default", response_model=BankAccountOut)
async def set_default_account(
    account_id: uuid.UUID,
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    account = await _own_account(db, user, account_id)
    await db.execute(
        update(BankAccount)
        .where(BankAccount.user_id == user.id, BankAccount.id != account.id)
        .values(is_default=False)
        .execution_options(synchronize_session=False)
    )
    account.is_default = True
    await db.commit()
    return account


@router.delete("/{account_id}", response_model=MessageOut)
async def delete_bank_account(
    account_id: uuid.UUID,
    request: Request,
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    account = await _own_account(db, user, account_id)

    pending = (
        await db.execute(
            select(func.count(WithdrawalRequest.id)).where(
                WithdrawalRequest.bank_account_id == account.id,
                WithdrawalRequest.status == "pending",
            )
        )
    ).scalar_one()
    if pending:
        raise bad_request("Bank account has pending withdrawals", code="BANK_ACCOUNT_IN_USE")

    was_default = account.is_default
    await db.delete(account)
    await db.flush()

    if was_default:
        successor = (
            await db.execute(
                select(BankAccount).where(BankAccount.user_id == user.id).order_by(BankAccount.created_at.asc()).limit(1)
            )
        ).scalars().first()
        if successor is not None:
            successor.is_default = True

    log_activity(
        db,
        user.id,
        "bank_account_removed",
        description="Bank account removed",
        data={"bank_account_id": str(account_id)},
        client=get_client_info(request),
    )
    await db.commit()
    return MessageOut(message="Bank account deleted")


@router.post("/{account_id}/verify", response_model=BankAccountOut)
async def verify_bank_account(
    account_id: uuid.UUID,
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    account = await _own_account(db, user, account_id)
    validate_account_number(account.account_number)

    if not account.is_verified:
        account.is_verified = True
        account.verified_at = datetime.now(timezone.utc)
        await db.commit()
    return account
