from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import get_client_info, require_admin
from cashora.core.errors import bad_request, not_found
from cashora.db.session import get_db
from cashora.models.bank import Bank
from cashora.models.bank_account import BankAccount
from cashora.models.profile import Profile
from cashora.schemas.admin import BankUsersOut
from cashora.schemas.banks import BankCreate, BankOut, BankUpdate
from cashora.schemas.common import MessageOut
from cashora.services.audit_service import log_admin_action

"""
API Admin - Banques.

Rôle (fonctionnel) :
- Catalogue des banques (création, modification, activation / désactivation).
- Suppression interdite tant que des comptes bancaires y sont rattachés.
- Liste des comptes rattachés à une banque.
"""

router = APIRouter(prefix="/api/admin/banks", tags=["admin-banks"])


async def _get_bank(db: AsyncSession, bank_id: uuid.UUID) -> Bank:
    bank = await db.get(Bank, bank_id)
    if bank is None:
        raise not_found("Bank not found")
    return bank


async def _ensure_code_free(db: AsyncSession, code: str, exclude_id: Optional[uuid.UUID] = None) -> None:
    stmt = select(Bank.id).where(Bank.code == code)
    if exclude_id is not None:
        stmt = stmt.where(Bank.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise bad_request("Bank code already exists", code="BANK_CODE_TAKEN")


@router.get("", response_model=List[BankOut])
async def list_banks(
    status: Optional[str] = Query(None, pattern=r"^(active|inactive)$"),
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Bank).order_by(Bank.name)
    if status:
        stmt = stmt.where(Bank.status == status)
    return list((await db.execute(stmt)).scalars().all())


@router.post("", response_model=BankOut, status_code=201)
async def create_bank(
    payload: BankCreate,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    code = payload.code.strip().upper()
    await _ensure_code_free(db, code)

    bank = Bank(name=payload.name.strip(), code=code, status=payload.status, logo_url=payload.logo_url)
    db.add(bank)
    await db.flush()
    log_admin_action(
        db, admin.id, "CREATE_BANK", target_id=bank.id, details={"code": code}, client=get_client_info(request)
    )
    await db.commit()
    return bank


@router.put("/{bank_id}", response_model=BankOut)
async def update_bank(
    bank_id: uuid.UUID,
    payload: BankUpdate,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    bank = await _get_bank(db, bank_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "code" in changes:
        changes["code"] = changes["code"].strip().upper()
        await _ensure_code_free(db, changes["code"], exclude_id=bank.id)
    if "name" in changes:
        changes["name"] = changes["name"].strip()

    for key, value in changes.items():
        setattr(bank, key, value)
    log_admin_action(db, admin.id, "UPDATE_BANK", target_id=bank.id, details=changes, client=get_client_info(request))
    await db.commit()
    return bank


@router.delete("/{bank_id}", response_model=MessageOut)
async def delete_bank(
    bank_id: uuid.UUID,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    bank = await _get_bank(db, bank_id)
    linked = (
        await db.execute(select(func.count(BankAccount.id)).where(BankAccount.bank_id == bank.id))
    ).scalar_one()
    if linked:
        raise bad_request("Bank has linked accounts", code="BANK_IN_USE", details={"accounts": linked})

    log_admin_action(
        db, admin.id, "DELETE_BANK", target_id=bank.id, details={"code": bank.code}, client=get_client_info(request)
    )
    await db.delete(bank)
    await db.commit()
    return MessageOut(message="Bank deleted")


@router.get("/{bank_id}/users", response_model=BankUsersOut)
async def bank_users(bank_id: uuid.UUID, admin: Profile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    bank = await _get_bank(db, bank_id)
    rows = (
        await db.execute(
            select(BankAccount).where(BankAccount.bank_id == bank.id).order_by(BankAccount.created_at.desc())
        )
    ).scalars().all()
    return BankUsersOut(data=list(rows), total=len(rows))
