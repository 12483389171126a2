from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import Page, get_client_info, page_params, publish, require_admin
from cashora.core.errors import bad_request
from cashora.core.validation import CENT
from cashora.db.session import get_db
from cashora.models.bank_account import BankAccount
from cashora.models.deposit_request import DepositRequest
from cashora.models.profile import Profile
from cashora.models.withdrawal_request import WithdrawalRequest
from cashora.schemas.admin import (
    BalanceUpdate,
    BalanceUpdateOut,
    LimitsUpdate,
    LimitsUpdateOut,
    RejectIn,
    UserDetailOut,
    UserListOut,
    UserUpdate,
)
from cashora.schemas.common import Pagination
from cashora.schemas.profile import ProfileOut
from cashora.services import ledger_service
from cashora.services.audit_service import log_admin_action
from cashora.services.auth_service import get_profile_or_404
from cashora.services.notification_service import notify_user

"""
API Admin - Utilisateurs.

Rôle (fonctionnel) :
- Recherche / filtrage des comptes, file des comptes à valider.
- Validation (KYC simplifiée) ou refus d’un compte.
- Modification du statut / rôle, des plafonds individuels et du solde (ajustement tracé).

Chaque action écrit une entrée d’audit admin dans la même transaction.
"""

router = APIRouter(prefix="/api/admin/users", tags=["admin-users"])

LIMIT_FIELDS = ("daily_limit", "monthly_limit", "send_limit", "withdraw_limit")


async def _list_users(db: AsyncSession, conditions: list, page: Page) -> UserListOut:
    total = (await db.execute(select(func.count(Profile.id)).where(*conditions))).scalar_one()
    rows = (
        await db.execute(
            select(Profile).where(*conditions).order_by(Profile.created_at.desc()).offset(page.offset).limit(page.limit)
        )
    ).scalars().all()
    return UserListOut(data=list(rows), pagination=Pagination.build(page.page, page.limit, total))


@router.get("", response_model=UserListOut)
async def list_users(
    q: Optional[str] = Query(None, max_length=100),
    status: Optional[str] = Query(None, pattern=r"^(pending|active|rejected|suspended|closed)$"),
    role: Optional[str] = Query(None, pattern=r"^(user|admin)$"),
    page: Page = Depends(page_params),
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    conditions = []
    if q and q.strip():
        pattern = f"%{q.strip().lower()}%"
        conditions.append(or_(func.lower(Profile.email).like(pattern), func.lower(Profile.full_name).like(pattern)))
    if status:
        conditions.append(Profile.status == status)
    if role:
        conditions.append(Profile.role == role)
    return await _list_users(db, conditions, page)


@router.get("/pending", response_model=UserListOut)
async def list_pending_users(
    page: Page = Depends(page_params),
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _list_users(db, [Profile.status == "pending", Profile.role == "user"], page)


@router.get("/{user_id}", response_model=UserDetailOut)
async def get_user(user_id: uuid.UUID, admin: Profile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    user = await get_profile_or_404(db, user_id)
    totals = await ledger_service.get_user_transaction_totals(db, user.id)

    accounts = (
        await db.execute(select(func.count(BankAccount.id)).where(BankAccount.user_id == user.id))
    ).scalar_one()
    pending_deposits = (
        await db.execute(
            select(func.count(DepositRequest.id)).where(
                DepositRequest.user_id == user.id, DepositRequest.status == "pending"
            )
        )
    ).scalar_one()
    pending_withdrawals = (
        await db.execute(
            select(func.count(WithdrawalRequest.id)).where(
                WithdrawalRequest.user_id == user.id, WithdrawalRequest.status == "pending"
            )
        )
    ).scalar_one()

    return UserDetailOut(
        profile=ProfileOut.model_validate(user),
        totals=totals.model_dump(),
        bank_accounts=accounts,
        pending_requests=pending_deposits + pending_withdrawals,
    )


@router.put("/{user_id}", response_model=ProfileOut)
async def update_user(
    user_id: uuid.UUID,
    payload: UserUpdate,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if user_id == admin.id:
        raise bad_request("Cannot modify your own account", code="SELF_MODIFICATION")

    user = await get_profile_or_404(db, user_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    previous = {key: getattr(user, key) for key in changes}
    for key, value in changes.items():
        setattr(user, key, value)

    log_admin_action(
        db,
        admin.id,
        "UPDATE_USER",
        user_id=user.id,
        target_id=user.id,
        details={"old": previous, "new": changes},
        client=get_client_info(request),
    )
    await db.commit()
    return user


@router.put("/{user_id}/approve", response_model=ProfileOut)
async def approve_user(
    user_id: uuid.UUID,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await get_profile_or_404(db, user_id)
    if user.status == "active":
        raise bad_request("User is already verified", code="ALREADY_VERIFIED")

    user.status = "active"
    user.verified_at = datetime.now(timezone.utc)
    user.verified_by = admin.id
    user.verification_level = max(user.verification_level, 1)
    user.rejection_reason = None

    notice = notify_user(
        db,
        user.id,
        "account_verified",
        "Account Verified",
        "Your account has been verified. You can now deposit, withdraw and send money.",
    )
    log_admin_action(db, admin.id, "APPROVE_USER", user_id=user.id, target_id=user.id, client=get_client_info(request))
    await db.commit()
    await publish(request, [notice])
    return user


@router.put("/{user_id}/reject", response_model=ProfileOut)
async def reject_user(
    user_id: uuid.UUID,
    payload: RejectIn,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    reason = (payload.reason or "").strip()
    if not reason:
        raise bad_request("Rejection reason is required", code="REASON_REQUIRED")

    user = await get_profile_or_404(db, user_id)
    user.status = "rejected"
    user.rejection_reason = reason

    log_admin_action(
        db,
        admin.id,
        "REJECT_USER",
        user_id=user.id,
        target_id=user.id,
        details={"reason": reason},
        client=get_client_info(request),
    )
    await db.commit()
    return user


@router.put("/{user_id}/balance", response_model=BalanceUpdateOut)
async def update_balance(
    user_id: uuid.UUID,
    payload: BalanceUpdate,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    outcome = await ledger_service.adjust_balance(
        db, admin, user_id, payload.amount, payload.note, client=get_client_info(request)
    )
    await publish(request, outcome.notifications)
    return BalanceUpdateOut(
        message="Balance updated",
        old_balance=outcome.details["old_balance"],
        new_balance=outcome.details["new_balance"],
        difference=outcome.details["difference"],
    )


@router.put("/{user_id}/limits", response_model=LimitsUpdateOut)
async def update_limits(
    user_id: uuid.UUID,
    payload: LimitsUpdate,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await get_profile_or_404(db, user_id)
    new = {key: value.quantize(CENT) for key, value in payload.model_dump().items()}
    old = {key: str(getattr(user, key)) for key in LIMIT_FIELDS}
    for key in LIMIT_FIELDS:
        setattr(user, key, new[key])

    notice = notify_user(
        db,
        user.id,
        "limits_update",
        "Limits Updated",
        "Your account limits have been updated",
        {key: str(new[key]) for key in LIMIT_FIELDS},
    )
    log_admin_action(
        db,
        admin.id,
        "UPDATE_USER_LIMITS",
        user_id=user.id,
        target_id=user.id,
        details={"old": old, "new": {key: str(new[key]) for key in LIMIT_FIELDS}},
        client=get_client_info(request),
    )
    await db.commit()
    await publish(request, [notice])
    return LimitsUpdateOut(message="Limits updated", profile=ProfileOut.model_validate(user))
