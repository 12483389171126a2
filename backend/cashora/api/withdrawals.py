from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import (
    Page,
    RateLimit,
    ensure_not_maintenance,
    get_client_info,
    page_params,
    publish,
    require_active,
    require_user,
)
from cashora.core.errors import AppHTTPException
from cashora.db.session import get_db
from cashora.models.profile import Profile
from cashora.models.withdrawal_request import WithdrawalRequest
from cashora.schemas.common import Pagination
from cashora.schemas.ledger import (
    ValidationOut,
    WithdrawalCreate,
    WithdrawalHistoryOut,
    WithdrawalLimitsOut,
    WithdrawalRequestResult,
)
from cashora.services import ledger_service, limits_service

"""
API Retraits (côté utilisateur).

Rôle (fonctionnel) :
- Demander un retrait vers un compte bancaire enregistré (demande `pending`).
- Pré-valider une demande (mêmes contrôles, sans écriture).
- Historique et plafonds (jour, retraits en attente, solde disponible).
"""

router = APIRouter(prefix="/api/user/withdraw", tags=["withdrawals"])


@router.post(
    "",
    response_model=WithdrawalRequestResult,
    status_code=201,
    dependencies=[Depends(RateLimit(10)), Depends(ensure_not_maintenance)],
)
async def create_withdrawal(
    payload: WithdrawalCreate,
    request: Request,
    user: Profile = Depends(require_active),
    db: AsyncSession = Depends(get_db),
):
    outcome = await ledger_service.create_withdrawal_request(
        db, user, payload.amount, payload.bank_account_id, client=get_client_info(request)
    )
    await publish(request, outcome.notifications)
    return WithdrawalRequestResult(message="Withdrawal request submitted", withdrawal_request=outcome.request)


@router.post("/validate", response_model=ValidationOut)
async def validate_withdrawal(
    payload: WithdrawalCreate,
    user: Profile = Depends(require_active),
    db: AsyncSession = Depends(get_db),
):
    try:
        await ledger_service.check_withdrawal(db, user, payload.amount, payload.bank_account_id)
    except AppHTTPException as exc:
        return ValidationOut(valid=False, error=exc.message)
    return ValidationOut(valid=True)


@router.get("/history", response_model=WithdrawalHistoryOut)
async def withdrawal_history(
    status: Optional[str] = Query(None, pattern=r"^(pending|approved|rejected)$"),
    page: Page = Depends(page_params),
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    conditions = [WithdrawalRequest.user_id == user.id]
    if status:
        conditions.append(WithdrawalRequest.status == status)

    total = (await db.execute(select(func.count(WithdrawalRequest.id)).where(*conditions))).scalar_one()
    rows = (
        await db.execute(
            select(WithdrawalRequest)
            .where(*conditions)
            .order_by(WithdrawalRequest.created_at.desc())
            .offset(page.offset)
            .limit(page.limit)
        )
    ).scalars().all()
    return WithdrawalHistoryOut(data=list(rows), pagination=Pagination.build(page.page, page.limit, total))


@router.get("/limits", response_model=WithdrawalLimitsOut)
async def withdrawal_limits(user: Profile = Depends(require_user), db: AsyncSession = Depends(get_db)):
    return await limits_service.withdrawal_limits(db, user)
