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
from cashora.db.session import get_db
from cashora.models.deposit_request import DepositRequest
from cashora.models.profile import Profile
from cashora.schemas.common import Pagination
from cashora.schemas.ledger import DepositCreate, DepositHistoryOut, DepositLimitsOut, DepositRequestResult
from cashora.services import ledger_service, limits_service

"""
API Dépôts (côté utilisateur).

Rôle (fonctionnel) :
- Déclarer un dépôt (demande `pending`, validée ensuite par un admin).
- Consulter l’historique des demandes et les plafonds jour / mois.
"""

router = APIRouter(prefix="/api/user/deposit", tags=["deposits"])


@router.post(
    "",
    response_model=DepositRequestResult,
    status_code=201,
    dependencies=[Depends(RateLimit(10)), Depends(ensure_not_maintenance)],
)
async def create_deposit(
    payload: DepositCreate,
    request: Request,
    user: Profile = Depends(require_active),
    db: AsyncSession = Depends(get_db),
):
    outcome = await ledger_service.create_deposit_request(
        db, user, payload.amount, payload.full_name, client=get_client_info(request)
    )
    await publish(request, outcome.notifications)
    return DepositRequestResult(message="Deposit request submitted", deposit_request=outcome.request)


@router.get("/history", response_model=DepositHistoryOut)
async def deposit_history(
    status: Optional[str] = Query(None, pattern=r"^(pending|approved|rejected)$"),
    page: Page = Depends(page_params),
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    conditions = [DepositRequest.user_id == user.id]
    if status:
        conditions.append(DepositRequest.status == status)

    total = (await db.execute(select(func.count(DepositRequest.id)).where(*conditions))).scalar_one()
    rows = (
        await db.execute(
            select(DepositRequest)
            .where(*conditions)
            .order_by(DepositRequest.created_at.desc())
            .offset(page.offset)
            .limit(page.limit)
        )
    ).scalars().all()
    return DepositHistoryOut(data=list(rows), pagination=Pagination.build(page.page, page.limit, total))


@router.get("/limits", response_model=DepositLimitsOut)
async def deposit_limits(user: Profile = Depends(require_user), db: AsyncSession = Depends(get_db)):
    return await limits_service.deposit_limits(db, user)
