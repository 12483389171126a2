from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, or_, select
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
from cashora.models.send_request import SendRequest
from cashora.models.transaction import Transaction
from cashora.schemas.common import Pagination
from cashora.schemas.ledger import (
    SendRequestCreate,
    SendRequestListOut,
    SendRequestResult,
    TransferCreate,
    TransferHistoryOut,
    TransferLimitsOut,
    TransferOut,
    ValidationOut,
)
from cashora.schemas.profile import ProfileBrief
from cashora.services import ledger_service, limits_service

"""
API Transferts (pair à pair).

Rôle (fonctionnel) :
- Transfert immédiat entre deux comptes actifs (transfer_money), notifications + push temps réel.
- Demande d’envoi soumise à validation admin (send-requests).
- Pré-validation d’un envoi, recherche de destinataires, historique envoyés / reçus.
"""

router = APIRouter(prefix="/api/user", tags=["transfers"])

RECIPIENTS_LIMIT = 10


@router.post(
    "/transfer",
    response_model=TransferOut,
    dependencies=[Depends(RateLimit(10)), Depends(ensure_not_maintenance)],
)
async def transfer(
    payload: TransferCreate,
    request: Request,
    user: Profile = Depends(require_active),
    db: AsyncSession = Depends(get_db),
):
    outcome = await ledger_service.transfer_money(
        db, user, payload.recipient_id, payload.amount, payload.description, client=get_client_info(request)
    )
    await publish(request, outcome.notifications)

    tx = await ledger_service.load_transaction(db, outcome.transaction.id)
    return TransferOut(message="Transfer successful", transaction=tx, balance=outcome.profiles[user.id].balance)


@router.get("/transfer/history", response_model=TransferHistoryOut)
async def transfer_history(
    type: Optional[str] = Query(None, pattern=r"^(sent|received)$"),
    page: Page = Depends(page_params),
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    conditions = [Transaction.type == "transfer"]
    if type == "sent":
        conditions.append(Transaction.sender_id == user.id)
    elif type == "received":
        conditions.append(Transaction.recipient_id == user.id)
    else:
        conditions.append(or_(Transaction.sender_id == user.id, Transaction.recipient_id == user.id))

    total = (await db.execute(select(func.count(Transaction.id)).where(*conditions))).scalar_one()
    rows = (
        await db.execute(
            select(Transaction)
            .where(*conditions)
            .order_by(Transaction.created_at.desc())
            .offset(page.offset)
            .limit(page.limit)
        )
    ).scalars().all()
    return TransferHistoryOut(transfers=list(rows), pagination=Pagination.build(page.page, page.limit, total))


@router.get("/transfer/limits", response_model=TransferLimitsOut)
async def transfer_limits(user: Profile = Depends(require_user), db: AsyncSession = Depends(get_db)):
    return await limits_service.transfer_limits(db, user)


@router.get("/transfer/recipients", response_model=List[ProfileBrief])
async def search_recipients(
    q: str = Query("", max_length=100),
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Profile).where(Profile.status == "active", Profile.role == "user", Profile.id != user.id)
    term = q.strip().lower()
    if term:
        pattern = f"%{term}%"
        stmt = stmt.where(or_(func.lower(Profile.email).like(pattern), func.lower(Profile.full_name).like(pattern)))
    rows = (await db.execute(stmt.order_by(Profile.full_name).limit(RECIPIENTS_LIMIT))).scalars().all()
    return list(rows)


@router.post("/send/validate", response_model=ValidationOut)
async def validate_send(
    payload: TransferCreate,
    user: Profile = Depends(require_active),
    db: AsyncSession = Depends(get_db),
):
    try:
        await ledger_service.validate_transfer(db, user, payload.recipient_id, payload.amount)
    except AppHTTPException as exc:
        return ValidationOut(valid=False, error=exc.message)
    return ValidationOut(valid=True)


@router.post(
    "/send-requests",
    response_model=SendRequestResult,
    status_code=201,
    dependencies=[Depends(RateLimit(10)), Depends(ensure_not_maintenance)],
)
async def create_send_request(
    payload: SendRequestCreate,
    request: Request,
    user: Profile = Depends(require_active),
    db: AsyncSession = Depends(get_db),
):
    outcome = await ledger_service.create_send_request(
        db, user, payload.recipient_id, payload.amount, payload.description, client=get_client_info(request)
    )
    await publish(request, outcome.notifications)
    return SendRequestResult(message="Sending request submitted", send_request=outcome.request)


@router.get("/send-requests", response_model=SendRequestListOut)
async def list_send_requests(
    status: Optional[str] = Query(None, pattern=r"^(pending|approved|rejected)$"),
    page: Page = Depends(page_params),
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    conditions = [SendRequest.sender_id == user.id]
    if status:
        conditions.append(SendRequest.status == status)

    total = (await db.execute(select(func.count(SendRequest.id)).where(*conditions))).scalar_one()
    rows = (
        await db.execute(
            select(SendRequest)
            .where(*conditions)
            .order_by(SendRequest.created_at.desc())
            .offset(page.offset)
            .limit(page.limit)
        )
    ).scalars().all()
    return SendRequestListOut(data=list(rows), pagination=Pagination.build(page.page, page.limit, total))
