from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import Page, date_bounds, page_params, require_admin
from cashora.core.errors import not_found
from cashora.db.session import get_db
from cashora.models.transaction import Transaction
from cashora.schemas.common import Pagination
from cashora.schemas.dashboard import StatusBreakdown
from cashora.schemas.ledger import TransactionListOut, TransactionOut
from cashora.services import dashboard_service, ledger_service

"""
API Admin - Transactions.

Journal complet du ledger : filtres (type, statut, utilisateur, période), détail, stats par statut.
"""

router = APIRouter(prefix="/api/admin/transactions", tags=["admin-transactions"], dependencies=[Depends(require_admin)])


@router.get("", response_model=TransactionListOut)
async def list_transactions(
    type: Optional[str] = Query(None, pattern=r"^(deposit|withdrawal|transfer|admin_adjustment|admin_transfer)$"),
    status: Optional[str] = Query(None, max_length=20),
    user_id: Optional[uuid.UUID] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: Page = Depends(page_params),
    db: AsyncSession = Depends(get_db),
):
    conditions = []
    if type:
        conditions.append(Transaction.type == type)
    if status:
        conditions.append(Transaction.status == status)
    if user_id:
        conditions.append(or_(Transaction.sender_id == user_id, Transaction.recipient_id == user_id))
    start, end = date_bounds(start_date, end_date)
    if start:
        conditions.append(Transaction.created_at >= start)
    if end:
        conditions.append(Transaction.created_at < end)

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
    return TransactionListOut(data=list(rows), pagination=Pagination.build(page.page, page.limit, total))


@router.get("/stats", response_model=StatusBreakdown)
async def transaction_stats(db: AsyncSession = Depends(get_db)):
    return await dashboard_service.status_breakdown(db, Transaction)


@router.get("/{transaction_id}", response_model=TransactionOut)
async def get_transaction(transaction_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    tx = await ledger_service.load_transaction(db, transaction_id)
    if tx is None:
        raise not_found("Transaction not found")
    return tx
