from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import Page, date_bounds, page_params, require_user
from cashora.core.errors import not_found
from cashora.db.session import get_db
from cashora.models.profile import Profile
from cashora.models.transaction import Transaction
from cashora.schemas.common import Pagination
from cashora.schemas.ledger import TransactionListOut, TransactionOut
from cashora.services import export_service

"""
API Transactions (côté utilisateur).

Rôle (fonctionnel) :
- Historique filtrable (type, statut, période) des transactions dont l’utilisateur est partie.
- Détail d’une transaction (404 si l’utilisateur n’est ni émetteur ni destinataire).
- Export CSV de l’historique et reçu PDF d’une transaction.
"""

router = APIRouter(prefix="/api/user/transactions", tags=["transactions"])

TYPE_PATTERN = r"^(deposit|withdrawal|transfer|admin_adjustment|admin_transfer)$"


def _party(user_id: uuid.UUID):
    return or_(Transaction.sender_id == user_id, Transaction.recipient_id == user_id)


async def _own_transaction(db: AsyncSession, user: Profile, transaction_id: uuid.UUID) -> Transaction:
    tx = (
        await db.execute(select(Transaction).where(Transaction.id == transaction_id, _party(user.id)))
    ).scalars().first()
    if tx is None:
        raise not_found("Transaction not found")
    return tx


@router.get("", response_model=TransactionListOut)
async def list_transactions(
    type: Optional[str] = Query(None, pattern=TYPE_PATTERN),
    status: Optional[str] = Query(None, max_length=20),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: Page = Depends(page_params),
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    conditions = [_party(user.id)]
    if type:
        conditions.append(Transaction.type == type)
    if status:
        conditions.append(Transaction.status == status)
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


@router.get("/export")
async def export_transactions(user: Profile = Depends(require_user), db: AsyncSession = Depends(get_db)):
    rows = await export_service.user_transactions(db, user.id)
    filename = f"transactions-{datetime.now(timezone.utc):%Y%m%d}.csv"
    return Response(
        content=export_service.transactions_csv(rows, user.id),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{transaction_id}", response_model=TransactionOut)
async def get_transaction(
    transaction_id: uuid.UUID,
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return await _own_transaction(db, user, transaction_id)


@router.get("/{transaction_id}/receipt")
async def transaction_receipt(
    transaction_id: uuid.UUID,
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    tx = await _own_transaction(db, user, transaction_id)
    return Response(
        content=export_service.build_receipt_pdf(tx, user),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="receipt-{tx.reference}.pdf"'},
    )
