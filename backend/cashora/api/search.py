from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import require_admin
from cashora.db.session import get_db
from cashora.models.profile import Profile
from cashora.models.transaction import Transaction
from cashora.schemas.ledger import TransactionOut
from cashora.schemas.profile import ProfileOut

"""
API Recherche (admin).

- /users : email ou nom (insensible à la casse)
- /transactions : référence ou description
"""

router = APIRouter(prefix="/api/search", tags=["search"], dependencies=[Depends(require_admin)])

SEARCH_LIMIT = 20


def _pattern(q: str) -> str:
    return f"%{q.strip().lower()}%"


@router.get("/users", response_model=List[ProfileOut])
async def search_users(q: str = Query(..., min_length=1, max_length=100), db: AsyncSession = Depends(get_db)):
    pattern = _pattern(q)
    rows = (
        await db.execute(
            select(Profile)
            .where(or_(func.lower(Profile.email).like(pattern), func.lower(Profile.full_name).like(pattern)))
            .order_by(Profile.created_at.desc())
            .limit(SEARCH_LIMIT)
        )
    ).scalars().all()
    return list(rows)


@router.get("/transactions", response_model=List[TransactionOut])
async def search_transactions(q: str = Query(..., min_length=1, max_length=100), db: AsyncSession = Depends(get_db)):
    pattern = _pattern(q)
    rows = (
        await db.execute(
            select(Transaction)
            .where(or_(func.lower(Transaction.reference).like(pattern), func.lower(Transaction.description).like(pattern)))
            .order_by(Transaction.created_at.desc())
            .limit(SEARCH_LIMIT)
        )
    ).scalars().all()
    return list(rows)
