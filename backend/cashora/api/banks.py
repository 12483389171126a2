from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import require_user
from cashora.db.session import get_db
from cashora.models.bank import Bank
from cashora.schemas.banks import BankOut

"""
API Banques (lecture).

Liste des banques actives proposées à l’ajout d’un compte bancaire.
"""

router = APIRouter(prefix="/api/banks", tags=["banks"])


@router.get("", response_model=List[BankOut], dependencies=[Depends(require_user)])
async def list_active_banks(db: AsyncSession = Depends(get_db)):
    rows = (await db.execute(select(Bank).where(Bank.status == "active").order_by(Bank.name))).scalars().all()
    return list(rows)
