from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.core.rate_limit import rate_limiter
from cashora.db.session import get_db
from cashora.models.transaction import Transaction

"""
API System Status.

Rôle (fonctionnel) :
- Expose un endpoint de statut “healthcheck” pour la plateforme.
- Vérifie la disponibilité de la base (requête simple).
- Fournit une information de fraîcheur via la date de la dernière transaction.
- Indique le backend de rate-limit actif (memory / redis).
"""

log = logging.getLogger("cashora.api")

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/status")
async def system_status(db: AsyncSession = Depends(get_db)):
    # 1) DB check (requête minimale)
    db_ok = True
    last_update = None
    try:
        await db.execute(text("SELECT 1"))
        last = (await db.execute(select(func.max(Transaction.created_at)))).scalar_one_or_none()
        last_update = last.isoformat() if last else None
    except SQLAlchemyError:
        log.exception("status_db_check_failed")
        db_ok = False

    # Réponse (format constant) pour monitoring / UI
    return {
        "ok": db_ok,
        "db": {"ok": db_ok},
        "rate_limit": {"backend": rate_limiter.backend},
        "last_update": last_update,
        "ts": datetime.now(timezone.utc).isoformat(),
    }
