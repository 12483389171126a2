from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import require_user
from cashora.db.session import get_db
from cashora.models.profile import Profile
from cashora.schemas.dashboard import ChartOut, UserDashboardOut, UserDashboardStats
from cashora.services import dashboard_service

"""
API Dashboard utilisateur.

Rôle (fonctionnel) :
- Synthèse du compte (solde, totaux, transactions récentes, compteurs en attente).
- Série journalière entrées / sorties pour le graphique.
"""

router = APIRouter(prefix="/api/user/dashboard", tags=["user-dashboard"])


@router.get("", response_model=UserDashboardOut)
async def dashboard(user: Profile = Depends(require_user), db: AsyncSession = Depends(get_db)):
    return await dashboard_service.user_dashboard(db, user)


@router.get("/stats", response_model=UserDashboardStats)
async def dashboard_stats(user: Profile = Depends(require_user), db: AsyncSession = Depends(get_db)):
    return await dashboard_service.user_stats(db, user)


@router.get("/chart", response_model=ChartOut)
async def dashboard_chart(
    days: int = Query(30, ge=7, le=365),
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return await dashboard_service.user_chart(db, user, days)
