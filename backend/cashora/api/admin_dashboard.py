from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import require_admin
from cashora.db.session import get_db
from cashora.schemas.dashboard import AdminDashboardOut, TransactionsReportOut, UsersReportOut
from cashora.services import dashboard_service

"""
API Admin - Dashboard & rapports.

Rôle (fonctionnel) :
- KPIs globaux (utilisateurs, solde total, volume 30 jours, files en attente, tickets ouverts).
- Rapports journaliers : transactions par type, inscriptions + répartition par statut.
"""

router = APIRouter(prefix="/api/admin", tags=["admin-dashboard"], dependencies=[Depends(require_admin)])


@router.get("/dashboard", response_model=AdminDashboardOut)
async def admin_dashboard(db: AsyncSession = Depends(get_db)):
    return await dashboard_service.admin_dashboard(db)


@router.get("/stats", response_model=Dict[str, int])
async def admin_stats(db: AsyncSession = Depends(get_db)):
    return await dashboard_service.admin_counts(db)


@router.get("/reports/transactions", response_model=TransactionsReportOut)
async def transactions_report(days: int = Query(30, ge=1, le=365), db: AsyncSession = Depends(get_db)):
    return await dashboard_service.transactions_report(db, days)


@router.get("/reports/users", response_model=UsersReportOut)
async def users_report(days: int = Query(30, ge=1, le=365), db: AsyncSession = Depends(get_db)):
    return await dashboard_service.users_report(db, days)
