from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import Page, page_params, require_admin
from cashora.db.session import get_db
from cashora.models.activity_log import ActivityLog
from cashora.models.admin_audit_log import AdminAuditLog
from cashora.models.security_log import SecurityLog
from cashora.schemas.admin import ActivityLogListOut, AuditLogListOut, SecurityLogListOut
from cashora.schemas.common import Pagination

"""
API Admin - Journaux.

Lecture paginée (plus récent d’abord) des trois journaux :
- audit     : actions administratives
- activity  : activité fonctionnelle des comptes
- security  : événements de sécurité (login, 2FA, mot de passe)
"""

router = APIRouter(prefix="/api/admin/logs", tags=["admin-logs"], dependencies=[Depends(require_admin)])


async def _page(db: AsyncSession, model, conditions: list, page: Page):
    total = (await db.execute(select(func.count(model.id)).where(*conditions))).scalar_one()
    rows = (
        await db.execute(
            select(model).where(*conditions).order_by(model.created_at.desc()).offset(page.offset).limit(page.limit)
        )
    ).scalars().all()
    return list(rows), Pagination.build(page.page, page.limit, total)


@router.get("/audit", response_model=AuditLogListOut)
async def audit_logs(
    admin_id: Optional[uuid.UUID] = Query(None),
    action: Optional[str] = Query(None, max_length=50),
    page: Page = Depends(page_params),
    db: AsyncSession = Depends(get_db),
):
    conditions = []
    if admin_id:
        conditions.append(AdminAuditLog.admin_id == admin_id)
    if action:
        conditions.append(AdminAuditLog.action == action)
    rows, pagination = await _page(db, AdminAuditLog, conditions, page)
    return AuditLogListOut(data=rows, pagination=pagination)


@router.get("/activity", response_model=ActivityLogListOut)
async def activity_logs(
    user_id: Optional[uuid.UUID] = Query(None),
    type: Optional[str] = Query(None, max_length=50),
    page: Page = Depends(page_params),
    db: AsyncSession = Depends(get_db),
):
    conditions = []
    if user_id:
        conditions.append(ActivityLog.user_id == user_id)
    if type:
        conditions.append(ActivityLog.type == type)
    rows, pagination = await _page(db, ActivityLog, conditions, page)
    return ActivityLogListOut(data=rows, pagination=pagination)


@router.get("/security", response_model=SecurityLogListOut)
async def security_logs(
    user_id: Optional[uuid.UUID] = Query(None),
    event: Optional[str] = Query(None, max_length=50),
    page: Page = Depends(page_params),
    db: AsyncSession = Depends(get_db),
):
    conditions = []
    if user_id:
        conditions.append(SecurityLog.user_id == user_id)
    if event:
        conditions.append(SecurityLog.event == event)
    rows, pagination = await _page(db, SecurityLog, conditions, page)
    return SecurityLogListOut(data=rows, pagination=pagination)
