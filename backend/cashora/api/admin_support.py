from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import Page, get_client_info, page_params, publish, require_admin
from cashora.api.support import load_ticket
from cashora.db.session import get_db
from cashora.models.profile import Profile
from cashora.models.support_message import SupportMessage
from cashora.models.support_ticket import SupportTicket
from cashora.schemas.common import Pagination
from cashora.schemas.support import MessageCreate, TicketDetailOut, TicketListOut, TicketStatusUpdate
from cashora.services.audit_service import log_admin_action
from cashora.services.notification_service import notify_user

"""
API Admin - Support.

Rôle (fonctionnel) :
- Vue de tous les tickets (filtres statut / priorité).
- Réponse admin : le ticket passe `in_progress` (s’il était ouvert) et l’utilisateur est notifié.
- Changement de statut tracé en audit.
"""

router = APIRouter(prefix="/api/admin/support", tags=["admin-support"])


@router.get("", response_model=TicketListOut)
async def list_all_tickets(
    status: Optional[str] = Query(None, pattern=r"^(open|in_progress|resolved|closed)$"),
    priority: Optional[str] = Query(None, pattern=r"^(low|medium|high|urgent)$"),
    page: Page = Depends(page_params),
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    conditions = []
    if status:
        conditions.append(SupportTicket.status == status)
    if priority:
        conditions.append(SupportTicket.priority == priority)

    total = (await db.execute(select(func.count(SupportTicket.id)).where(*conditions))).scalar_one()
    rows = (
        await db.execute(
            select(SupportTicket)
            .where(*conditions)
            .order_by(SupportTicket.updated_at.desc())
            .offset(page.offset)
            .limit(page.limit)
        )
    ).scalars().all()
    return TicketListOut(data=list(rows), pagination=Pagination.build(page.page, page.limit, total))


@router.get("/{ticket_id}", response_model=TicketDetailOut)
async def get_any_ticket(ticket_id: uuid.UUID, admin: Profile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await load_ticket(db, ticket_id)


@router.post("/{ticket_id}/reply", response_model=TicketDetailOut, status_code=201)
async def reply(
    ticket_id: uuid.UUID,
    payload: MessageCreate,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    ticket = await load_ticket(db, ticket_id)
    if ticket.status in ("open", "resolved"):
        ticket.status = "in_progress"
    ticket.assigned_to = ticket.assigned_to or admin.id

    db.add(SupportMessage(ticket_id=ticket.id, sender_id=admin.id, sender_type="admin", message=payload.message.strip()))
    notice = notify_user(
        db,
        ticket.user_id,
        "support_reply",
        "Support Reply",
        f"Support replied to your ticket: {ticket.subject}",
        {"ticket_id": str(ticket.id)},
    )
    await db.commit()
    await publish(request, [notice])
    return await load_ticket(db, ticket.id)


@router.put("/{ticket_id}/status", response_model=TicketDetailOut)
async def update_status(
    ticket_id: uuid.UUID,
    payload: TicketStatusUpdate,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    ticket = await load_ticket(db, ticket_id)
    previous = ticket.status
    ticket.status = payload.status

    log_admin_action(
        db,
        admin.id,
        "UPDATE_TICKET_STATUS",
        user_id=ticket.user_id,
        target_id=ticket.id,
        details={"old": previous, "new": payload.status},
        client=get_client_info(request),
    )
    await db.commit()
    return await load_ticket(db, ticket.id)
