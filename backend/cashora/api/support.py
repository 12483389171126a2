from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cashora.api.deps import Page, RateLimit, page_params, publish, require_user
from cashora.core.errors import bad_request, not_found
from cashora.db.session import get_db
from cashora.models.profile import Profile
from cashora.models.support_message import SupportMessage
from cashora.models.support_ticket import SupportTicket
from cashora.schemas.common import Pagination
from cashora.schemas.support import MessageCreate, SupportMessageOut, TicketCreate, TicketDetailOut, TicketListOut
from cashora.services.notification_service import notify_admins

"""
API Support (côté utilisateur).

Rôle (fonctionnel) :
- Ouvrir un ticket (avec message initial), lister ses tickets, lire le fil de messages.
- Répondre sur un ticket : interdit si fermé, rouvre un ticket résolu.
"""

router = APIRouter(prefix="/api/user/support/tickets", tags=["support"])


async def load_ticket(db: AsyncSession, ticket_id: uuid.UUID, owner_id: Optional[uuid.UUID] = None) -> SupportTicket:
    """Ticket + messages ; `owner_id` restreint aux tickets du propriétaire (404 sinon)."""
    stmt = (
        select(SupportTicket)
        .where(SupportTicket.id == ticket_id)
        .options(selectinload(SupportTicket.messages))
        .execution_options(populate_existing=True)
    )
    if owner_id is not None:
        stmt = stmt.where(SupportTicket.user_id == owner_id)
    ticket = (await db.execute(stmt)).scalars().first()
    if ticket is None:
        raise not_found("Ticket not found")
    return ticket


@router.get("", response_model=TicketListOut)
async def list_tickets(
    status: Optional[str] = Query(None, pattern=r"^(open|in_progress|resolved|closed)$"),
    page: Page = Depends(page_params),
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    conditions = [SupportTicket.user_id == user.id]
    if status:
        conditions.append(SupportTicket.status == status)

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


@router.post("", response_model=TicketDetailOut, status_code=201, dependencies=[Depends(RateLimit(10))])
async def create_ticket(
    payload: TicketCreate,
    request: Request,
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    ticket = SupportTicket(
        user_id=user.id,
        subject=payload.subject.strip(),
        description=payload.description.strip(),
        priority=payload.priority,
        status="open",
    )
    db.add(ticket)
    await db.flush()

    db.add(SupportMessage(ticket_id=ticket.id, sender_id=user.id, sender_type="user", message=ticket.description))
    notice = notify_admins(
        db,
        "support_ticket",
        "New Support Ticket",
        f"{user.full_name}: {ticket.subject}",
        {"ticket_id": str(ticket.id), "priority": ticket.priority},
    )
    await db.commit()
    await publish(request, [notice])

    return await load_ticket(db, ticket.id)


@router.get("/{ticket_id}", response_model=TicketDetailOut)
async def get_ticket(
    ticket_id: uuid.UUID,
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return await load_ticket(db, ticket_id, owner_id=user.id)


@router.post("/{ticket_id}/messages", response_model=SupportMessageOut, status_code=201)
async def add_message(
    ticket_id: uuid.UUID,
    payload: MessageCreate,
    request: Request,
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    ticket = await load_ticket(db, ticket_id, owner_id=user.id)
    if ticket.status == "closed":
        raise bad_request("Ticket is closed", code="TICKET_CLOSED")
    if ticket.status == "resolved":
        ticket.status = "open"

    message = SupportMessage(ticket_id=ticket.id, sender_id=user.id, sender_type="user", message=payload.message.strip())
    db.add(message)
    notice = notify_admins(
        db,
        "support_message",
        "New Support Message",
        f"{user.full_name} replied on: {ticket.subject}",
        {"ticket_id": str(ticket.id)},
    )
    await db.commit()
    await publish(request, [notice])
    return message
