from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import Page, page_params, require_user
from cashora.db.session import get_db
from cashora.models.profile import Profile
from cashora.schemas.common import MessageOut, Pagination
from cashora.schemas.notifications import NotificationListOut, NotificationOut, PreferencesOut, PreferencesUpdate
from cashora.services import notification_service

"""
API Notifications.

Rôle (fonctionnel) :
- Liste paginée (avec compteur de non-lues), lecture unitaire / globale, suppression.
- Préférences de notification (créées avec les valeurs par défaut à la première lecture).

Les admins voient aussi la boîte partagée `audience=admin`.
"""

router = APIRouter(prefix="/api/user/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListOut)
async def list_notifications(
    unread_only: bool = Query(False),
    page: Page = Depends(page_params),
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    rows, total, unread = await notification_service.list_notifications(
        db, user, page=page.page, limit=page.limit, unread_only=unread_only
    )
    return NotificationListOut(
        data=rows,
        unread_count=unread,
        pagination=Pagination.build(page.page, page.limit, total),
    )


@router.patch("/read-all", response_model=MessageOut)
async def read_all(user: Profile = Depends(require_user), db: AsyncSession = Depends(get_db)):
    updated = await notification_service.mark_all_read(db, user)
    return MessageOut(message=f"{updated} notifications marked as read")


@router.get("/preferences", response_model=PreferencesOut)
async def get_preferences(user: Profile = Depends(require_user), db: AsyncSession = Depends(get_db)):
    prefs = await notification_service.get_preferences(db, user.id)
    await db.commit()
    return prefs


@router.put("/preferences", response_model=PreferencesOut)
async def update_preferences(
    payload: PreferencesUpdate,
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    return await notification_service.update_preferences(db, user.id, changes)


@router.put("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: uuid.UUID,
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return await notification_service.mark_read(db, user, notification_id)


@router.delete("/{notification_id}", response_model=MessageOut)
async def delete_notification(
    notification_id: uuid.UUID,
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    await notification_service.delete_notification(db, user, notification_id)
    return MessageOut(message="Notification deleted")
