from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.core.errors import not_found
from cashora.models.notification import Notification
from cashora.models.notification_preference import NotificationPreference
from cashora.models.profile import Profile

"""
Notification Service.

Rôle (fonctionnel) :
- Crée les notifications in-app (utilisateur ou boîte admin partagée), sans commit :
  elles rejoignent la transaction de l’opération qui les déclenche.
- Lecture / marquage / suppression pour l’utilisateur courant.
- Préférences : création des valeurs par défaut à la première lecture.

La diffusion temps réel (WebSocket) est faite par la couche API après commit.
"""

DEFAULT_PREFERENCES = {
    "email_notifications": True,
    "push_notifications": True,
    "transaction_alerts": True,
    "security_alerts": True,
    "marketing_emails": False,
}


def notify_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    type_: str,
    title: str,
    content: str,
    data: Optional[Dict[str, Any]] = None,
) -> Notification:
    n = Notification(user_id=user_id, audience="user", type=type_, title=title, content=content, data=data)
    db.add(n)
    return n


def notify_admins(
    db: AsyncSession,
    type_: str,
    title: str,
    content: str,
    data: Optional[Dict[str, Any]] = None,
) -> Notification:
    n = Notification(user_id=None, audience="admin", type=type_, title=title, content=content, data=data)
    db.add(n)
    return n


def _visible_to(user: Profile):
    """Filtre : notifications personnelles (+ boîte admin pour les admins)."""
    if user.is_admin:
        return or_(Notification.user_id == user.id, Notification.audience == "admin")
    return Notification.user_id == user.id


async def list_notifications(
    db: AsyncSession, user: Profile, *, page: int, limit: int, unread_only: bool = False
) -> tuple[list[Notification], int, int]:
    base = select(Notification).where(_visible_to(user))
    if unread_only:
        base = base.where(Notification.read.is_(False))

    total = (await db.execute(select(func.count()).select_from(base.subquery()))).scalar_one()
    unread = (
        await db.execute(
            select(func.count()).select_from(Notification).where(_visible_to(user), Notification.read.is_(False))
        )
    ).scalar_one()

    rows = (
        await db.execute(
            base.order_by(Notification.created_at.desc()).offset((page - 1) * limit).limit(limit)
        )
    ).scalars().all()
    return list(rows), total, unread


async def unread_count(db: AsyncSession, user: Profile) -> int:
    return (
        await db.execute(
            select(func.count()).select_from(Notification).where(_visible_to(user), Notification.read.is_(False))
        )
    ).scalar_one()


async def _get_visible(db: AsyncSession, user: Profile, notification_id: uuid.UUID) -> Notification:
    n = (
        await db.execute(select(Notification).where(Notification.id == notification_id, _visible_to(user)))
    ).scalars().first()
    if n is None:
        raise not_found("Notification not found")
    return n


async def mark_read(db: AsyncSession, user: Profile, notification_id: uuid.UUID) -> Notification:
    n = await _get_visible(db, user, notification_id)
    if not n.read:
        n.read = True
        n.read_at = datetime.now(timezone.utc)
        await db.commit()
    return n


async def mark_all_read(db: AsyncSession, user: Profile) -> int:
    result = await db.execute(
        update(Notification)
        .where(_visible_to(user), Notification.read.is_(False))
        .values(read=True, read_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount or 0


async def delete_notification(db: AsyncSession, user: Profile, notification_id: uuid.UUID) -> None:
    n = await _get_visible(db, user, notification_id)
    await db.execute(delete(Notification).where(Notification.id == n.id))
    await db.commit()


async def get_preferences(db: AsyncSession, user_id: uuid.UUID) -> NotificationPreference:
    """Retourne les préférences, en les créant (valeurs par défaut) si absentes."""
    prefs = await db.get(NotificationPreference, user_id)
    if prefs is None:
        prefs = NotificationPreference(user_id=user_id, **DEFAULT_PREFERENCES)
        db.add(prefs)
        await db.flush()
    return prefs


async def update_preferences(db: AsyncSession, user_id: uuid.UUID, changes: Dict[str, bool]) -> NotificationPreference:
    prefs = await get_preferences(db, user_id)
    for key, value in changes.items():
        setattr(prefs, key, value)
    await db.commit()
    return prefs
