from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional

from fastapi import Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.core.errors import AppHTTPException, ErrorMessages
from cashora.core.rate_limit import client_ip, rate_limiter
from cashora.core.request_id import get_request_id
from cashora.core.security import decode_token, extract_bearer
from cashora.core.settings import settings
from cashora.db.session import get_db
from cashora.models.notification import Notification
from cashora.models.profile import ROLES, Profile
from cashora.schemas.notifications import NotificationOut
from cashora.services.audit_service import ClientInfo
from cashora.services.platform_service import get_platform_settings

"""
Dépendances API.

Rôle (fonctionnel) :
- Centralise les dépendances réutilisables sur les routes :
  - get_current_user : jeton Bearer -> profil (401 / 403 si bloqué)
  - require_user / require_admin : contrôle du rôle
  - require_active : compte validé (obligatoire pour déplacer de l’argent)
  - RateLimit(n) : quota par (IP, route)
  - ensure_not_maintenance : coupe les mouvements d’argent en maintenance (503)
  - get_client_info : IP / user-agent / request_id pour les journaux
- Fournit les helpers transverses des routes : pagination, bornes de dates, push temps réel.
"""

log = logging.getLogger("cashora.api")

BLOCKED_STATUSES = {
    "suspended": "Account is suspended",
    "closed": "Account is closed",
}


def _unauthorized() -> AppHTTPException:
    return AppHTTPException(401, "UNAUTHORIZED", ErrorMessages.UNAUTHORIZED)


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> Profile:
    token = extract_bearer(request)
    if not token:
        raise _unauthorized()

    claims = decode_token(token)
    if claims is None:
        raise _unauthorized()

    try:
        user_id = uuid.UUID(claims["sub"])
    except ValueError:
        raise _unauthorized()

    user = await db.get(Profile, user_id)
    if user is None:
        raise _unauthorized()

    if user.status in BLOCKED_STATUSES:
        raise AppHTTPException(403, "ACCOUNT_BLOCKED", BLOCKED_STATUSES[user.status])

    request.state.user_id = str(user.id)
    return user


async def require_user(user: Profile = Depends(get_current_user)) -> Profile:
    if user.role not in ROLES:
        raise AppHTTPException(403, "FORBIDDEN", ErrorMessages.FORBIDDEN)
    return user


async def require_admin(user: Profile = Depends(get_current_user)) -> Profile:
    if not user.is_admin:
        raise AppHTTPException(403, "ADMIN_REQUIRED", ErrorMessages.ADMIN_REQUIRED)
    return user


async def require_active(user: Profile = Depends(require_user)) -> Profile:
    if user.status != "active":
        raise AppHTTPException(403, "ACCOUNT_NOT_VERIFIED", "Account not verified")
    return user


async def ensure_not_maintenance(db: AsyncSession = Depends(get_db)) -> None:
    platform = await get_platform_settings(db)
    if platform.maintenance_mode:
        raise AppHTTPException(503, "MAINTENANCE", ErrorMessages.MAINTENANCE)


class RateLimit:
    """Dépendance de quota : `dependencies=[Depends(RateLimit(10))]`."""

    def __init__(self, limit: Optional[int] = None) -> None:
        self.limit = limit

    async def __call__(self, request: Request) -> None:
        route = request.scope.get("route")
        scope = getattr(route, "path", None) or request.url.path
        await rate_limiter.check(request, self.limit or settings.RATE_LIMIT_DEFAULT, scope)


def get_client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        request_id=getattr(request.state, "request_id", None) or get_request_id(),
    )


# ---------------------------------------------------------------------------
# Helpers de routes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Page:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> Page:
    return Page(page=page, limit=limit)


def date_bounds(start_date: Optional[date], end_date: Optional[date]) -> tuple[Optional[datetime], Optional[datetime]]:
    """Convertit des dates (incluses) en bornes UTC [début, fin[."""
    start = datetime.combine(start_date, time.min, tzinfo=timezone.utc) if start_date else None
    end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc) if end_date else None
    return start, end


def notification_event(n: Notification) -> dict:
    return {"type": "NOTIFICATION", "data": NotificationOut.model_validate(n).model_dump(mode="json")}


async def publish(request: Request, notifications: Iterable[Notification]) -> None:
    """Pousse des notifications déjà commitées vers les sessions WebSocket concernées."""
    manager = getattr(request.app.state, "ws_manager", None)
    if manager is None:
        return

    for n in notifications:
        event = notification_event(n)
        if n.audience == "admin":
            await manager.send_to_admins(event)
        elif n.user_id is not None:
            await manager.send_to_user(str(n.user_id), event)
