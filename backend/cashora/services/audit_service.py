from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from cashora.models.activity_log import ActivityLog
from cashora.models.admin_audit_log import AdminAuditLog
from cashora.models.security_log import SecurityLog

"""
Audit Service.

Rôle (fonctionnel) :
- Écrit les trois journaux de traçabilité :
  - admin_audit_logs : actions administratives (conformité)
  - activity_logs    : activité fonctionnelle (fil du profil)
  - security_logs    : événements de sécurité (2FA, login, mot de passe)
- N’effectue jamais de commit : l’entrée rejoint la transaction de l’action tracée,
  elle est donc persistée si et seulement si l’action l’est.

Chaque écriture est doublée d’un log JSON (logger "cashora.audit").
"""

log = logging.getLogger("cashora.audit")


@dataclass(frozen=True)
class ClientInfo:
    """Contexte de la requête HTTP (IP, user-agent, request_id)."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None


NO_CLIENT = ClientInfo()


def log_admin_action(
    db: AsyncSession,
    admin_id: uuid.UUID,
    action: str,
    *,
    user_id: Optional[uuid.UUID] = None,
    target_id: Optional[Any] = None,
    details: Optional[Dict[str, Any]] = None,
    client: ClientInfo = NO_CLIENT,
) -> AdminAuditLog:
    entry = AdminAuditLog(
        admin_id=admin_id,
        user_id=user_id,
        target_id=str(target_id) if target_id is not None else None,
        action=action,
        details=details,
        ip_address=client.ip_address,
        user_agent=(client.user_agent or "")[:500] or None,
        request_id=client.request_id,
    )
    db.add(entry)
    log.info(
        "admin_action",
        extra={"admin_id": str(admin_id), "action": action, "user_id": str(user_id) if user_id else None,
               "entity_id": entry.target_id},
    )
    return entry


def log_activity(
    db: AsyncSession,
    user_id: Optional[uuid.UUID],
    type_: str,
    *,
    description: Optional[str] = None,
    data: Optional[Dict[str, Any]] = None,
    actor_type: str = "user",
    client: ClientInfo = NO_CLIENT,
) -> ActivityLog:
    entry = ActivityLog(
        user_id=user_id,
        actor_type=actor_type,
        type=type_,
        description=description,
        data=data,
        ip_address=client.ip_address,
    )
    db.add(entry)
    return entry


def log_security_event(
    db: AsyncSession,
    user_id: Optional[uuid.UUID],
    event: str,
    *,
    data: Optional[Dict[str, Any]] = None,
    client: ClientInfo = NO_CLIENT,
) -> SecurityLog:
    entry = SecurityLog(
        user_id=user_id,
        event=event,
        data=data,
        ip_address=client.ip_address,
        user_agent=(client.user_agent or "")[:500] or None,
    )
    db.add(entry)
    log.info("security_event", extra={"event": event, "user_id": str(user_id) if user_id else None})
    return entry
