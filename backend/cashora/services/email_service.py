from __future__ import annotations

import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from cashora.core.settings import settings
from cashora.models.profile import Profile
from cashora.services.notification_service import get_preferences

"""
Email Service (stub).

Rôle (fonctionnel) :
- Rend un email (sujet + corps) à partir d’un template nommé et de variables.
- Respecte les préférences : email_notifications (transactionnel), security_alerts (sécurité).
- “Envoi” = log JSON `email_sent` + conservation dans une outbox mémoire bornée (inspection / tests).

Aucun fournisseur SMTP n’est branché : l’intégration réelle se limite à remplacer `_deliver`.
"""

log = logging.getLogger("cashora.email")

TEMPLATES: Dict[str, tuple[str, str]] = {
    "DEPOSIT_APPROVED": (
        "Deposit Request Approved",
        "Hello {name}, your deposit of {amount} {currency} (ref {reference}) has been approved.",
    ),
    "DEPOSIT_REJECTED": (
        "Deposit Request Rejected",
        "Hello {name}, your deposit of {amount} {currency} (ref {reference}) was rejected. Reason: {reason}",
    ),
    "WITHDRAWAL_APPROVED": (
        "Withdrawal Request Approved",
        "Hello {name}, your withdrawal of {amount} {currency} to {bank_name} ({account}) has been approved.",
    ),
    "WITHDRAWAL_REJECTED": (
        "Withdrawal Request Rejected",
        "Hello {name}, your withdrawal of {amount} {currency} was rejected. Reason: {reason}",
    ),
    "NEW_LOGIN": (
        "New login to your Cashora account",
        "Hello {name}, a new login from {browser} on {os} ({ip}) was detected.",
    ),
    "SUSPICIOUS_LOGIN": (
        "Suspicious login detected",
        "Hello {name}, a login from an unusual location ({location}, {ip}) was detected. "
        "If this was not you, reset your password immediately.",
    ),
    "PASSWORD_RESET": (
        "Reset your Cashora password",
        "Hello {name}, use this token to reset your password: {token}",
    ),
    "ADMIN_MESSAGE": ("{subject}", "{body}"),
}

SECURITY_TEMPLATES = {"NEW_LOGIN", "SUSPICIOUS_LOGIN"}
# Emails envoyés quelles que soient les préférences
MANDATORY_TEMPLATES = {"PASSWORD_RESET"}


@dataclass
class EmailMessage:
    to: str
    subject: str
    body: str
    template: str
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class EmailService:
    def __init__(self, outbox_size: int = 200) -> None:
        self.outbox: Deque[EmailMessage] = deque(maxlen=outbox_size)

    def render(self, template: str, variables: Dict[str, Any]) -> tuple[str, str]:
        subject_tpl, body_tpl = TEMPLATES[template]
        values = {"currency": settings.CURRENCY, **variables}
        return subject_tpl.format(**values), body_tpl.format(**values)

    def _deliver(self, message: EmailMessage) -> None:
        self.outbox.append(message)
        log.info("email_sent", extra={"template": message.template, "recipient": message.to})

    async def _allowed(self, db: AsyncSession, user_id: uuid.UUID, template: str) -> bool:
        if template in MANDATORY_TEMPLATES:
            return True
        prefs = await get_preferences(db, user_id)
        if template in SECURITY_TEMPLATES:
            return prefs.security_alerts
        return prefs.email_notifications

    async def send_template(
        self,
        db: AsyncSession,
        user: Profile,
        template: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Optional[EmailMessage]:
        """Rend puis envoie un template à `user` (None si bloqué par ses préférences)."""
        if not await self._allowed(db, user.id, template):
            log.info("email_skipped", extra={"template": template, "user_id": str(user.id)})
            return None

        subject, body = self.render(template, {"name": user.full_name, **(variables or {})})
        message = EmailMessage(to=user.email, subject=subject, body=body, template=template)
        self._deliver(message)
        return message


email_service = EmailService()
