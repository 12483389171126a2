"""
cashora.models

Package ORM (SQLAlchemy) : définition des entités persistées en base.

Rôle (fonctionnel) :
- Centralise les modèles (imports simplifiés : from cashora.models import Profile).
- Garantit que toutes les tables sont enregistrées dans Base.metadata (Alembic, tests).
"""

from cashora.models.profile import Profile
from cashora.models.transaction import Transaction
from cashora.models.deposit_request import DepositRequest
from cashora.models.withdrawal_request import WithdrawalRequest
from cashora.models.send_request import SendRequest
from cashora.models.bank import Bank
from cashora.models.bank_account import BankAccount
from cashora.models.notification import Notification
from cashora.models.notification_preference import NotificationPreference
from cashora.models.support_ticket import SupportTicket
from cashora.models.support_message import SupportMessage
from cashora.models.admin_audit_log import AdminAuditLog
from cashora.models.activity_log import ActivityLog
from cashora.models.security_log import SecurityLog
from cashora.models.login_attempt import LoginAttempt
from cashora.models.device_history import DeviceHistory
from cashora.models.platform_settings import PlatformSettings
from cashora.models.security_question import SecurityQuestion
from cashora.models.profile_verification import ProfileVerification
from cashora.models.email_template import EmailTemplate

__all__ = [
    "Profile",
    "Transaction",
    "DepositRequest",
    "WithdrawalRequest",
    "SendRequest",
    "Bank",
    "BankAccount",
    "Notification",
    "NotificationPreference",
    "SupportTicket",
    "SupportMessage",
    "AdminAuditLog",
    "ActivityLog",
    "SecurityLog",
    "LoginAttempt",
    "DeviceHistory",
    "PlatformSettings",
    "SecurityQuestion",
    "ProfileVerification",
    "EmailTemplate",
]
