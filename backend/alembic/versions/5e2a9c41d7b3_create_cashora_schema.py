"""Création du schéma Cashora.

Rôle (fonctionnel) :
- Crée l’ensemble des tables : comptes (profiles), ledger (transactions), demandes
  (dépôts / retraits / envois), banques et comptes bancaires, notifications, support,
  journaux (audit admin, activité, sécurité, tentatives de connexion, appareils)
  et paramètres plateforme (ligne unique).
- Pose la contrainte balance >= 0 au niveau base.

Revision ID: 5e2a9c41d7b3
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Identifiants Alembic
revision: str = "5e2a9c41d7b3"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(14, 2)
TS = sa.DateTime(timezone=True)


def _id() -> sa.Column:
    return sa.Column("id", sa.Uuid(), primary_key=True)


def _created_at() -> sa.Column:
    return sa.Column("created_at", TS, nullable=False)


def _fk(name: str, target: str, ondelete: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.Uuid(), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    """Application des changements de schéma."""
    op.create_table(
        "profiles",
        _id(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=100), nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("avatar_url", sa.String(length=500), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("balance", MONEY, nullable=False),
        sa.Column("daily_limit", MONEY, nullable=False),
        sa.Column("monthly_limit", MONEY, nullable=False),
        sa.Column("send_limit", MONEY, nullable=False),
        sa.Column("withdraw_limit", MONEY, nullable=False),
        sa.Column("verification_level", sa.Integer(), nullable=False),
        sa.Column("verified_at", TS, nullable=True),
        _fk("verified_by", "profiles.id", "SET NULL"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("two_factor_secret", sa.String(length=64), nullable=True),
        sa.Column("two_factor_enabled", sa.Boolean(), nullable=False),
        sa.Column("last_login_at", TS, nullable=True),
        sa.Column("last_login_ip", sa.String(length=64), nullable=True),
        sa.Column("last_login_device", sa.String(length=255), nullable=True),
        _created_at(),
        sa.Column("updated_at", TS, nullable=False),
        sa.CheckConstraint("balance >= 0", name="ck_profiles_balance_non_negative"),
    )
    op.create_index("ix_profiles_email", "profiles", ["email"], unique=True)
    op.create_index("ix_profiles_role", "profiles", ["role"])
    op.create_index("ix_profiles_status", "profiles", ["status"])
    op.create_index("ix_profiles_created_at", "profiles", ["created_at"])

    op.create_table(
        "banks",
        _id(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False, unique=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("logo_url", sa.String(length=500), nullable=True),
        _created_at(),
        sa.Column("updated_at", TS, nullable=False),
    )
    op.create_index("ix_banks_status", "banks", ["status"])
    op.create_index("ix_banks_created_at", "banks", ["created_at"])

    op.create_table(
        "transactions",
        _id(),
        sa.Column("type", sa.String(length=30), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        _fk("sender_id", "profiles.id", "SET NULL"),
        _fk("recipient_id", "profiles.id", "SET NULL"),
        sa.Column("reference", sa.String(length=32), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        _fk("processed_by", "profiles.id", "SET NULL"),
        sa.Column("processed_at", TS, nullable=True),
        _created_at(),
    )
    op.create_index("ix_transactions_type", "transactions", ["type"])
    op.create_index("ix_transactions_status", "transactions", ["status"])
    op.create_index("ix_transactions_created_at", "transactions", ["created_at"])
    op.create_index("ix_transactions_sender_date", "transactions", ["sender_id", "created_at"])
    op.create_index("ix_transactions_recipient_date", "transactions", ["recipient_id", "created_at"])

    op.create_table(
        "bank_accounts",
        _id(),
        _fk("user_id", "profiles.id", "CASCADE", nullable=False),
        _fk("bank_id", "banks.id", "RESTRICT", nullable=False),
        sa.Column("account_number", sa.String(length=16), nullable=False),
        sa.Column("account_name", sa.String(length=100), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("verified_at", TS, nullable=True),
        _created_at(),
        sa.UniqueConstraint("user_id", "bank_id", "account_number", name="uq_bank_accounts_user_bank_number"),
    )
    op.create_index("ix_bank_accounts_user_id", "bank_accounts", ["user_id"])
    op.create_index("ix_bank_accounts_bank_id", "bank_accounts", ["bank_id"])
    op.create_index("ix_bank_accounts_created_at", "bank_accounts", ["created_at"])

    op.create_table(
        "deposit_requests",
        _id(),
        _fk("user_id", "profiles.id", "CASCADE", nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("depositor_name", sa.String(length=100), nullable=False),
        sa.Column("reference", sa.String(length=32), nullable=False, unique=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        _fk("transaction_id", "transactions.id", "SET NULL"),
        _fk("processed_by", "profiles.id", "SET NULL"),
        sa.Column("processed_at", TS, nullable=True),
        _created_at(),
    )
    op.create_index("ix_deposit_requests_user_id", "deposit_requests", ["user_id"])
    op.create_index("ix_deposit_requests_status", "deposit_requests", ["status"])
    op.create_index("ix_deposit_requests_created_at", "deposit_requests", ["created_at"])
    op.create_index("ix_deposit_requests_status_date", "deposit_requests", ["status", "created_at"])

    op.create_table(
        "withdrawal_requests",
        _id(),
        _fk("user_id", "profiles.id", "CASCADE", nullable=False),
        _fk("bank_account_id", "bank_accounts.id", "SET NULL"),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("reference", sa.String(length=32), nullable=False, unique=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        _fk("transaction_id", "transactions.id", "SET NULL"),
        _fk("processed_by", "profiles.id", "SET NULL"),
        sa.Column("processed_at", TS, nullable=True),
        _created_at(),
    )
    op.create_index("ix_withdrawal_requests_user_id", "withdrawal_requests", ["user_id"])
    op.create_index("ix_withdrawal_requests_bank_account_id", "withdrawal_requests", ["bank_account_id"])
    op.create_index("ix_withdrawal_requests_status", "withdrawal_requests", ["status"])
    op.create_index("ix_withdrawal_requests_created_at", "withdrawal_requests", ["created_at"])
    op.create_index("ix_withdrawal_requests_status_date", "withdrawal_requests", ["status", "created_at"])

    op.create_table(
        "send_requests",
        _id(),
        _fk("sender_id", "profiles.id", "CASCADE", nullable=False),
        _fk("recipient_id", "profiles.id", "CASCADE", nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        _fk("transaction_id", "transactions.id", "SET NULL"),
        _fk("processed_by", "profiles.id", "SET NULL"),
        sa.Column("processed_at", TS, nullable=True),
        _created_at(),
    )
    op.create_index("ix_send_requests_sender_id", "send_requests", ["sender_id"])
    op.create_index("ix_send_requests_recipient_id", "send_requests", ["recipient_id"])
    op.create_index("ix_send_requests_status", "send_requests", ["status"])
    op.create_index("ix_send_requests_created_at", "send_requests", ["created_at"])

    op.create_table(
        "notifications",
        _id(),
        _fk("user_id", "profiles.id", "CASCADE"),
        sa.Column("audience", sa.String(length=10), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False),
        sa.Column("read_at", TS, nullable=True),
        _created_at(),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"])

    op.create_table(
        "notification_preferences",
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("email_notifications", sa.Boolean(), nullable=False),
        sa.Column("push_notifications", sa.Boolean(), nullable=False),
        sa.Column("transaction_alerts", sa.Boolean(), nullable=False),
        sa.Column("security_alerts", sa.Boolean(), nullable=False),
        sa.Column("marketing_emails", sa.Boolean(), nullable=False),
        sa.Column("updated_at", TS, nullable=False),
    )

    op.create_table(
        "support_tickets",
        _id(),
        _fk("user_id", "profiles.id", "CASCADE", nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(length=10), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        _fk("assigned_to", "profiles.id", "SET NULL"),
        _created_at(),
        sa.Column("updated_at", TS, nullable=False),
    )
    op.create_index("ix_support_tickets_user_id", "support_tickets", ["user_id"])
    op.create_index("ix_support_tickets_status", "support_tickets", ["status"])
    op.create_index("ix_support_tickets_created_at", "support_tickets", ["created_at"])
    op.create_index("ix_support_tickets_status_priority", "support_tickets", ["status", "priority"])

    op.create_table(
        "support_messages",
        _id(),
        _fk("ticket_id", "support_tickets.id", "CASCADE", nullable=False),
        _fk("sender_id", "profiles.id", "SET NULL"),
        sa.Column("sender_type", sa.String(length=10), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_support_messages_ticket_id", "support_messages", ["ticket_id"])
    op.create_index("ix_support_messages_created_at", "support_messages", ["created_at"])

    op.create_table(
        "admin_audit_logs",
        _id(),
        _fk("admin_id", "profiles.id", "SET NULL"),
        _fk("user_id", "profiles.id", "SET NULL"),
        sa.Column("target_id", sa.String(length=64), nullable=True),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=500), nullable=True),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        _created_at(),
    )
    op.create_index("ix_admin_audit_logs_admin_id", "admin_audit_logs", ["admin_id"])
    op.create_index("ix_admin_audit_logs_user_id", "admin_audit_logs", ["user_id"])
    op.create_index("ix_admin_audit_logs_action", "admin_audit_logs", ["action"])
    op.create_index("ix_admin_audit_logs_created_at", "admin_audit_logs", ["created_at"])
    op.create_index("ix_admin_audit_logs_action_date", "admin_audit_logs", ["action", "created_at"])

    op.create_table(
        "activity_logs",
        _id(),
        _fk("user_id", "profiles.id", "CASCADE"),
        sa.Column("actor_type", sa.String(length=10), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        _created_at(),
    )
    op.create_index("ix_activity_logs_user_id", "activity_logs", ["user_id"])
    op.create_index("ix_activity_logs_type", "activity_logs", ["type"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])

    op.create_table(
        "security_logs",
        _id(),
        _fk("user_id", "profiles.id", "CASCADE"),
        sa.Column("event", sa.String(length=50), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=500), nullable=True),
        _created_at(),
    )
    op.create_index("ix_security_logs_user_id", "security_logs", ["user_id"])
    op.create_index("ix_security_logs_event", "security_logs", ["event"])
    op.create_index("ix_security_logs_created_at", "security_logs", ["created_at"])

    op.create_table(
        "login_attempts",
        _id(),
        sa.Column("email", sa.String(length=255), nullable=False),
        _fk("user_id", "profiles.id", "CASCADE"),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("failure_reason", sa.String(length=50), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=500), nullable=True),
        sa.Column("device", sa.JSON(), nullable=True),
        sa.Column("location", sa.JSON(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_login_attempts_created_at", "login_attempts", ["created_at"])
    op.create_index("ix_login_attempts_email_date", "login_attempts", ["email", "created_at"])

    op.create_table(
        "device_history",
        _id(),
        _fk("user_id", "profiles.id", "CASCADE", nullable=False),
        sa.Column("device_key", sa.String(length=64), nullable=False),
        sa.Column("browser", sa.String(length=100), nullable=False),
        sa.Column("os", sa.String(length=100), nullable=False),
        sa.Column("device_type", sa.String(length=20), nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("location", sa.JSON(), nullable=True),
        sa.Column("login_count", sa.Integer(), nullable=False),
        sa.Column("first_seen_at", TS, nullable=False),
        sa.Column("last_seen_at", TS, nullable=False),
        sa.UniqueConstraint("user_id", "device_key", name="uq_device_history_user_device"),
    )
    op.create_index("ix_device_history_user_id", "device_history", ["user_id"])

    op.create_table(
        "platform_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sending_min", MONEY, nullable=False),
        sa.Column("sending_max", MONEY, nullable=False),
        sa.Column("withdrawal_min", MONEY, nullable=False),
        sa.Column("withdrawal_max", MONEY, nullable=False),
        sa.Column("deposit_min", MONEY, nullable=False),
        sa.Column("deposit_max", MONEY, nullable=False),
        sa.Column("default_daily_limit", MONEY, nullable=False),
        sa.Column("default_monthly_limit", MONEY, nullable=False),
        sa.Column("default_send_limit", MONEY, nullable=False),
        sa.Column("default_withdraw_limit", MONEY, nullable=False),
        sa.Column("maintenance_mode", sa.Boolean(), nullable=False),
        sa.Column("updated_at", TS, nullable=False),
        _fk("updated_by", "profiles.id", "SET NULL"),
    )


def downgrade() -> None:
    """Retour arrière des changements de schéma."""
    for table in (
        "platform_settings",
        "device_history",
        "login_attempts",
        "security_logs",
        "activity_logs",
        "admin_audit_logs",
        "support_messages",
        "support_tickets",
        "notification_preferences",
        "notifications",
        "send_requests",
        "withdrawal_requests",
        "deposit_requests",
        "bank_accounts",
        "transactions",
        "banks",
        "profiles",
    ):
        op.drop_table(table)
