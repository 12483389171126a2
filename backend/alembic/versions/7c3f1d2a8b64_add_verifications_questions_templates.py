"""Vérification d'identité, questions de sécurité et modèles d'email.

Rôle (fonctionnel) :
- security_questions : questions choisies par l’utilisateur, réponses hachées.
- profile_verifications : dossiers d’identité (pièce recto / verso, selfie) et leur revue admin.
- email_templates : modèles d’email réutilisables côté admin.

Revision ID: 7c3f1d2a8b64
Revises: 5e2a9c41d7b3
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Identifiants Alembic
revision: str = "7c3f1d2a8b64"
down_revision: Union[str, Sequence[str], None] = "5e2a9c41d7b3"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    """Application des changements de schéma."""
    op.create_table(
        "security_questions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("question", sa.String(length=200), nullable=False),
        sa.Column("answer_hash", sa.String(length=255), nullable=False),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_index("ix_security_questions_user_id", "security_questions", ["user_id"])
    op.create_index("ix_security_questions_created_at", "security_questions", ["created_at"])

    op.create_table(
        "profile_verifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("id_type", sa.String(length=30), nullable=False),
        sa.Column("id_number", sa.String(length=50), nullable=False),
        sa.Column("id_front_url", sa.String(length=500), nullable=False),
        sa.Column("id_back_url", sa.String(length=500), nullable=False),
        sa.Column("selfie_url", sa.String(length=500), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("reviewed_by", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("reviewed_at", TS, nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_index("ix_profile_verifications_user_id", "profile_verifications", ["user_id"])
    op.create_index("ix_profile_verifications_status", "profile_verifications", ["status"])
    op.create_index("ix_profile_verifications_created_at", "profile_verifications", ["created_at"])
    op.create_index("ix_profile_verifications_user_status", "profile_verifications", ["user_id", "status"])

    op.create_table(
        "email_templates",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_by", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=False),
    )
    op.create_index("ix_email_templates_created_at", "email_templates", ["created_at"])


def downgrade() -> None:
    """Retour arrière des changements de schéma."""
    for table in ("email_templates", "profile_verifications", "security_questions"):
        op.drop_table(table)
