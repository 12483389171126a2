from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cashora.db.base import Base, CreatedAt, UUIDPrimaryKey

"""
Model SecurityQuestion.

Rôle (fonctionnel) :
- Question de sécurité choisie par l’utilisateur, avec la réponse hachée
  (normalisée en minuscules, sans espaces de bord, avant hachage).
- Le jeu complet est remplacé à chaque enregistrement.
"""


class SecurityQuestion(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "security_questions"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    question: Mapped[str] = mapped_column(String(200), nullable=False)
    answer_hash: Mapped[str] = mapped_column(String(255), nullable=False)
