from __future__ import annotations

import uuid
from contextvars import ContextVar

"""
Core Request ID.

Rôle (fonctionnel) :
- Stocke l’identifiant de corrélation de la requête courante dans un ContextVar.
- Alimente : les logs JSON, les payloads d’erreur, les entrées d’audit admin.

Sources :
- header entrant X-Request-Id (tronqué à 64 caractères),
- sinon UUID généré.
"""

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

MAX_LEN = 64


def set_request_id(rid: str | None) -> None:
    _request_id.set(rid)


def get_request_id() -> str | None:
    return _request_id.get()


def ensure_request_id(incoming: str | None = None) -> str:
    """Réutilise l’id entrant (nettoyé) ou en génère un, puis l’attache au contexte."""
    rid = (incoming or "").strip()[:MAX_LEN] or str(uuid.uuid4())
    set_request_id(rid)
    return rid
