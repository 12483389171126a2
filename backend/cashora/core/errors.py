from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException

"""
Core Errors.

Rôle (fonctionnel) :
- Standardise le format des erreurs renvoyées par l’API (payload homogène).
- Fournit une exception applicative (AppHTTPException) levée depuis les routes ET les services.
- Regroupe les messages d’erreur récurrents (ErrorMessages) pour garder des textes stables côté client.

Convention de réponse (exemple) :
{
  "error": "Insufficient balance",
  "code": "INSUFFICIENT_FUNDS",
  "status": 400,
  "request_id": "...",
  "timestamp": "...",
  "details": {...}
}

Le champ `error` est toujours une chaîne lisible (le front l’affiche tel quel) ;
les autres champs servent au debug et à la corrélation des logs.
"""


class ErrorMessages:
    """Messages d’erreur partagés (réutilisés par deps, services et handlers)."""
    UNAUTHORIZED = "Unauthorized"
    FORBIDDEN = "Forbidden"
    ADMIN_REQUIRED = "Forbidden - Admin access required"
    INVALID_INPUT = "Invalid input"
    RATE_LIMIT = "Too many requests. Please try again later"
    INSUFFICIENT_FUNDS = "Insufficient balance"
    NOT_FOUND = "Not found"
    INTERNAL = "Internal server error"
    MAINTENANCE = "Platform is under maintenance"


def now_iso() -> str:
    """Timestamp ISO-8601 en UTC (utilisé dans toutes les erreurs)."""
    return datetime.now(timezone.utc).isoformat()


def error_payload(
    *,
    code: str,
    message: str,
    status: int,
    request_id: str,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    """Construit un payload d’erreur homogène pour l’API."""
    payload: Dict[str, Any] = {
        "error": message,
        "code": code,
        "status": status,
        "request_id": request_id,
        "timestamp": now_iso(),
    }
    if details is not None:
        payload["details"] = details
    return payload


class AppHTTPException(HTTPException):
    """
    Exception applicative standardisée.

    Usage :
    - Lever une erreur “métier” avec un code stable et un message explicite.
    - Laisser la couche API/middlewares produire une réponse cohérente.

    Exemple :
        raise AppHTTPException(404, "NOT_FOUND", "Recipient not found")
    """

    def __init__(self, status_code: int, code: str, message: str, details: Any = None):
        super().__init__(status_code=status_code, detail={"code": code, "message": message, "details": details})

    @property
    def message(self) -> str:
        return str(self.detail.get("message", ""))


def bad_request(message: str, code: str = "BAD_REQUEST", details: Any = None) -> AppHTTPException:
    """Raccourci 400 (validation métier)."""
    return AppHTTPException(400, code, message, details)


def not_found(message: str = ErrorMessages.NOT_FOUND) -> AppHTTPException:
    """Raccourci 404."""
    return AppHTTPException(404, "NOT_FOUND", message)
