from datetime import datetime, timezone

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from cashora.core.security import decode_token

"""
API Realtime (WebSocket).

Rôle (fonctionnel) :
- Canal WebSocket authentifié (JWT en query string) pour pousser les notifications in-app.
- Une connexion est rattachée à son utilisateur ; les sessions admin reçoivent aussi
  la boîte partagée (nouvelles demandes, tickets…).

Notes :
- Jeton invalide / expiré : fermeture avec le code 4401.
- Le client peut envoyer "PING" → réponse "PONG".
- Les événements “métier” sont poussés par les routes après commit (cashora.api.deps.publish).
"""

router = APIRouter(tags=["realtime"])

WS_UNAUTHORIZED = 4401


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.websocket("/ws/notifications")
async def ws_notifications(ws: WebSocket, token: str = Query("")):
    # Récupère le WS manager initialisé au démarrage (app.state.ws_manager)
    manager = getattr(ws.app.state, "ws_manager", None)
    if manager is None:
        await ws.close(code=1011)
        return

    claims = decode_token(token) if token else None
    if claims is None:
        await ws.close(code=WS_UNAUTHORIZED)
        return

    user_id = str(claims["sub"])
    await manager.connect(ws, user_id, is_admin=claims.get("role") == "admin")

    # Ack de connexion (utile côté UI pour confirmer la connexion)
    await ws.send_json({"type": "WS_CONNECTED", "user_id": user_id, "ts": _now()})

    try:
        while True:
            msg = await ws.receive_text()
            if msg.strip().upper() == "PING":
                await ws.send_json({"type": "PONG", "ts": _now()})
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(ws, user_id)
