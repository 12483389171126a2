from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Set

from fastapi import WebSocket

"""
Core Realtime (WebSocket Manager).

Rôle (fonctionnel) :
- Tient le registre des connexions WebSocket actives, indexées par utilisateur.
- Pousse les notifications “temps réel” :
  - send_to_user  : toutes les sessions d’un utilisateur (ex: money_received)
  - send_to_admins : toutes les sessions admin (ex: nouvelle demande de dépôt)

Notes :
- Best-effort : une erreur d’envoi ne casse jamais le flux applicatif.
- Les connexions mortes sont purgées à l’envoi.
"""

logger = logging.getLogger("cashora.realtime")


class ConnectionManager:
    """Registre {user_id: {ws}} + ensemble des user_id admin connectés."""

    def __init__(self) -> None:
        self._connections: Dict[str, Set[WebSocket]] = {}
        self._admins: Set[str] = set()
        self._lock = asyncio.Lock()

    def count(self) -> int:
        return sum(len(conns) for conns in self._connections.values())

    async def connect(self, ws: WebSocket, user_id: str, *, is_admin: bool = False) -> None:
        await ws.accept()
        async with self._lock:
            self._connections.setdefault(user_id, set()).add(ws)
            if is_admin:
                self._admins.add(user_id)
        logger.info("WS connected (%s total)", self.count(), extra={"user_id": user_id})

    async def disconnect(self, ws: WebSocket, user_id: str) -> None:
        async with self._lock:
            conns = self._connections.get(user_id)
            if conns is not None:
                conns.discard(ws)
                if not conns:
                    self._connections.pop(user_id, None)
                    self._admins.discard(user_id)
        logger.info("WS disconnected (%s total)", self.count(), extra={"user_id": user_id})

    async def _send_many(self, targets: list[tuple[str, WebSocket]], payload: Dict[str, Any]) -> None:
        dead: list[tuple[str, WebSocket]] = []
        for user_id, ws in targets:
            try:
                await ws.send_json(payload)
            except Exception:
                dead.append((user_id, ws))

        if dead:
            for user_id, ws in dead:
                await self.disconnect(ws, user_id)
            logger.info("WS purged %s dead conns (%s remaining)", len(dead), self.count())

    async def send_to_user(self, user_id: str, payload: Dict[str, Any]) -> None:
        async with self._lock:
            targets = [(user_id, ws) for ws in self._connections.get(user_id, ())]
        if targets:
            await self._send_many(targets, payload)

    async def send_to_admins(self, payload: Dict[str, Any]) -> None:
        async with self._lock:
            targets = [(uid, ws) for uid in self._admins for ws in self._connections.get(uid, ())]
        if targets:
            await self._send_many(targets, payload)

    async def close_all(self) -> None:
        async with self._lock:
            conns = [ws for group in self._connections.values() for ws in group]
            self._connections.clear()
            self._admins.clear()

        for ws in conns:
            try:
                await ws.close()
            except RuntimeError:
                # Connexion déjà fermée côté client
                continue
