from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from cashora.core.errors import bad_request
from cashora.core.validation import CENT
from cashora.models.platform_settings import SINGLETON_ID, PlatformSettings

"""
Platform Service.

Paramètres globaux (ligne unique) : lecture avec création paresseuse des valeurs par défaut,
mise à jour partielle avec contrôle de cohérence min <= max.
"""

BOUNDS = (
    ("sending_min", "sending_max"),
    ("withdrawal_min", "withdrawal_max"),
    ("deposit_min", "deposit_max"),
)


async def get_platform_settings(db: AsyncSession) -> PlatformSettings:
    ps = await db.get(PlatformSettings, SINGLETON_ID)
    if ps is None:
        ps = PlatformSettings(id=SINGLETON_ID)
        db.add(ps)
        await db.flush()
    return ps


async def update_platform_settings(
    db: AsyncSession, admin_id: uuid.UUID, changes: Dict[str, Any]
) -> tuple[PlatformSettings, Dict[str, Any]]:
    """Applique `changes` (sans commit). Retourne (paramètres, anciennes valeurs modifiées)."""
    ps = await get_platform_settings(db)

    for low, high in BOUNDS:
        new_low = changes.get(low, getattr(ps, low))
        new_high = changes.get(high, getattr(ps, high))
        if new_low > new_high:
            raise bad_request("Invalid limit values", code="INVALID_LIMITS", details={"field": low})

    previous: Dict[str, Any] = {}
    for key, value in changes.items():
        if isinstance(value, Decimal):
            value = value.quantize(CENT)
        previous[key] = getattr(ps, key)
        setattr(ps, key, value)
    ps.updated_by = admin_id
    return ps, previous
