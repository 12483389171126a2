from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel

"""
Schemas communs.

- Pagination : métadonnées renvoyées par toutes les listes (page, limit, total, total_pages).
- coerce_decimal : normalisation des montants entrants (int/float/str -> Decimal),
  la validation métier (> 0, 2 décimales, bornes) reste dans cashora.core.validation.
"""


def coerce_decimal(v: Any) -> Any:
    """Normalise un montant vers Decimal (les clients envoient souvent int/float)."""
    if isinstance(v, Decimal) or isinstance(v, bool):
        return v
    if isinstance(v, int):
        return Decimal(v)
    if isinstance(v, float):
        return Decimal(str(v))
    if isinstance(v, str):
        s = v.strip()
        if not s:
            return v
        try:
            return Decimal(s)
        except InvalidOperation:
            return v
    return v


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit) if limit else 0)


class MessageOut(BaseModel):
    message: str
