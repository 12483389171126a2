from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from cashora.core.errors import bad_request

"""
Core Validation.

Rôle (fonctionnel) :
- Règles de validation partagées par les schémas (field_validator) et les services.
- Chaque fonction renvoie la valeur normalisée ou lève une erreur 400 (AppHTTPException).

Règles :
- montant : > 0, au plus 2 décimales
- numéro de compte bancaire : chiffres uniquement, 10 à 16
- email : format simple, normalisé en minuscules
- téléphone : 10 à 15 chiffres (après retrait de +, espaces, tirets, parenthèses)
- nom : 2 à 100 caractères (lettres, espaces, tirets, apostrophes)
- description : 500 caractères max
- mot de passe : 8 caractères min, au moins une lettre et un chiffre
"""

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NAME_RE = re.compile(r"^[^\W\d_]+(?:[ '\-][^\W\d_]+)*$", re.UNICODE)
ACCOUNT_RE = re.compile(r"^\d{10,16}$")
PHONE_STRIP_RE = re.compile(r"[\s\-()+]")

MAX_DESCRIPTION = 500
CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Convertit int/float/str en Decimal (float via str pour éviter 0.1 -> 0.1000000000000000055)."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise bad_request("Invalid amount", code="INVALID_AMOUNT")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            raise bad_request("Invalid amount", code="INVALID_AMOUNT")
    raise bad_request("Invalid amount", code="INVALID_AMOUNT")


def validate_amount(value: Any) -> Decimal:
    amount = to_decimal(value)
    if not amount.is_finite():
        raise bad_request("Invalid amount", code="INVALID_AMOUNT")
    if amount <= 0:
        raise bad_request("Amount must be greater than 0", code="INVALID_AMOUNT")
    if amount != amount.quantize(CENT):
        raise bad_request("Amount cannot have more than 2 decimal places", code="INVALID_AMOUNT")
    return amount.quantize(CENT)


def validate_account_number(value: str) -> str:
    cleaned = (value or "").strip()
    if not ACCOUNT_RE.match(cleaned):
        raise bad_request("Invalid bank account number", code="INVALID_ACCOUNT_NUMBER")
    return cleaned


def validate_email(value: str) -> str:
    cleaned = (value or "").strip()
    if not EMAIL_RE.match(cleaned):
        raise bad_request("Invalid email address", code="INVALID_EMAIL")
    return cleaned.lower()


def validate_phone(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    digits = PHONE_STRIP_RE.sub("", value.strip())
    if not digits.isdigit() or not (10 <= len(digits) <= 15):
        raise bad_request("Invalid phone number", code="INVALID_PHONE")
    return value.strip()


def validate_name(value: str) -> str:
    cleaned = " ".join((value or "").split())
    if not (2 <= len(cleaned) <= 100) or not NAME_RE.match(cleaned):
        raise bad_request("Invalid name", code="INVALID_NAME")
    return cleaned


def validate_description(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    if len(cleaned) > MAX_DESCRIPTION:
        raise bad_request("Description is too long", code="INVALID_DESCRIPTION")
    return cleaned or None


def validate_password(value: str) -> str:
    if (
        not value
        or len(value) < 8
        or not any(c.isalpha() for c in value)
        or not any(c.isdigit() for c in value)
    ):
        raise bad_request(
            "Password must be at least 8 characters and contain a letter and a digit",
            code="WEAK_PASSWORD",
        )
    return value
