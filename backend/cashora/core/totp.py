from __future__ import annotations

import base64
import io
from dataclasses import dataclass

import pyotp
import qrcode
import qrcode.image.svg

from cashora.core.settings import settings

"""
Core TOTP (2FA).

Rôle (fonctionnel) :
- Génère un secret TOTP (base32) et l’URI otpauth:// associée (issuer = TOTP_ISSUER).
- Produit un QR code SVG (data URL) prêt à afficher dans l’écran d’activation.
- Vérifie un code à 6 chiffres avec une tolérance d’une période (±30s).
"""


@dataclass(frozen=True)
class TotpSetup:
    secret: str
    otpauth_url: str
    qr_code: str  # data:image/svg+xml;base64,...


def generate_secret() -> str:
    return pyotp.random_base32()


def provisioning_uri(secret: str, account_name: str) -> str:
    return pyotp.TOTP(secret).provisioning_uri(name=account_name, issuer_name=settings.TOTP_ISSUER)


def qr_data_url(data: str) -> str:
    """Encode `data` en QR code SVG puis en data URL base64."""
    img = qrcode.make(data, image_factory=qrcode.image.svg.SvgPathImage)
    buf = io.BytesIO()
    img.save(buf)
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


def new_setup(account_name: str) -> TotpSetup:
    secret = generate_secret()
    uri = provisioning_uri(secret, account_name)
    return TotpSetup(secret=secret, otpauth_url=uri, qr_code=qr_data_url(uri))


def verify_token(secret: str | None, token: str | None) -> bool:
    if not secret or not token:
        return False
    token = token.strip().replace(" ", "")
    if not token.isdigit():
        return False
    return pyotp.TOTP(secret).verify(token, valid_window=1)
