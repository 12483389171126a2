from __future__ import annotations

import hashlib
import ipaddress
import logging
import math
from dataclasses import asdict, dataclass
from functools import lru_cache
from typing import Any, Dict, Optional

import geoip2.database
import geoip2.errors
from user_agents import parse as parse_ua

from cashora.core.settings import settings

"""
Core Device (user-agent + géolocalisation).

Rôle (fonctionnel) :
- Parse le user-agent d’une connexion (navigateur, OS, type d’appareil) via `user-agents`.
- Géolocalise une IP publique via une base MaxMind (geoip2) si GEOIP_DB_PATH est configurée.
- Calcule la distance haversine entre deux positions (détection de connexion suspecte).

Notes :
- IP privée / loopback / invalide : localisation vide (pas d’appel à la base).
- Sans base GeoIP configurée : localisation vide, la détection “suspecte” est alors inactive.
"""

log = logging.getLogger("cashora.device")

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class DeviceInfo:
    browser: str
    os: str
    device_type: str  # desktop | mobile | tablet | bot | other

    @property
    def key(self) -> str:
        """Empreinte stable de l’appareil (historique des appareils)."""
        raw = f"{self.browser}|{self.os}|{self.device_type}".lower()
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class LocationInfo:
    country: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LocationInfo":
        if not data:
            return cls()
        return cls(
            country=data.get("country"),
            city=data.get("city"),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
        )


def parse_device(user_agent: Optional[str]) -> DeviceInfo:
    if not user_agent:
        return DeviceInfo(browser="Unknown", os="Unknown", device_type="other")

    ua = parse_ua(user_agent)
    if ua.is_bot:
        device_type = "bot"
    elif ua.is_tablet:
        device_type = "tablet"
    elif ua.is_mobile:
        device_type = "mobile"
    elif ua.is_pc:
        device_type = "desktop"
    else:
        device_type = "other"

    return DeviceInfo(
        browser=ua.browser.family or "Unknown",
        os=ua.os.family or "Unknown",
        device_type=device_type,
    )


@lru_cache(maxsize=1)
def _geoip_reader(path: str) -> geoip2.database.Reader:
    return geoip2.database.Reader(path)


def _is_public_ip(ip: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return not (addr.is_private or addr.is_loopback or addr.is_reserved or addr.is_link_local)


def lookup_location(ip: Optional[str]) -> LocationInfo:
    if not ip or not settings.GEOIP_DB_PATH or not _is_public_ip(ip):
        return LocationInfo()

    try:
        resp = _geoip_reader(settings.GEOIP_DB_PATH).city(ip)
    except geoip2.errors.AddressNotFoundError:
        return LocationInfo()
    except OSError:
        log.warning("geoip_db_unavailable", extra={"client_ip": ip})
        return LocationInfo()

    return LocationInfo(
        country=resp.country.iso_code,
        city=resp.city.name,
        latitude=resp.location.latitude,
        longitude=resp.location.longitude,
    )


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance orthodromique (km) entre deux points (degrés)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def is_suspicious_move(previous: LocationInfo, current: LocationInfo, threshold_km: Optional[float] = None) -> bool:
    """Vrai si la nouvelle connexion est à plus de `threshold_km` de la précédente."""
    if threshold_km is None:
        threshold_km = settings.SUSPICIOUS_DISTANCE_KM
    if not (previous.has_coordinates and current.has_coordinates):
        return False
    distance = haversine_km(previous.latitude, previous.longitude, current.latitude, current.longitude)
    return distance > threshold_km
