import base64

import pyotp
import pytest

from cashora.core.device import LocationInfo, haversine_km, is_suspicious_move, lookup_location, parse_device
from cashora.core.totp import new_setup, verify_token

CHROME_DESKTOP = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)

ADDIS = LocationInfo(country="ET", city="Addis Ababa", latitude=9.03, longitude=38.74)
BAHIR_DAR = LocationInfo(country="ET", city="Bahir Dar", latitude=11.59, longitude=37.39)
PARIS = LocationInfo(country="FR", city="Paris", latitude=48.86, longitude=2.35)


def test_parse_desktop_browser():
    device = parse_device(CHROME_DESKTOP)
    assert device.browser == "Chrome"
    assert device.os == "Windows"
    assert device.device_type == "desktop"


def test_parse_mobile_browser():
    assert parse_device(SAFARI_IPHONE).device_type == "mobile"


def test_parse_missing_user_agent():
    device = parse_device(None)
    assert (device.browser, device.os, device.device_type) == ("Unknown", "Unknown", "other")


def test_device_key_is_stable():
    assert parse_device(CHROME_DESKTOP).key == parse_device(CHROME_DESKTOP).key
    assert parse_device(CHROME_DESKTOP).key != parse_device(SAFARI_IPHONE).key


@pytest.mark.parametrize("ip", ["127.0.0.1", "10.0.0.4", "192.168.1.20", "testclient", None])
def test_lookup_location_skips_private_addresses(ip):
    assert lookup_location(ip) == LocationInfo()


def test_haversine_addis_to_paris():
    assert 5400 < haversine_km(ADDIS.latitude, ADDIS.longitude, PARIS.latitude, PARIS.longitude) < 5700


def test_suspicious_move_threshold():
    assert is_suspicious_move(ADDIS, PARIS)
    assert not is_suspicious_move(ADDIS, BAHIR_DAR)
    assert not is_suspicious_move(LocationInfo(), PARIS)


def test_location_from_dict():
    assert LocationInfo.from_dict(None) == LocationInfo()
    assert LocationInfo.from_dict(ADDIS.as_dict()) == ADDIS


def test_totp_setup_and_verify():
    setup = new_setup("abebe@example.com")
    assert setup.otpauth_url.startswith("otpauth://totp/")
    assert "issuer=Cashora" in setup.otpauth_url
    assert setup.qr_code.startswith("data:image/svg+xml;base64,")
    assert b"<svg" in base64.b64decode(setup.qr_code.split(",", 1)[1])

    code = pyotp.TOTP(setup.secret).now()
    assert verify_token(setup.secret, code)
    assert verify_token(setup.secret, f"{code[:3]} {code[3:]}")


@pytest.mark.parametrize("token", [None, "", "abcdef", "000000x"])
def test_totp_rejects_malformed_tokens(token):
    assert not verify_token(pyotp.random_base32(), token)


def test_totp_without_secret():
    assert not verify_token(None, "123456")
