import uuid

from jose import jwt

from cashora.core.security import (
    PASSWORD_RESET,
    create_reset_token,
    create_token,
    decode_token,
    hash_password,
    verify_password,
)
from cashora.core.settings import settings


def test_password_hash_roundtrip():
    hashed = hash_password("Passw0rd1")
    assert hashed != "Passw0rd1"
    assert verify_password("Passw0rd1", hashed)
    assert not verify_password("wrong-pass1", hashed)


def test_verify_password_without_hash():
    assert not verify_password("Passw0rd1", None)
    assert not verify_password("Passw0rd1", "")


def test_access_token_claims():
    user_id = uuid.uuid4()
    claims = decode_token(create_token(user_id, role="admin"))
    assert claims["sub"] == str(user_id)
    assert claims["role"] == "admin"
    assert claims["type"] == "access"


def test_reset_token_is_not_an_access_token():
    token = create_reset_token(uuid.uuid4(), hash_password("Passw0rd1"))
    assert decode_token(token) is None
    assert decode_token(token, expected_type=PASSWORD_RESET) is not None


def test_expired_token_is_rejected():
    token = create_token(uuid.uuid4(), expires_minutes=-1)
    assert decode_token(token) is None


def test_token_signed_with_other_secret_is_rejected():
    forged = jwt.encode({"sub": str(uuid.uuid4()), "type": "access"}, "not-the-secret", algorithm=settings.JWT_ALGORITHM)
    assert decode_token(forged) is None


def test_garbage_token_is_rejected():
    assert decode_token("not-a-jwt") is None
