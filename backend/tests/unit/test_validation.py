from decimal import Decimal

import pytest

from cashora.core.errors import AppHTTPException
from cashora.core.validation import (
    to_decimal,
    validate_account_number,
    validate_amount,
    validate_description,
    validate_email,
    validate_name,
    validate_password,
    validate_phone,
)


def _code(exc_info) -> str:
    return exc_info.value.detail["code"]


@pytest.mark.parametrize("raw, expected", [(100, "100.00"), ("12.5", "12.50"), (0.1, "0.10"), ("0.01", "0.01")])
def test_validate_amount_normalizes_to_cents(raw, expected):
    assert validate_amount(raw) == Decimal(expected)
    assert str(validate_amount(raw)) == expected


@pytest.mark.parametrize("raw", [0, -5, "-0.01", "0"])
def test_validate_amount_rejects_non_positive(raw):
    with pytest.raises(AppHTTPException) as exc:
        validate_amount(raw)
    assert exc.value.message == "Amount must be greater than 0"
    assert exc.value.status_code == 400


def test_validate_amount_rejects_more_than_two_decimals():
    with pytest.raises(AppHTTPException) as exc:
        validate_amount("10.005")
    assert exc.value.message == "Amount cannot have more than 2 decimal places"


@pytest.mark.parametrize("raw", ["abc", "NaN", "Infinity", True, None, [1]])
def test_validate_amount_rejects_garbage(raw):
    with pytest.raises(AppHTTPException) as exc:
        validate_amount(raw)
    assert _code(exc) == "INVALID_AMOUNT"


def test_to_decimal_keeps_float_text():
    assert to_decimal(0.1) == Decimal("0.1")


@pytest.mark.parametrize("number", ["1234567890", "1234567890123456", " 123456789012 "])
def test_account_number_accepts_10_to_16_digits(number):
    assert validate_account_number(number) == number.strip()


@pytest.mark.parametrize("number", ["123456789", "12345678901234567", "12345abcde", ""])
def test_account_number_rejects_invalid(number):
    with pytest.raises(AppHTTPException) as exc:
        validate_account_number(number)
    assert exc.value.message == "Invalid bank account number"


def test_email_is_lowercased():
    assert validate_email("  Abebe@Example.COM ") == "abebe@example.com"


@pytest.mark.parametrize("email", ["no-at-sign", "a@b", "a b@c.com", ""])
def test_email_rejects_invalid(email):
    with pytest.raises(AppHTTPException):
        validate_email(email)


def test_phone_accepts_formatting_and_empty():
    assert validate_phone("+251 (911) 234-567") == "+251 (911) 234-567"
    assert validate_phone("") is None
    assert validate_phone(None) is None


def test_phone_rejects_short_numbers():
    with pytest.raises(AppHTTPException) as exc:
        validate_phone("12345")
    assert _code(exc) == "INVALID_PHONE"


def test_name_collapses_spaces():
    assert validate_name("  Sara   O'Neil-Tadesse ") == "Sara O'Neil-Tadesse"


@pytest.mark.parametrize("name", ["A", "R2D2", "x" * 101, "Bad_Name"])
def test_name_rejects_invalid(name):
    with pytest.raises(AppHTTPException):
        validate_name(name)


def test_description_limits():
    assert validate_description(None) is None
    assert validate_description("   ") is None
    assert validate_description(" rent ") == "rent"
    with pytest.raises(AppHTTPException):
        validate_description("x" * 501)


@pytest.mark.parametrize("password", ["short1", "onlyletters", "12345678", ""])
def test_password_policy(password):
    with pytest.raises(AppHTTPException) as exc:
        validate_password(password)
    assert _code(exc) == "WEAK_PASSWORD"


def test_password_policy_accepts_letters_and_digits():
    assert validate_password("Passw0rd1") == "Passw0rd1"
