import pytest

from servxpert.application.services.destinations import (
    Method,
    infer_method,
    normalize_email,
    normalize_phone,
    parse_destination,
    validate_code,
)
from servxpert.exceptions import ValidationError


@pytest.mark.parametrize("raw", ["9876543210", "09876543210", "919876543210", "+919876543210", "98765 43210"])
def test_normalize_phone_accepts_indian_mobile(raw):
    assert normalize_phone(raw) == "+919876543210"


@pytest.mark.parametrize("raw", ["", "12345", "5876543210", "+915876543210", "98765432101"])
def test_normalize_phone_rejects_bad_numbers(raw):
    with pytest.raises(ValidationError):
        normalize_phone(raw)


def test_international_numbers_need_opt_in():
    with pytest.raises(ValidationError):
        normalize_phone("+14155552671")
    assert normalize_phone("+14155552671", allow_international=True) == "+14155552671"


def test_normalize_email_lowercases():
    assert normalize_email("  Priya@Example.COM ") == "priya@example.com"


@pytest.mark.parametrize("raw", ["", "priya", "priya@", "@example.com", "priya@example"])
def test_normalize_email_rejects_malformed(raw):
    with pytest.raises(ValidationError):
        normalize_email(raw)


def test_parse_destination_infers_method():
    assert infer_method("a@b.co") is Method.EMAIL
    assert infer_method("9876543210") is Method.PHONE
    dest = parse_destination("9876543210")
    assert dest.value == "+919876543210"
    assert dest.method.channel == "sms"
    assert parse_destination("A@B.co").method.channel == "email"


def test_parse_destination_honours_explicit_method():
    with pytest.raises(ValidationError):
        parse_destination("9876543210", Method.EMAIL)


def test_parse_destination_requires_value():
    with pytest.raises(ValidationError):
        parse_destination("   ")


@pytest.mark.parametrize("code", ["", "12345", "1234567", "12a456"])
def test_validate_code_rejects_bad_shape(code):
    with pytest.raises(ValidationError) as exc:
        validate_code(code)
    assert exc.value.message == "Please enter the 6-digit code"


def test_validate_code_strips_whitespace():
    assert validate_code(" 012345 ") == "012345"
