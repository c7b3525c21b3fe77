"""Destination parsing shared by issuance and verification.

A destination is either a phone number, normalized to E.164, or an email
address, normalized to lower case. Both services normalize the same way so a
code issued to ``9876543210`` verifies against ``+919876543210``.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ...exceptions import ValidationError

E164_PATTERN = re.compile(r"^\+[1-9]\d{10,14}$")
EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)+$")
NATIONAL_MOBILE_PATTERN = re.compile(r"^[6-9]\d{9}$")
CODE_PATTERN = re.compile(r"^\d{6}$")


class Method(str, Enum):
    PHONE = "phone"
    EMAIL = "email"

    @property
    def channel(self) -> str:
        return "sms" if self is Method.PHONE else "email"


@dataclass(frozen=True)
class Destination:
    value: str
    method: Method


def infer_method(raw: str) -> Method:
    return Method.EMAIL if "@" in raw else Method.PHONE


def normalize_phone(raw: str, default_country_code: str = "+91", allow_international: bool = False) -> str:
    cleaned = re.sub(r"[^\d+]", "", raw or "")
    if not cleaned:
        raise ValidationError("Phone number is required")

    if not cleaned.startswith("+"):
        # Bare national number in the default region
        national = cleaned.lstrip("0")
        country_digits = default_country_code.lstrip("+")
        if len(national) == 10 + len(country_digits) and national.startswith(country_digits):
            national = national[len(country_digits):]
        if not NATIONAL_MOBILE_PATTERN.match(national):
            raise ValidationError("Phone number must be 10 digits starting with 6-9")
        return f"{default_country_code}{national}"

    if cleaned.startswith(default_country_code):
        national = cleaned[len(default_country_code):]
        if not NATIONAL_MOBILE_PATTERN.match(national):
            raise ValidationError("Phone number must be 10 digits starting with 6-9")
        return cleaned

    if not allow_international:
        raise ValidationError(f"Only {default_country_code} mobile numbers are supported")
    if not E164_PATTERN.match(cleaned):
        raise ValidationError("Invalid phone number format. Use E.164 format (e.g., +919876543210)")
    return cleaned


def normalize_email(raw: str) -> str:
    value = (raw or "").strip().lower()
    if not value:
        raise ValidationError("Email address is required")
    if len(value) > 254 or not EMAIL_PATTERN.match(value):
        raise ValidationError("Please enter a valid email address")
    return value


def parse_destination(raw: str, method: Optional[Method] = None, default_country_code: str = "+91",
                      allow_international: bool = False) -> Destination:
    if raw is None or not str(raw).strip():
        raise ValidationError("Destination is required")
    method = method or infer_method(raw)
    if method is Method.EMAIL:
        return Destination(normalize_email(raw), method)
    return Destination(normalize_phone(raw, default_country_code, allow_international), method)


def validate_code(code: str) -> str:
    value = (code or "").strip()
    if not CODE_PATTERN.match(value):
        raise ValidationError("Please enter the 6-digit code")
    return value
