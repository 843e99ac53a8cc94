"""
Input validation for registration fields — plain predicates + Pydantic v2 model.

The predicates are pure and callable at any time (live feedback on every
field change); `Step1Data` bundles them for the Step-1 transition.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, field_validator

_PHONE_RE = re.compile(r"^0\d+$")
_LETTER_RE = re.compile(r"[^\W\d_]")
_EMAIL_RE = re.compile(r"^[A-Za-z0-9._%-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}$")

MIN_PASSWORD_LENGTH = 6
MAX_EXPERIENCE_YEARS = 80

# Registered-entity suffixes accepted in a business name (lower-case)
ENTITY_SUFFIXES = (
    "sdn bhd",
    "sdn. bhd.",
    "bhd",
    "berhad",
    "enterprise",
    "enterprises",
    "services",
    "service",
    "holdings",
    "group",
    "trading",
    "resources",
    "solutions",
    "ventures",
    "industries",
    "plt",
    "ltd",
    "limited",
    "corporation",
    "company",
)

MESSAGES = {
    "phone_required":      "Phone number is required",
    "phone_letters":       "Phone number must not contain letters",
    "phone_format":        "Phone number must start with 0 and contain digits only",
    "business_required":   "Business name is required",
    "business_suffix":     (
        "Business name must include a registered entity suffix "
        "(e.g. Sdn Bhd, Enterprise, Services)"
    ),
    "email_required":      "Email is required",
    "email_plus":          "Email addresses containing '+' are not accepted",
    "email_format":        "Please enter a valid email address",
    "password_short":      f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
    "experience_required": "Years of experience is required",
    "experience_format":   f"Years of experience must be a whole number from 0 to {MAX_EXPERIENCE_YEARS}",
}

FIELD_LABELS = {
    "full_name":           "Full name",
    "phone":               "Phone number",
    "district_id":         "District",
    "community_id":        "Community",
    "address":             "Location",
    "business_name":       "Business name",
    "business_type":       "Business type",
    "email":               "Email",
    "password":            "Password",
    "years_of_experience": "Years of experience",
}


@dataclass(frozen=True)
class FieldCheck:
    valid: bool
    message: Optional[str] = None


_OK = FieldCheck(True)


def _fail(key: str) -> FieldCheck:
    return FieldCheck(False, MESSAGES[key])


# ── Predicates ────────────────────────────────────────────────────────────────

def check_phone(value: str) -> FieldCheck:
    """Raw value must be '0' followed by digits; nothing is stripped for the caller."""
    if not value:
        return _fail("phone_required")
    if _LETTER_RE.search(value):
        return _fail("phone_letters")
    if not _PHONE_RE.match(value):
        return _fail("phone_format")
    return _OK


def check_business_name(value: str) -> FieldCheck:
    if not value or not value.strip():
        return _fail("business_required")
    if not is_valid_business_name(value):
        return _fail("business_suffix")
    return _OK


def check_email(value: str) -> FieldCheck:
    # '+' is a product rule, checked before the shape so the message is specific
    if not value or not value.strip():
        return _fail("email_required")
    if "+" in value:
        return _fail("email_plus")
    if not _EMAIL_RE.match(value.strip()):
        return _fail("email_format")
    return _OK


def check_password(value: str) -> FieldCheck:
    if not value or len(value) < MIN_PASSWORD_LENGTH:
        return _fail("password_short")
    return _OK


def check_experience_years(value: str) -> FieldCheck:
    raw = (value or "").strip()
    if not raw:
        return _fail("experience_required")
    if not raw.isdigit() or int(raw) > MAX_EXPERIENCE_YEARS:
        return _fail("experience_format")
    return _OK


def is_valid_phone(value: str) -> bool:
    return check_phone(value).valid


def is_valid_business_name(value: str) -> bool:
    """Heuristic: the name contains a known entity-suffix token anywhere."""
    lowered = (value or "").lower()
    return any(token in lowered for token in ENTITY_SUFFIXES)


def is_valid_email(value: str) -> bool:
    return check_email(value).valid


def is_valid_password(value: str) -> bool:
    return check_password(value).valid


_CHECKS = {
    "phone":               check_phone,
    "business_name":       check_business_name,
    "email":               check_email,
    "password":            check_password,
    "years_of_experience": check_experience_years,
}


def validate_field(name: str, value) -> FieldCheck:
    """
    Validate a single draft field by name.
    Fields without a dedicated rule only need to be non-empty.
    """
    check = _CHECKS.get(name)
    if check is not None:
        return check("" if value is None else str(value))
    if value is None or (isinstance(value, str) and not value.strip()):
        label = FIELD_LABELS.get(name, name.replace("_", " ").capitalize())
        return FieldCheck(False, f"{label} is required")
    return _OK


def _raise_if_invalid(check: FieldCheck) -> None:
    if not check.valid:
        raise ValueError(check.message)


# ── Step-1 payload ────────────────────────────────────────────────────────────

class Step1Data(BaseModel):
    """
    Identity + business facts required before the documents step.

    Attributes
    ----------
    full_name     : Applicant name (non-empty)
    phone         : '0' followed by digits
    district_id   : Selected district
    community_id  : Selected community within the district
    address       : Business location
    business_name : Must carry an entity suffix (Sdn Bhd, Enterprise, ...)
    business_type : Key of BusinessTypeRegistry
    email         : Valid shape, no '+'
    password      : At least 6 characters
    """

    full_name: str
    phone: str
    district_id: Optional[int]
    community_id: Optional[int]
    address: str
    business_name: str
    business_type: str
    email: str
    password: str

    @field_validator("full_name", "address", "business_type")
    @classmethod
    def validate_required_text(cls, v: str, info) -> str:
        _raise_if_invalid(validate_field(info.field_name, v))
        return v.strip()

    @field_validator("district_id")
    @classmethod
    def validate_district(cls, v: Optional[int]) -> int:
        if v is None:
            raise ValueError("Please select a district")
        return v

    @field_validator("community_id")
    @classmethod
    def validate_community(cls, v: Optional[int]) -> int:
        if v is None:
            raise ValueError("Please select a community")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        _raise_if_invalid(check_phone(v))
        return v

    @field_validator("business_name")
    @classmethod
    def validate_business_name(cls, v: str) -> str:
        _raise_if_invalid(check_business_name(v))
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        _raise_if_invalid(check_email(v))
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        _raise_if_invalid(check_password(v))
        return v
