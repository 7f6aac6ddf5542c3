"""
Validators — regex and rule-based checks for credit-check form fields.
"""
import re

import phonenumbers

NAME_PATTERN = re.compile(r"^[a-zA-Z\s]+$")
MOBILE_PATTERN = re.compile(r"^[6-9]\d{9}$")

# Shapes that are syntactically valid but never issued
_FAKE_MOBILE_PATTERNS = (
    re.compile(r"^(\d)\1{9}$"),                   # 9999999999
    re.compile(r"^(\d)(\d)(?:\1\2){4}$"),         # 9898989898
    re.compile(r"^(\d)\1{4}(\d)\2{4}$"),          # 9999988888
    re.compile(r"^(\d)\1{2}(\d)\2{6}$"),          # 9991111111
    re.compile(r"^(\d{3})\1\1"),                  # 9879879879
    re.compile(r"^[6-9]0{9}$"),                   # 9000000000
    re.compile(r"^([6-9])\1{2}0{7}$"),            # 9990000000
)


def is_valid_name(name: str | None) -> bool:
    """Letters and spaces only, at least one non-space character."""
    if not name or not name.strip():
        return False
    return bool(NAME_PATTERN.match(name.strip()))


def normalize_mobile(phone: str | None) -> str:
    """Strip formatting and a leading +91 / 0 trunk prefix."""
    if not phone:
        return ""
    digits = re.sub(r"\D", "", phone)
    if digits.startswith("91") and len(digits) == 12:
        return digits[2:]
    if digits.startswith("0") and len(digits) == 11:
        return digits[1:]
    return digits


def _looks_fake(digits: str) -> bool:
    if digits == digits[::-1]:
        return True
    return any(p.match(digits) for p in _FAKE_MOBILE_PATTERNS)


def _is_issued_indian_number(digits: str) -> bool:
    """libphonenumber's numbering-plan check, restricted to India."""
    try:
        parsed = phonenumbers.parse(digits, "IN")
    except phonenumbers.NumberParseException:
        return False
    return phonenumbers.is_valid_number(parsed) and phonenumbers.region_code_for_number(parsed) == "IN"


def is_valid_mobile(phone: str | None) -> bool:
    """Strict 10-digit Indian mobile: starts with 6-9, not an obvious filler, and in the numbering plan."""
    digits = normalize_mobile(phone)
    if not MOBILE_PATTERN.match(digits) or _looks_fake(digits):
        return False
    return _is_issued_indian_number(digits)


def sanitize_name(name: str | None) -> str:
    """Drop everything except letters and spaces, collapse runs of whitespace."""
    if not name:
        return ""
    return " ".join(re.sub(r"[^a-zA-Z\s]", "", name).split())
