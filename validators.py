import re
from typing import Tuple

from exceptions import ValidationException

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_ALLOWED = re.compile(r"^\+?[\d\s().-]+$")
EQUITY_PATTERN = re.compile(r"^\d+(\.\d+)?%$")


def split_full_name(full_name: str) -> Tuple[str, str]:
    """
    Splits a full legal name into (first, last).
    Everything after the first token is treated as the last name.
    """
    parts = (full_name or "").split()
    if len(parts) < 2:
        raise ValidationException("Please provide both your first and last name.")
    return parts[0], " ".join(parts[1:])

def validate_email(email: str):
    if not email or not EMAIL_PATTERN.match(email.strip()):
        raise ValidationException("Please provide a valid personal email address.")

def validate_phone_number(phone: str):
    """
    Basic phone number validation.
    """
    if phone and (not PHONE_ALLOWED.match(phone.strip()) or not any(c.isdigit() for c in phone)):
        raise ValidationException("Phone number must contain only digits, spaces, dashes and an optional +")

def validate_equity_percent(equity: str):
    if not equity or not EQUITY_PATTERN.match(equity):
        raise ValidationException(f"Invalid equity percentage: {equity!r}")
