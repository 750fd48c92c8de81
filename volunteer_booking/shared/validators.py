"""Shared validation utilities"""

import html
import re
from typing import Optional

EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

# Spain is the default country for numbers given without an international prefix
DEFAULT_COUNTRY_CODE = "34"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    if not re.match(EMAIL_PATTERN, email):
        raise ValueError("Invalid email format")

    return email


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a phone number to E.164 format.

    Numbers without an international prefix are treated as Spanish
    (9 digits). Numbers starting with + or 00 keep their country code.

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return None

    stripped = phone.strip()
    has_prefix = stripped.startswith("+") or stripped.startswith("00")

    # Remove all non-digit characters
    digits = re.sub(r"\D", "", stripped)
    if stripped.startswith("00"):
        digits = digits[2:]

    if not has_prefix:
        if len(digits) != 9:
            raise ValueError("Phone number must have 9 digits or include the country code")
        digits = DEFAULT_COUNTRY_CODE + digits

    # E.164 allows up to 15 digits
    if not 8 <= len(digits) <= 15:
        raise ValueError("Invalid phone number length")

    return f"+{digits}"


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Sanitize a string by escaping HTML special characters to prevent XSS.
    Returns None if input is None.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    return html.escape(str(value), quote=True)
