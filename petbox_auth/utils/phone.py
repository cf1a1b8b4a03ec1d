"""
Phone number normalization utilities
"""
import re

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat

# Accepted input shapes: 0xxxxxxxxx, 84xxxxxxxxx, +84xxxxxxxxx with a mobile prefix
PHONE_RULE = re.compile(r"^((\+84|84|0)([35789])([0-9]{8}))$")

_BARE_COUNTRY_PREFIX = re.compile(r"^84\d{9}$")


def normalize_phone(phone: str, default_region: str = "VN", country_code: int = 84) -> str:
    """
    Normalize phone number to E.164 format.

    Args:
        phone: Phone number string (0912345678, 84912345678, +84912345678)
        default_region: Default region code if no country code present (default: VN)
        country_code: The only country code accepted (default: 84)

    Returns:
        Normalized phone number in E.164 format (e.g., +84912345678)

    Raises:
        ValueError: If phone number is invalid or unsupported
    """
    candidate = (phone or "").strip()
    if _BARE_COUNTRY_PREFIX.match(candidate):
        candidate = "+" + candidate

    try:
        parsed = phonenumbers.parse(candidate, default_region)
    except NumberParseException as e:
        raise ValueError(f"Invalid phone number format: {str(e)}")

    if not phonenumbers.is_valid_number(parsed):
        raise ValueError("Invalid phone number")

    if parsed.country_code != country_code:
        raise ValueError(f"Unsupported country code: +{parsed.country_code}")

    return phonenumbers.format_number(parsed, PhoneNumberFormat.E164)


def get_phone_last4(phone: str) -> str:
    """
    Get last 4 digits of phone number for safe logging.

    Args:
        phone: Phone number (can be in any format)

    Returns:
        Last 4 digits as string, or all digits if fewer than 4
    """
    digits = "".join(filter(str.isdigit, phone or ""))

    if len(digits) >= 4:
        return digits[-4:]
    return digits
