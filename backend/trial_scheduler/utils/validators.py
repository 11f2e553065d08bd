"""
Custom validators
"""
import re

from trial_scheduler.utils.exceptions import InvalidEmailError

_EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
MAX_EMAIL_LENGTH = 255


def validate_email(email: str) -> bool:
    """Validate email format"""
    if not email or not isinstance(email, str):
        return False
    return bool(_EMAIL_PATTERN.match(email.strip())) and len(email.strip()) <= MAX_EMAIL_LENGTH


def normalize_email(email: str) -> str:
    """
    Return a trimmed, lower-cased address.
    Raises InvalidEmailError when the address is missing or malformed.
    """
    if not validate_email(email):
        raise InvalidEmailError(email)
    return email.strip().lower()
