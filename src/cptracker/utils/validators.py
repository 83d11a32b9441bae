"""Input validation helpers."""

import re

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$")

# Codeforces handles: 3-24 chars of latin letters, digits, underscore, dash, dot
HANDLE_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{3,24}$")


def validate_email(email: str) -> bool:
    """Validate email format.

    Args:
        email: Email address to validate

    Returns:
        True if valid email, False otherwise
    """
    if not email:
        return False
    return bool(EMAIL_PATTERN.match(email))


def validate_handle(handle: str) -> bool:
    """Validate judge handle format."""
    if not handle:
        return False
    return bool(HANDLE_PATTERN.match(handle))
