"""Random short codes and validation of user-chosen ones."""

from __future__ import annotations

import secrets
import string

CHARSET = string.ascii_lowercase + string.ascii_uppercase + string.digits
_CUSTOM_CHARS = frozenset(CHARSET + "-_")


def generate_short_code(length: int) -> str:
    """Return a random alphanumeric code of the given length."""
    return "".join(secrets.choice(CHARSET) for _ in range(length))


def is_valid_custom_code(code: str) -> bool:
    """True for 3-20 characters of letters, digits, hyphens and underscores."""
    return 3 <= len(code) <= 20 and all(ch in _CUSTOM_CHARS for ch in code)