"""Validation of URLs and e-mail addresses."""

from __future__ import annotations

from urllib.parse import urlsplit


def is_valid_url(raw: str) -> bool:
    """True for an absolute http(s) URL that names a host."""
    if not raw.startswith(("http://", "https://")):
        return False
    if any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in raw):
        return False
    try:
        parts = urlsplit(raw)
        parts.port
    except ValueError:
        return False
    host = parts.netloc.rpartition("@")[2]
    return bool(host) and not any(ch in ' <>"{}|\\^`' for ch in host)


def is_valid_email(email: str) -> bool:
    """True for one '@' with a non-empty local part and a dotted domain."""
    parts = email.split("@")
    return len(parts) == 2 and bool(parts[0]) and "." in parts[1]