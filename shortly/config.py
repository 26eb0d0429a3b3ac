"""Runtime configuration read from environment variables."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, fields
from datetime import timedelta

_INTEGER = re.compile(r"[+-]?[0-9]+")


@dataclass
class Config:
    """Settings for the server; every field has a working default."""

    port: str = "8080"
    base_url: str = "http://localhost:8080"
    database_url: str = "sqlite:///shortly.db"
    redis_url: str = "redis://localhost:6379/0"
    jwt_secret: str = "secret"
    short_code_length: int = 7
    default_expiry_days: int = 30
    rate_limit_rpm: int = 60

    def default_expiry(self) -> timedelta:
        """Lifetime given to links that ask for none."""
        return timedelta(days=self.default_expiry_days)


def _env(key: str, fallback: str) -> str:
    return os.environ.get(key) or fallback


def _env_int(key: str, fallback: int) -> int:
    value = os.environ.get(key, "")
    if value and _INTEGER.fullmatch(value):
        return int(value)
    return fallback


def load() -> Config:
    """Build a Config from the environment, falling back to defaults.

    Each field is read from the variable named by its upper-cased name.
    """
    defaults = Config()
    values = {}
    for field in fields(Config):
        fallback = getattr(defaults, field.name)
        variable = field.name.upper()
        if isinstance(fallback, int):
            values[field.name] = _env_int(variable, fallback)
        else:
            values[field.name] = _env(variable, fallback)
    return Config(**values)