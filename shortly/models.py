"""Data records exchanged with the database and the HTTP API."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

_KIND_NAMES = {str: "a string", int: "an integer", bool: "a boolean"}


def _timestamp(moment: datetime) -> str:
    text = moment.isoformat()
    return text[:-6] + "Z" if text.endswith("+00:00") else text


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return _timestamp(value)
    if isinstance(value, list):
        return [_encode(item) for item in value]
    if is_dataclass(value):
        return value.to_dict()
    return value


class _Encodable:
    """JSON-ready dict output; fields can be hidden or left out when empty."""

    _hidden = frozenset()
    _omit_none = frozenset()
    _omit_empty = frozenset()

    def _as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if (
                item.name in self._hidden
                or (value is None and item.name in self._omit_none)
                or (not value and item.name in self._omit_empty)
            ):
                continue
            out[item.name] = _encode(value)
        return out

    def to_dict(self) -> dict[str, Any]:
        return self._as_dict()


def _mapping(data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError("request body must be a JSON object")
    return data


def _get(data: Mapping[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ValueError(f"field {key!r} must be {_KIND_NAMES[kind]}")
    return value


def _str_list(data: Mapping[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"field {key!r} must be a list of strings")
    return list(value)


@dataclass(kw_only=True)
class Click(_Encodable):
    _omit_empty = frozenset(
        {"ip_address", "user_agent", "referer", "country", "city", "device", "browser", "os"}
    )

    id: int
    link_id: int
    ip_address: str = ""
    user_agent: str = ""
    referer: str = ""
    country: str = ""
    city: str = ""
    device: str = ""
    browser: str = ""
    os: str = ""
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        """Return the click as a JSON-ready dict."""
        return self._as_dict()


@dataclass
class DayCount(_Encodable):
    date: str
    count: int


@dataclass
class NameCount(_Encodable):
    name: str
    count: int


@dataclass(kw_only=True)
class ClickStats(_Encodable):
    total_clicks: int = 0
    unique_clicks: int = 0
    clicks_by_day: list[DayCount] = field(default_factory=list)
    top_referrers: list[NameCount] = field(default_factory=list)
    top_countries: list[NameCount] = field(default_factory=list)
    top_browsers: list[NameCount] = field(default_factory=list)
    top_devices: list[NameCount] = field(default_factory=list)
    top_os: list[NameCount] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the statistics as a JSON-ready dict."""
        return self._as_dict()


@dataclass
class Tag(_Encodable):
    id: int
    name: str


@dataclass(kw_only=True)
class Link(_Encodable):
    _hidden = frozenset({"password_hash"})
    _omit_none = frozenset({"expires_at", "max_clicks"})
    _omit_empty = frozenset({"title", "click_count", "short_url", "tags"})

    id: int
    short_code: str
    original_url: str
    title: str = ""
    user_id: int
    is_active: bool = True
    expires_at: Optional[datetime] = None
    max_clicks: Optional[int] = None
    password_hash: str = field(default="", repr=False)
    created_at: datetime
    updated_at: datetime
    click_count: int = 0
    short_url: str = ""
    tags: list[Tag] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the link as a JSON-ready dict, without its password hash."""
        return self._as_dict()


@dataclass(kw_only=True)
class CreateLinkRequest:
    url: str = ""
    title: str = ""
    custom_code: str = ""
    expires_in: int = 0
    max_clicks: Optional[int] = None
    password: str = field(default="", repr=False)
    tags: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "CreateLinkRequest":
        data = _mapping(data)
        return cls(
            url=_get(data, "url", str, ""),
            title=_get(data, "title", str, ""),
            custom_code=_get(data, "custom_code", str, ""),
            expires_in=_get(data, "expires_in", int, 0),
            max_clicks=_get(data, "max_clicks", int, None),
            password=_get(data, "password", str, ""),
            tags=_str_list(data, "tags"),
        )


@dataclass(kw_only=True)
class UpdateLinkRequest:
    title: Optional[str] = None
    is_active: Optional[bool] = None
    expires_at: Optional[str] = None
    max_clicks: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Any) -> "UpdateLinkRequest":
        data = _mapping(data)
        return cls(
            title=_get(data, "title", str, None),
            is_active=_get(data, "is_active", bool, None),
            expires_at=_get(data, "expires_at", str, None),
            max_clicks=_get(data, "max_clicks", int, None),
        )


@dataclass(kw_only=True)
class LinkListResponse(_Encodable):
    links: list[Link]
    total: int
    page: int
    per_page: int

    def to_dict(self) -> dict[str, Any]:
        """Return the page of links as a JSON-ready dict."""
        return self._as_dict()


@dataclass(kw_only=True)
class User(_Encodable):
    _hidden = frozenset({"password_hash"})

    id: int
    username: str
    email: str
    password_hash: str = field(default="", repr=False)
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        """Return the user as a JSON-ready dict, without the password hash."""
        return self._as_dict()


@dataclass(kw_only=True)
class CreateUserRequest:
    username: str = ""
    email: str = ""
    password: str = field(default="", repr=False)

    @classmethod
    def from_dict(cls, data: Any) -> "CreateUserRequest":
        data = _mapping(data)
        return cls(
            username=_get(data, "username", str, ""),
            email=_get(data, "email", str, ""),
            password=_get(data, "password", str, ""),
        )


@dataclass(kw_only=True)
class LoginRequest:
    email: str = ""
    password: str = field(default="", repr=False)

    @classmethod
    def from_dict(cls, data: Any) -> "LoginRequest":
        data = _mapping(data)
        return cls(email=_get(data, "email", str, ""), password=_get(data, "password", str, ""))


@dataclass(kw_only=True)
class UserResponse(_Encodable):
    id: int
    username: str
    email: str
    is_active: bool
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        """Return the public user view as a JSON-ready dict."""
        return self._as_dict()


@dataclass(kw_only=True)
class TokenResponse(_Encodable):
    token: str
    user: UserResponse

    def to_dict(self) -> dict[str, Any]:
        """Return the token and its user as a JSON-ready dict."""
        return self._as_dict()