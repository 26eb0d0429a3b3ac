"""Country and city lookup for client IP addresses."""

from __future__ import annotations

import json
import urllib.request
from dataclasses import dataclass
from urllib.parse import quote

DEFAULT_ENDPOINT = "http://ip-api.com/json/{ip}?fields=country,city,countryCode"


@dataclass(frozen=True)
class GeoResult:
    country: str
    city: str


LOCAL = GeoResult(country="local", city="local")


def _strip_port(address: str) -> str:
    if address.startswith("["):
        close = address.find("]")
        rest = address[close + 1:] if close > 0 else ""
        if rest.startswith(":") and ":" not in rest[1:]:
            return address[1:close]
        return address
    if address.count(":") == 1:
        return address.split(":", 1)[0]
    return address


def _is_local(ip: str) -> bool:
    return ip in ("", "127.0.0.1", "::1") or ip.startswith(("192.168.", "10."))


class GeoService:
    """Looks addresses up in a JSON geolocation service."""

    def __init__(self, timeout: float = 2.0, endpoint: str = DEFAULT_ENDPOINT) -> None:
        self._timeout = timeout
        self._endpoint = endpoint

    def lookup(self, ip: str) -> GeoResult:
        """Return the country code and city; private addresses are 'local'."""
        ip = _strip_port(ip)
        if _is_local(ip):
            return LOCAL
        url = self._endpoint.format(ip=quote(ip, safe=":"))
        with urllib.request.urlopen(url, timeout=self._timeout) as resp:
            payload = json.load(resp)
        if not isinstance(payload, dict):
            raise ValueError("unexpected geolocation response")
        return GeoResult(
            country=str(payload.get("countryCode") or ""),
            city=str(payload.get("city") or ""),
        )