"""Coarse classification of User-Agent strings."""

from __future__ import annotations

from typing import NamedTuple


class UserAgentInfo(NamedTuple):
    device: str
    browser: str
    os: str


def _device(ua: str) -> str:
    if "mobile" in ua or ("android" in ua and "tablet" not in ua):
        return "mobile"
    if "tablet" in ua or "ipad" in ua:
        return "tablet"
    return "desktop"


def _browser(ua: str) -> str:
    if "firefox" in ua:
        return "Firefox"
    if "edg" in ua:
        return "Edge"
    if "opr" in ua or "opera" in ua:
        return "Opera"
    if "chrome" in ua or "chromium" in ua:
        return "Chrome"
    if "safari" in ua:
        return "Safari"
    return "Other"


def _os(ua: str) -> str:
    if "windows" in ua:
        return "Windows"
    if "mac os" in ua or "macintosh" in ua:
        return "macOS"
    if "linux" in ua:
        return "Linux"
    if "android" in ua:
        return "Android"
    if "iphone" in ua or "ipad" in ua:
        return "iOS"
    return "Other"


def parse_user_agent(ua: str) -> UserAgentInfo:
    """Extract device, browser and operating system from a User-Agent."""
    lowered = ua.lower()
    return UserAgentInfo(_device(lowered), _browser(lowered), _os(lowered))