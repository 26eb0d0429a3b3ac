import pytest

from shortly.useragent import parse_user_agent


@pytest.mark.parametrize(
    "ua, expected",
    [
        (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0",
            ("desktop", "Chrome", "Windows"),
        ),
        (
            "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Safari/605.1.15",
            ("mobile", "Safari", "iOS"),
        ),
        (
            "Mozilla/5.0 (Linux; Android 14) Mobile Firefox/120.0",
            ("mobile", "Firefox", "Android"),
        ),
    ],
)
def test_parse_user_agent(ua, expected):
    assert parse_user_agent(ua) == expected


def test_empty_user_agent():
    assert parse_user_agent("") == ("desktop", "Other", "Other")


def test_fields_are_named():
    info = parse_user_agent("Mozilla/5.0 (iPad; CPU OS 17_0) Safari/605.1.15")
    assert info.device == "tablet"
    assert info.browser == "Safari"