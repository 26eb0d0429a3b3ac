import pytest

from shortly.validate import is_valid_email, is_valid_url


@pytest.mark.parametrize(
    "url, valid",
    [
        ("https://example.com", True),
        ("http://localhost:3000/path", True),
        ("https://sub.domain.io/a/b?q=1", True),
        ("ftp://files.com", False),
        ("not-a-url", False),
        ("", False),
        ("https://", False),
    ],
)
def test_is_valid_url(url, valid):
    assert is_valid_url(url) is valid


@pytest.mark.parametrize(
    "url",
    [
        "http://user@",
        "http://example.com:port/",
        "http://exa mple.com/",
        "http://example.com/\n",
        "http://[::1",
    ],
)
def test_malformed_urls_rejected(url):
    assert is_valid_url(url) is False


@pytest.mark.parametrize(
    "email, valid",
    [
        ("user@example.com", True),
        ("a@b.c", True),
        ("nope", False),
        ("@no.com", False),
    ],
)
def test_is_valid_email(email, valid):
    assert is_valid_email(email) is valid


def test_email_with_two_ats_rejected():
    assert is_valid_email("a@b@example.com") is False