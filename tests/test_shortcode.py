import pytest

from shortly.shortcode import CHARSET, generate_short_code, is_valid_custom_code


def test_generate_short_code_length():
    assert len(generate_short_code(7)) == 7


def test_generate_short_code_unique():
    codes = {generate_short_code(7) for _ in range(1000)}
    assert len(codes) == 1000


def test_generate_short_code_charset():
    code = generate_short_code(200)
    assert set(code) <= set(CHARSET)


def test_generate_zero_length():
    assert generate_short_code(0) == ""


@pytest.mark.parametrize(
    "code, valid",
    [
        ("abc", True),
        ("my-link", True),
        ("test_123", True),
        ("ab", False),
        ("", False),
        ("has space", False),
        ("abcdefghijklmnopqrstu", False),
    ],
)
def test_is_valid_custom_code(code, valid):
    assert is_valid_custom_code(code) is valid


def test_twenty_chars_allowed():
    assert is_valid_custom_code("a" * 20) is True