import pytest

from accounts import validators
from accounts.errors import FormatError, LengthError, ValidationError


@pytest.mark.parametrize(
    "url",
    [
        "http://example.com",
        "https://cdn.example.co.uk/img/me.png?size=2",
        "ftp://files.example.org/pic.png",
        "http://192.168.0.10/pic.png",
    ],
)
def test_valid_urls(url):
    validators.check_url(url)


@pytest.mark.parametrize(
    "url",
    [
        "example.com/pic.png",
        "//example.com/pic.png",
        "ws://example.com",
        "http://localhost:8000/pic.png",
        "https://example.c0m",
        "not a url",
    ],
)
def test_invalid_urls(url):
    with pytest.raises(FormatError):
        validators.check_url(url)


@pytest.mark.parametrize("email", ["alice@x.com", "first.last+tag@mail.example.org"])
def test_valid_emails(email):
    validators.check_email(email)


@pytest.mark.parametrize("email", ["alice", "alice@", "@x.com", "alice@x", "a b@x.com"])
def test_invalid_emails(email):
    with pytest.raises(FormatError) as exc_info:
        validators.check_email(email)
    assert exc_info.value.field == "email"


def test_password_length():
    validators.check_password("12345678")
    with pytest.raises(LengthError):
        validators.check_password("1234567")
    # multibyte characters count towards the bcrypt byte limit
    with pytest.raises(LengthError):
        validators.check_password("é" * 37)


def test_role_membership():
    validators.check_role("user", ["user", "admin"])
    with pytest.raises(ValidationError):
        validators.check_role("root", ["user", "admin"])


def test_normalize():
    assert validators.normalize("  MiXeD@Example.COM ") == "mixed@example.com"


def test_username_must_not_contain_at_sign():
    validators.check_username("alice")
    with pytest.raises(FormatError) as exc_info:
        validators.check_username("alice@x.com")
    assert exc_info.value.field == "username"
