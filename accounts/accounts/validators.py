"""Field checks applied before an account is written."""

import ipaddress
import re

from email_validator import EmailNotValidError, validate_email
from pydantic import AnyUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from accounts.errors import FormatError, LengthError, ValidationError
from accounts.password import max_password_bytes

min_password_length = 8
url_protocols = ("http", "https", "ftp")

_url_adapter = TypeAdapter(AnyUrl)
_tld = re.compile(r"^([a-z]{2,}|xn--[a-z0-9-]+)$", re.IGNORECASE)


def normalize(value: str) -> str:
    """Usernames and emails are stored trimmed and lowercased."""
    return value.strip().lower()


def require(field: str, value, strip: bool = True) -> None:
    if value is None or value == "" or (strip and isinstance(value, str) and not value.strip()):
        raise ValidationError(field, "can't be blank")


def check_username(value: str) -> None:
    # "@" is reserved for emails, login picks the column by it
    if "@" in value:
        raise FormatError("username", "must not contain '@'")


def check_email(value: str) -> None:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as e:
        raise FormatError("email", "Must be a Valid email") from e


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return False
    return True


def check_url(value: str, field: str = "picture_url") -> None:
    """http, https or ftp URL with an explicit protocol and a top level domain."""
    if "://" not in value:
        raise FormatError(field, "Must be a Valid URL")
    try:
        url = _url_adapter.validate_python(value)
    except PydanticValidationError as e:
        raise FormatError(field, "Must be a Valid URL") from e
    if url.scheme not in url_protocols or not url.host:
        raise FormatError(field, "Must be a Valid URL")
    if _is_ip(url.host):
        return
    labels = url.host.rstrip(".").split(".")
    if len(labels) < 2 or not _tld.match(labels[-1]):
        raise FormatError(field, "Must be a Valid URL")


def check_password(value: str) -> None:
    if len(value) < min_password_length:
        raise LengthError(
            "password", f"must be at least {min_password_length} characters long"
        )
    if len(value.encode("utf-8")) > max_password_bytes:
        raise LengthError("password", f"must be at most {max_password_bytes} bytes long")


def check_role(value: str, roles: list[str]) -> None:
    if value not in roles:
        raise ValidationError("role", f"must be one of {', '.join(roles)}")
