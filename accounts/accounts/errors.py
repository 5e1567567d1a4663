"""Errors raised by the accounts service."""

from typing import Optional


class AccountError(Exception):
    """Base class for all account errors."""


class ValidationError(AccountError):
    """A field failed validation: missing, unknown, duplicated or out of range.

    Args:
        field: name of the offending field
        message: human readable reason
    """

    def __init__(self, field: Optional[str], message: str) -> None:
        super().__init__(f"{field}: {message}" if field else message)
        self.field = field
        self.message = message


class FormatError(ValidationError):
    """Email or URL does not match the expected format."""


class LengthError(ValidationError):
    """Password is too short (or too long for bcrypt)."""


class ConfigurationError(AccountError):
    """Required startup configuration is missing or invalid."""


class AuthenticationError(AccountError):
    """Credentials or reset token were rejected."""


class AccountNotFoundError(AccountError):
    """No live account matches the given identifier."""
