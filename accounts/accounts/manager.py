"""Account record manager.

Owns the lifecycle of an :class:`~accounts.dbmodel.Account`: validation on the
way in, password hashing, verification and reset tokens, soft delete and the
external view of an account. Every operation opens its own session.
"""

import secrets
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import select, col
from sqlmodel.ext.asyncio.session import AsyncSession

from accounts import errors, password, validators
from accounts.authenticator import Authentificator
from accounts.config import Settings
from accounts.dbmodel import Account, as_utc, full_app, utcnow
from accounts.schema import AccountView
from common.logger import get_logger

logger = get_logger("manager")

lookup_fields = ("public_id", "username", "email", "google_id", "reset_password_token")
text_fields = (
    "username",
    "email",
    "password",
    "role",
    "picture_url",
    "google_id",
    "google_access_token",
    "google_refresh_token",
)
writable_fields = frozenset(text_fields + ("active", "google_sync"))


def serialize(account: Account) -> dict[str, Any]:
    """External view of an account: no password, internal key or version."""
    view = AccountView(
        id=account.public_id,
        username=account.username,
        email=account.email,
        role=account.role,
        active=account.active,
        picture_url=account.picture_url,
        created_at=as_utc(account.created_at),
        updated_at=as_utc(account.updated_at),
        full_app=full_app(account),
    )
    return view.model_dump(by_alias=True, exclude_none=True)


def _conflicting_field(error: IntegrityError) -> str:
    message = str(error.orig)
    if "accounts.email" in message or "uq_accounts_email_live" in message:
        return "email"
    return "username"


class AccountManager:
    def __init__(self, settings: Settings, engine: AsyncEngine) -> None:
        self.settings = settings
        self.engine = engine
        self.authentificator = Authentificator(
            key=settings.jwt_key,
            algorithm=settings.algorithm,
            expire=settings.verification_expire,
        )

    def session(self) -> AsyncSession:
        return AsyncSession(self.engine, expire_on_commit=False)

    def _clean(self, fields: dict[str, Any]) -> dict[str, Any]:
        unknown = sorted(set(fields) - writable_fields)
        if unknown:
            raise errors.ValidationError(unknown[0], "is not a known field")
        cleaned = dict(fields)
        for name in text_fields:
            value = cleaned.get(name)
            if value is not None and not isinstance(value, str):
                raise errors.ValidationError(name, "must be a string")
        for name in ("username", "email"):
            if cleaned.get(name) is not None:
                cleaned[name] = validators.normalize(cleaned[name])
        if cleaned.get("picture_url") is not None:
            cleaned["picture_url"] = cleaned["picture_url"].strip() or None
        for name in ("active", "google_sync"):
            value = cleaned.get(name)
            if value is not None and not isinstance(value, bool):
                raise errors.ValidationError(name, "must be a boolean")
        return cleaned

    def _validate(self, fields: dict[str, Any]) -> None:
        for name in ("username", "email"):
            if name in fields:
                validators.require(name, fields[name])
        if "username" in fields:
            validators.check_username(fields["username"])
        if "email" in fields:
            validators.check_email(fields["email"])
        if "password" in fields:
            validators.require("password", fields["password"], strip=False)
            validators.check_password(fields["password"])
        if fields.get("picture_url") is not None:
            validators.check_url(fields["picture_url"])
        if "role" in fields:
            validators.check_role(fields["role"], self.settings.roles)
        if "active" in fields and fields["active"] is None:
            raise errors.ValidationError("active", "can't be blank")

    async def _ensure_unique(
        self, fields: dict[str, Any], exclude: Optional[Account] = None
    ) -> None:
        for name in ("username", "email"):
            if fields.get(name) is None:
                continue
            existing = await self.check_existing_field(name, fields[name])
            if existing is not None and (exclude is None or existing.id != exclude.id):
                raise errors.ValidationError(name, f"{name} is already taken")

    async def _write(self, account: Account) -> Account:
        async with self.session() as session:
            session.add(account)
            try:
                await session.commit()
            except IntegrityError as e:
                # the unique indexes are the real guard against concurrent writers
                field = _conflicting_field(e)
                raise errors.ValidationError(field, f"{field} is already taken") from e
            await session.refresh(account)
        return account

    async def hash_password(self, plaintext: str, work_factor: Optional[int] = None) -> str:
        return await password.hash_password(
            plaintext, work_factor or self.settings.hash_rounds
        )

    async def compare_password(self, plaintext: str, account: Account) -> bool:
        return await password.compare_password(plaintext, account.password_hash)

    async def create(self, fields: dict[str, Any]) -> Account:
        """Validate, hash the password and insert a new account.

        Raises:
            ValidationError: missing, unknown or duplicated field, unknown role
            FormatError: invalid email or picture URL
            LengthError: password shorter than 8 characters
        """
        fields = self._clean(fields)
        for name in ("username", "email", "password"):
            validators.require(name, fields.get(name), strip=name != "password")
        fields.setdefault("role", self.settings.default_role)
        fields.setdefault("active", True)
        self._validate(fields)
        await self._ensure_unique(fields)

        plaintext = fields.pop("password")
        account = Account(
            **fields, password_hash=await self.hash_password(plaintext)
        )
        await self._write(account)
        logger.info(f"Account {account.public_id} created with role {account.role}")
        return account

    async def save(self, account: Account) -> Account:
        account.version += 1
        account.updated_at = utcnow()
        return await self._write(account)

    async def update(self, account: Account, changes: dict[str, Any]) -> Account:
        """Apply changes with the same checks as create.

        The password is re-hashed only when it is one of the changes.
        """
        changes = self._clean(changes)
        self._validate(changes)
        await self._ensure_unique(changes, exclude=account)

        plaintext = changes.pop("password", None)
        for name, value in changes.items():
            setattr(account, name, value)
        if plaintext is not None:
            account.password_hash = await self.hash_password(plaintext)
            account.reset_password_token = None
            account.reset_password_expires = None
        return await self.save(account)

    async def check_existing_field(self, field: str, value: Any) -> Optional[Account]:
        """First live account whose ``field`` equals ``value``, or None."""
        if field not in lookup_fields:
            raise errors.ValidationError(field, "is not a searchable field")
        if field in ("username", "email") and isinstance(value, str):
            value = validators.normalize(value)
        statement = (
            select(Account)
            .where(col(getattr(Account, field)) == value)
            .where(col(Account.deleted_at).is_(None))
        )
        async with self.session() as session:
            return (await session.exec(statement)).first()

    async def get(self, public_id: str) -> Account:
        account = await self.check_existing_field("public_id", public_id)
        if account is None:
            raise errors.AccountNotFoundError(f"Account {public_id} not found")
        return account

    async def authenticate(self, login: str, plaintext: str) -> Account:
        """Find a live account by username or email and check its password.

        Raises:
            AuthenticationError: unknown login, wrong password or disabled account
        """
        login = validators.normalize(login)
        # usernames never contain "@", so a login names exactly one column
        field = "email" if "@" in login else "username"
        account = await self.check_existing_field(field, login)

        if account is None or not await self.compare_password(plaintext, account):
            logger.info(f"Failed login attempt for {login}")
            raise errors.AuthenticationError("Invalid login and/or password")
        if not account.active:
            logger.info(f"Login attempt on disabled account {account.public_id}")
            raise errors.AuthenticationError("Account is disabled")
        return account

    def generate_verification_token(self, account: Account) -> str:
        return self.authentificator.encode_token(account)

    def generate_password_reset_token(
        self, account: Account, now: Optional[datetime] = None
    ) -> str:
        """Set a fresh reset token valid for one hour. Not persisted: call save."""
        issued_at = now or utcnow()
        account.reset_password_token = secrets.token_hex(20)
        account.reset_password_expires = issued_at + self.settings.reset_expire
        logger.info(f"Password reset token issued for account {account.public_id}")
        return account.reset_password_token

    async def find_by_reset_token(
        self, token: str, now: Optional[datetime] = None
    ) -> Account:
        account = None
        if token:
            account = await self.check_existing_field("reset_password_token", token)
        expires = as_utc(account.reset_password_expires) if account else None
        if expires is None or expires <= (now or utcnow()):
            raise errors.AuthenticationError("Password reset token is invalid or has expired")
        return account

    async def reset_password(
        self, token: str, new_password: str, now: Optional[datetime] = None
    ) -> Account:
        account = await self.find_by_reset_token(token, now)
        account = await self.update(account, {"password": new_password})
        logger.info(f"Password reset for account {account.public_id}")
        return account

    async def set_active(self, account: Account, active: bool) -> Account:
        account = await self.update(account, {"active": active})
        logger.info(f"Account {account.public_id} {'enabled' if active else 'disabled'}")
        return account

    async def change_role(self, account: Account, role: str) -> Account:
        account = await self.update(account, {"role": role})
        logger.info(f"Role for account {account.public_id} changed to {role}")
        return account

    async def soft_delete(self, account: Account, deleted_by: Optional[str] = None) -> Account:
        account.deleted_at = utcnow()
        account.deleted_by = deleted_by
        account = await self.save(account)
        logger.info(f"Account {account.public_id} deleted by {deleted_by or 'system'}")
        return account

    async def restore(self, public_id: str) -> Account:
        """Bring back a soft-deleted account.

        Raises:
            AccountNotFoundError: no deleted account with this id
            ValidationError: a live account took its username or email meanwhile
        """
        statement = (
            select(Account)
            .where(col(Account.public_id) == public_id)
            .where(col(Account.deleted_at).is_not(None))
        )
        async with self.session() as session:
            account = (await session.exec(statement)).first()
        if account is None:
            raise errors.AccountNotFoundError(f"Deleted account {public_id} not found")

        await self._ensure_unique(
            {"username": account.username, "email": account.email}, exclude=account
        )
        account.deleted_at = None
        account.deleted_by = None
        account = await self.save(account)
        logger.info(f"Account {account.public_id} restored")
        return account

    def serialize(self, account: Account) -> dict[str, Any]:
        return serialize(account)
