from sqlalchemy import DateTime, Index, text
from sqlmodel import SQLModel, Field
from datetime import datetime, timezone
from typing import Optional
import uuid


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def new_public_id() -> str:
    return str(uuid.uuid4())


live = text("deleted_at IS NULL")


class Account(SQLModel, table=True):
    __tablename__ = "accounts"
    __table_args__ = (
        # uniqueness only among accounts that are not soft-deleted
        Index(
            "uq_accounts_username_live",
            "username",
            unique=True,
            sqlite_where=live,
            postgresql_where=live,
        ),
        Index(
            "uq_accounts_email_live",
            "email",
            unique=True,
            sqlite_where=live,
            postgresql_where=live,
        ),
        Index("ix_accounts_username_email_google", "username", "email", "google_id"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: str = Field(default_factory=new_public_id, unique=True, index=True)
    username: str
    email: str
    password_hash: str

    reset_password_token: Optional[str] = Field(default=None, index=True)
    reset_password_expires: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)
    )

    google_id: Optional[str] = None
    google_sync: Optional[bool] = None  # authorisation to sync with google
    google_access_token: Optional[str] = None
    google_refresh_token: Optional[str] = None

    role: str = Field(default="user")
    active: bool = Field(default=True)
    picture_url: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    deleted_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    deleted_by: Optional[str] = None
    version: int = Field(default=0)


def full_app(account: Account) -> str:
    return f"{account.username} - {account.email}"


def as_utc(moment: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands datetimes back without tzinfo; they are stored as UTC."""
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
