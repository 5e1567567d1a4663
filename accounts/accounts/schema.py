from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RegisterDetails(BaseModel):
    username: str
    email: str
    password: str
    picture_url: Optional[str] = None


class LoginDetails(BaseModel):
    login: str  # username or email
    password: str


class ProfileUpdate(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    picture_url: Optional[str] = None


class ForgotPasswordDetails(BaseModel):
    email: str


class ResetPasswordDetails(BaseModel):
    token: str
    password: str


class AccountView(BaseModel):
    """External view of an account."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    username: str
    email: str
    role: str
    active: bool
    picture_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    full_app: str
