"""The main application file of the Accounts service.

Run with ``uvicorn app.main:create_app --factory``. Building the app reads the
settings, so a missing JWT_KEY or HASH stops the process before it listens.
"""

from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.ext.asyncio.engine import create_async_engine
from sqlmodel import SQLModel

from accounts import errors
from accounts.config import Settings, load_settings
from accounts.dbmodel import Account
from accounts.manager import AccountManager
from accounts.schema import (
    ForgotPasswordDetails,
    LoginDetails,
    ProfileUpdate,
    RegisterDetails,
    ResetPasswordDetails,
)
from common.authorizer import Authorizer
from common.logger import setup_logger

logger = setup_logger("accounts")

ResetTokenSender = Callable[[Account, str], None]


def log_reset_token(account: Account, token: str) -> None:
    logger.warning(
        f"No reset token delivery configured, token for {account.public_id} was not sent"
    )


def create_app(
    settings: Optional[Settings] = None,
    send_reset_token: ResetTokenSender = log_reset_token,
) -> FastAPI:
    """Build the Accounts API.

    Args:
        settings: service settings, read from the environment when omitted
        send_reset_token: delivers a password reset token to its owner

    Raises:
        ConfigurationError: if required settings are missing
    """
    settings = settings or load_settings()
    engine = create_async_engine(settings.db_url, echo=settings.db_echo)
    manager = AccountManager(settings, engine)
    authorizer = Authorizer(key=settings.jwt_key, algorithm=settings.algorithm)

    @asynccontextmanager
    async def instantiate_db(app: FastAPI):
        """Create tables and register the admin account if one is configured."""
        async with engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

        if settings.admin_email and settings.admin_password:
            if await manager.check_existing_field("email", settings.admin_email) is None:
                await manager.create(
                    {
                        "username": "root",
                        "email": settings.admin_email,
                        "password": settings.admin_password,
                        "role": "admin",
                    }
                )

        yield
        await engine.dispose()

    api = FastAPI(lifespan=instantiate_db)
    api.state.manager = manager

    @api.exception_handler(errors.ValidationError)
    async def validation_error(request: Request, exc: errors.ValidationError):
        return JSONResponse(
            status_code=400, content={"detail": exc.message, "field": exc.field}
        )

    @api.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        """Malformed bodies and parameters answer like any other invalid field."""
        error = exc.errors()[0]
        loc = [str(part) for part in error["loc"] if part not in ("body", "query", "path")]
        return JSONResponse(
            status_code=400, content={"detail": error["msg"], "field": ".".join(loc) or None}
        )

    @api.exception_handler(errors.AuthenticationError)
    async def authentication_error(request: Request, exc: errors.AuthenticationError):
        return JSONResponse(status_code=401, content={"detail": str(exc)})

    @api.exception_handler(errors.AccountNotFoundError)
    async def not_found_error(request: Request, exc: errors.AccountNotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @api.post("/register", status_code=201)
    async def register(register_details: RegisterDetails) -> dict:
        """Registers new account with the default role."""
        account = await manager.create(register_details.model_dump(exclude_none=True))
        return manager.serialize(account)

    @api.post("/login", response_class=PlainTextResponse)
    async def login(login_details: LoginDetails) -> str:
        """Get verification JWT token.

        Raises:
            AuthenticationError: if invalid login and/or password
        """
        account = await manager.authenticate(login_details.login, login_details.password)
        return manager.generate_verification_token(account)

    async def current_account(public_id=Depends(authorizer)) -> Account:
        """The caller as stored now; a token outlives role and status changes."""
        try:
            account = await manager.get(public_id)
        except errors.AccountNotFoundError:
            raise HTTPException(status_code=401, detail="Account no longer exists")
        if not account.active:
            raise HTTPException(status_code=403, detail="Account is disabled")
        return account

    def restrict_access(to: list[str]):
        async def account_with_restricted_roles(
            account: Account = Depends(current_account),
        ) -> Account:
            if account.role not in to:
                raise HTTPException(status_code=403, detail="Forbidden")
            return account

        return account_with_restricted_roles

    @api.get("/me")
    async def me(account: Account = Depends(current_account)) -> dict:
        return manager.serialize(account)

    @api.patch("/me")
    async def update_me(
        profile: ProfileUpdate, account: Account = Depends(current_account)
    ) -> dict:
        account = await manager.update(account, profile.model_dump(exclude_unset=True))
        return manager.serialize(account)

    @api.post("/forgot-password", response_class=PlainTextResponse)
    async def forgot_password(details: ForgotPasswordDetails) -> str:
        """Issues a reset token. The answer does not reveal whether the email exists."""
        account = await manager.check_existing_field("email", details.email)
        if account is not None and account.active:
            token = manager.generate_password_reset_token(account)
            await manager.save(account)
            send_reset_token(account, token)
        return "If the email is registered, a reset token has been sent"

    @api.post("/reset-password", response_class=PlainTextResponse)
    async def reset_password(details: ResetPasswordDetails) -> str:
        await manager.reset_password(details.token, details.password)
        return "Password has been reset"

    @api.post(
        "/change-role",
        dependencies=[Depends(restrict_access(to=["admin"]))],
        response_class=PlainTextResponse,
    )
    async def change_role(
        role: str, public_user_id: Optional[str] = None, email: Optional[str] = None
    ) -> str:
        """Changes account's role either by public_user_id or by email.

        Raises:
            HTTPException: if not exactly one of public_user_id or email is provided
            AccountNotFoundError: Account not found
        """
        if (public_user_id is None) + (email is None) != 1:
            raise HTTPException(
                status_code=400, detail="Provide either public_user_id or email"
            )
        if public_user_id is not None:
            account = await manager.get(public_user_id)
        else:
            account = await manager.check_existing_field("email", email)
            if account is None:
                raise errors.AccountNotFoundError(f"Account {email} not found")
        account = await manager.change_role(account, role)
        return f"Role for {account.email} changed to {account.role}"

    @api.post("/accounts/{public_id}/active")
    async def set_active(
        public_id: str,
        active: bool,
        admin: Account = Depends(restrict_access(to=["admin"])),
    ) -> dict:
        account = await manager.set_active(await manager.get(public_id), active)
        return manager.serialize(account)

    @api.delete("/accounts/{public_id}", status_code=204)
    async def delete_account(
        public_id: str, admin: Account = Depends(restrict_access(to=["admin"]))
    ) -> None:
        await manager.soft_delete(
            await manager.get(public_id), deleted_by=admin.public_id
        )

    @api.post("/accounts/{public_id}/restore")
    async def restore_account(
        public_id: str, admin: Account = Depends(restrict_access(to=["admin"]))
    ) -> dict:
        return manager.serialize(await manager.restore(public_id))

    return api
