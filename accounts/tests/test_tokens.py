from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import HTTPException

from accounts.authenticator import Authentificator
from common.authorizer import Authorizer

from .conftest import TEST_KEY


@pytest.mark.asyncio
async def test_verification_token_payload(manager, alice):
    token = manager.generate_verification_token(alice)
    payload = jwt.decode(token, TEST_KEY, algorithms=["HS256"])
    assert payload["id"] == alice.public_id
    assert payload["email"] == "alice@x.com"
    assert payload["role"] == "user"
    assert payload["active"] is True
    assert payload["exp"] - payload["iat"] == int(timedelta(days=10).total_seconds())


@pytest.mark.asyncio
async def test_verification_token_is_signed_with_configured_key(manager, alice):
    token = manager.generate_verification_token(alice)
    with pytest.raises(jwt.InvalidSignatureError):
        jwt.decode(token, "another-key", algorithms=["HS256"])


@pytest.mark.asyncio
async def test_authorizer_reads_account_id(manager, alice):
    authorizer = Authorizer(key=TEST_KEY, algorithm="HS256")
    token = manager.generate_verification_token(alice)
    assert authorizer.decode_token(token)["id"] == alice.public_id


@pytest.mark.asyncio
async def test_authorizer_rejects_expired_and_disabled_tokens(alice):
    authorizer = Authorizer(key=TEST_KEY, algorithm="HS256")
    encoder = Authentificator(key=TEST_KEY, algorithm="HS256", expire=timedelta(days=10))

    expired = encoder.encode_token(alice, now=datetime.now(tz=timezone.utc) - timedelta(days=11))
    with pytest.raises(HTTPException) as exc_info:
        authorizer.decode_token(expired)
    assert exc_info.value.status_code == 401

    alice.active = False
    disabled = encoder.encode_token(alice)
    with pytest.raises(HTTPException) as exc_info:
        authorizer.decode_token(disabled)
    assert exc_info.value.status_code == 403

    with pytest.raises(HTTPException) as exc_info:
        authorizer.decode_token("not-a-token")
    assert exc_info.value.status_code == 401
