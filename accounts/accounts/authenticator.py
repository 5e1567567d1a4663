import jwt

from datetime import datetime, timedelta, timezone

from accounts.dbmodel import Account


class Authentificator:
    def __init__(self, key: str, algorithm: str, expire: timedelta) -> None:
        self.key = key
        self.algorithm = algorithm
        self.expire = expire

    def encode_token(self, account: Account, now: datetime | None = None) -> str:
        issued_at = now or datetime.now(tz=timezone.utc)
        payload = {
            "exp": issued_at + self.expire,
            "iat": issued_at,
            "id": account.public_id,
            "email": account.email,
            "role": account.role,
            "active": account.active,
        }
        return jwt.encode(payload, self.key, algorithm=self.algorithm)
