import jwt
from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer


class Authorizer:
    def __init__(self, key: str, algorithm: str):
        self.key = key
        self.algorithm = algorithm

    def decode_token(self, token: str) -> dict:
        try:
            payload = jwt.decode(token, self.key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise HTTPException(status_code=401, detail="Signature has expired")
        except jwt.InvalidTokenError:
            raise HTTPException(status_code=401, detail="Invalid token")
        if not payload.get("active", False):
            raise HTTPException(status_code=403, detail="Account is disabled")
        return payload

    def __call__(self, auth: HTTPAuthorizationCredentials = Security(HTTPBearer())):
        return self.decode_token(auth.credentials)["id"]
