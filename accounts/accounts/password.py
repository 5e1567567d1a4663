import bcrypt
from fastapi.concurrency import run_in_threadpool

# bcrypt only looks at the first 72 bytes of a secret
max_password_bytes = 72


def get_password_hash(password: str, rounds: int) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    secret = password.encode("utf-8")
    if not password_hash or len(secret) > max_password_bytes:
        return False
    try:
        return bcrypt.checkpw(secret, password_hash.encode("utf-8"))
    except ValueError:
        # stored value is not a bcrypt hash
        return False


async def hash_password(password: str, rounds: int) -> str:
    """Hash off the event loop; bcrypt blocks for the whole work factor."""
    return await run_in_threadpool(get_password_hash, password, rounds)


async def compare_password(password: str, password_hash: str) -> bool:
    return await run_in_threadpool(verify_password, password, password_hash)
