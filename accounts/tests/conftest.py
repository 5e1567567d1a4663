import pytest
from sqlalchemy.ext.asyncio.engine import create_async_engine
from sqlmodel import SQLModel

from accounts.config import Settings
from accounts.manager import AccountManager

TEST_KEY = "test-signing-key"


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'accounts.db'}"


@pytest.fixture
def settings(db_url):
    # lowest bcrypt work factor keeps the suite fast
    return Settings(jwt_key=TEST_KEY, hash_rounds=4, db_url=db_url)


@pytest.fixture
async def engine(settings):
    engine = create_async_engine(settings.db_url)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def manager(settings, engine):
    return AccountManager(settings, engine)


@pytest.fixture
async def alice(manager):
    return await manager.create(
        {"username": "alice", "email": "alice@x.com", "password": "longpass1"}
    )
