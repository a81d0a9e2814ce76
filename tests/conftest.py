"""
File: tests/conftest.py
Description: Pytest 全局 Fixtures 配置 (Async + 内存 SQLite + 内存 Redis)

1. 在导入应用之前写入测试环境变量 (密钥、SQLite DSN、低成本哈希参数)
2. 每个测试使用独立的内存数据库 (StaticPool 保证同一连接)
3. 用 FakeRedis 替代真实 Redis，承载 Token 解析缓存
4. 头像存储指向 pytest 临时目录
"""

from __future__ import annotations

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-health-accounts")
os.environ.setdefault("SQLALCHEMY_DATABASE_URI", "sqlite+aiosqlite://")
os.environ.setdefault("PASSWORD_HASH_TIME_COST", "1")
os.environ.setdefault("PASSWORD_HASH_MEMORY_COST", "1024")
os.environ.setdefault("PASSWORD_HASH_PARALLELISM", "1")

from collections.abc import AsyncGenerator  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from health_api.api.deps import get_db  # noqa: E402
from health_api.core.config import settings  # noqa: E402
from health_api.core.redis import get_redis  # noqa: E402
from health_api.core.security import password_hasher, token_service  # noqa: E402
from health_api.db.models import Base, User  # noqa: E402
from health_api.domains.auth.cache import PrincipalCache  # noqa: E402
from health_api.domains.users.repository import UserRepository  # noqa: E402
from health_api.domains.users.storage import (  # noqa: E402
    AvatarStorage,
    get_avatar_storage,
)
from health_api.main import app  # noqa: E402


# ------------------------------------------------------------------------------
# 1. 内存 Redis
# ------------------------------------------------------------------------------


class FakeRedis:
    """覆盖 PrincipalCache 用到的 redis.asyncio 命令子集"""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, name: str) -> str | None:
        return self.store.get(name)

    async def set(self, name: str, value: Any, ex: int | None = None) -> bool:
        self.store[name] = value.decode() if isinstance(value, bytes) else value
        if ex is not None:
            self.ttls[name] = ex
        return True

    async def sadd(self, name: str, *values: str) -> int:
        self.sets.setdefault(name, set()).update(values)
        return len(values)

    async def smembers(self, name: str) -> set[str]:
        return set(self.sets.get(name, set()))

    async def expire(self, name: str, time: int) -> bool:
        self.ttls[name] = time
        return name in self.store or name in self.sets

    async def delete(self, *names: str) -> int:
        removed = 0
        for name in names:
            if self.store.pop(name, None) is not None:
                removed += 1
            if self.sets.pop(name, None) is not None:
                removed += 1
            self.ttls.pop(name, None)
        return removed


# ------------------------------------------------------------------------------
# 2. 全局 Fixtures
# ------------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    每个测试独立的内存 SQLite 引擎。
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """
    获取测试用的数据库会话。
    """
    async_session_factory = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_factory() as session:
        yield session


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def principal_cache(fake_redis: FakeRedis) -> PrincipalCache:
    return PrincipalCache(redis=fake_redis, ttl=settings.TOKEN_CACHE_TTL_SECONDS)  # type: ignore[arg-type]


@pytest.fixture
def user_repo(db_session: AsyncSession) -> UserRepository:
    return UserRepository(model=User, session=db_session)


@pytest.fixture
def avatar_storage(tmp_path: Path) -> AvatarStorage:
    return AvatarStorage(root=tmp_path / "uploads", max_bytes=1024, chunk_size=16)


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, fake_redis: FakeRedis, avatar_storage: AvatarStorage
) -> AsyncGenerator[AsyncClient, None]:
    """
    获取异步 HTTP 客户端 (不触发 lifespan，依赖全部 override)。
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def override_get_redis() -> AsyncGenerator[FakeRedis, None]:
        yield fake_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_avatar_storage] = lambda: avatar_storage

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"  # type: ignore
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ------------------------------------------------------------------------------
# 3. 数据辅助
# ------------------------------------------------------------------------------


def make_payload(**overrides: Any) -> dict[str, Any]:
    """注册请求体 (对外 camelCase 字段)"""
    payload: dict[str, Any] = {
        "phoneNumber": "0912345678",
        "password": "secret123",
        "fullname": "Nguyen Van A",
        "birthday": "1990-01-01",
        "gender": True,
        "city": "Hanoi",
        "address": "12 Tran Hung Dao",
        "inviteCode": "INV001",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def user_payload() -> Any:
    """注册请求体工厂: user_payload(phoneNumber="0911111111")"""
    return make_payload


@pytest_asyncio.fixture
async def stored_user(user_repo: UserRepository) -> User:
    """直接写库的用户 (密码 secret123)"""
    user = await user_repo.create(
        {
            "phone_number": "0987654321",
            "hashed_password": password_hasher.hash("secret123"),
            "fullname": "Tran Thi B",
            "birthday": "1995-05-05",
            "gender": False,
            "city": "Da Nang",
            "address": None,
            "invite_code": None,
            "image": None,
        }
    )
    await user_repo.session.commit()
    return user


@pytest.fixture
def stored_user_token(stored_user: User) -> str:
    return token_service.issue(stored_user.id, stored_user.phone_number)
