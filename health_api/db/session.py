"""
File: health_api/db/session.py
Description: 数据库会话管理 (Async SQLAlchemy)

本模块负责：
1. 创建全局唯一的 AsyncEngine (postgresql+asyncpg，本地/测试可用 sqlite+aiosqlite)
2. 连接池参数仅对 PostgreSQL 生效 (SQLite 使用 SQLAlchemy 默认池)
3. 创建 AsyncSession 工厂 (AsyncSessionLocal)
4. 启动建表与引擎关闭函数
"""

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from health_api.core.config import settings
from health_api.db.models import Base


def _engine_options() -> dict[str, Any]:
    options: dict[str, Any] = {
        "echo": settings.DEBUG,
    }
    if settings.is_sqlite:
        return options

    options.update(
        pool_pre_ping=settings.DB_POOL_PRE_PING,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )
    return options


# 1. 创建异步引擎 (惰性连接，首次使用时才建立连接)
engine: AsyncEngine = create_async_engine(
    str(settings.SQLALCHEMY_DATABASE_URI), **_engine_options()
)

# 2. 创建异步会话工厂
# expire_on_commit=False: 避免 commit 后访问属性触发隐式 IO (Async 模式下不支持)
AsyncSessionLocal: async_sessionmaker[AsyncSession] = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


async def create_tables() -> None:
    """启动时按模型元数据建表 (已存在的表不受影响)。"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_engine() -> None:
    """
    关闭数据库引擎，释放连接池资源。
    应在应用 shutdown 阶段调用。
    """
    await engine.dispose()
