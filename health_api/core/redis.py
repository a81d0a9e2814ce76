"""
File: health_api/core/redis.py
Description: Redis 客户端管理 (Async)

本模块负责：
1. 创建全局 Redis 客户端 (基于 redis-py 的 asyncio 扩展，内部维护连接池)
2. 提供依赖注入所需的 Redis 客户端生成器
3. 管理连接生命周期 (关闭)

Redis 在本服务中只承载 Token 解析缓存，属于性能优化：
缓存未命中时一律重新验签，缓存内容丢失不影响正确性。

使用 decode_responses=True，确保读取的数据自动解码为 str。
"""

from collections.abc import AsyncGenerator

from redis.asyncio import Redis, from_url

from health_api.core.config import settings

redis_client: Redis = from_url(
    settings.REDIS_URL,
    encoding="utf-8",
    decode_responses=True,
)


async def get_redis() -> AsyncGenerator[Redis, None]:
    """
    获取 Redis 客户端依赖。
    封装为依赖便于在测试中 override 为内存实现。
    """
    yield redis_client


async def close_redis() -> None:
    """
    关闭 Redis 连接池。
    应在应用 lifespan shutdown 阶段调用。
    """
    await redis_client.aclose()
