"""
File: health_api/domains/auth/cache.py
Description: Token 解析缓存 (Redis)

缓存 "Token -> 已解析主体"，避免重复验签与查库。
1. Key 使用 Token 的 SHA-256 摘要，Redis 中不出现原始 Token
2. TTL = min(TOKEN_CACHE_TTL_SECONDS, Token 剩余有效期)，缓存条目不会比 Token 活得更久
3. 按用户维护索引集合，用户资料变更/删除时整体失效

缓存只是优化：未命中时由 Authenticator 重新验签并查库。
"""

import hashlib
from typing import Any

import orjson
from redis.asyncio import Redis

from health_api.domains.auth.constants import PRINCIPAL_CACHE_PREFIX, USER_TOKENS_PREFIX
from health_api.domains.auth.schemas import Principal


class PrincipalCache:
    """Token 解析结果缓存"""

    def __init__(self, redis: Redis, ttl: int):
        self.redis = redis
        self.ttl = ttl

    @staticmethod
    def _key(token: str) -> str:
        digest = hashlib.sha256(token.encode("utf-8")).hexdigest()
        return f"{PRINCIPAL_CACHE_PREFIX}{digest}"

    @staticmethod
    def _index_key(user_id: Any) -> str:
        return f"{USER_TOKENS_PREFIX}{user_id}"

    async def get(self, token: str) -> Principal | None:
        raw = await self.redis.get(self._key(token))
        if raw is None:
            return None
        return Principal.model_validate({**orjson.loads(raw), "token": token})

    async def set(self, principal: Principal, remaining: int) -> None:
        """
        写入缓存。

        Args:
            principal: 已解析主体
            remaining: Token 剩余有效秒数
        """
        ttl = min(self.ttl, remaining)
        if ttl <= 0:
            return

        key = self._key(principal.token)
        value = orjson.dumps(principal.model_dump(mode="json", exclude={"token"}))
        index_key = self._index_key(principal.id)

        await self.redis.set(key, value, ex=ttl)
        await self.redis.sadd(index_key, key)
        await self.redis.expire(index_key, self.ttl)

    async def invalidate_user(self, user_id: Any) -> None:
        """使某用户的全部缓存条目失效"""
        index_key = self._index_key(user_id)
        keys = await self.redis.smembers(index_key)
        await self.redis.delete(index_key, *keys)
