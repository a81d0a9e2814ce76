"""
File: health_api/core/security.py
Description: 安全工具模块 (Argon2id + JWT)

本模块负责：
1. PasswordHasher: 密码加盐哈希与校验 (Argon2id，固定工作因子)
2. TokenService: 签发/校验带过期时间的 JWT，负载 {id, phoneNumber, exp}
3. 异步封装: 针对 CPU 密集型哈希操作提供线程池版本
4. 进程级单例: 由 Settings 在启动时构造一次，之后只读
"""

import time
from collections.abc import Callable
from datetime import timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt
from pwdlib import PasswordHash
from pwdlib.exceptions import UnknownHashError
from pwdlib.hashers.argon2 import Argon2Hasher
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.concurrency import run_in_threadpool

from health_api.core.config import settings

# ------------------------------------------------------------------------------
# 1. 密码处理 (Password Hashing)
# ------------------------------------------------------------------------------


class PasswordHasher:
    """
    Argon2id 密码哈希器。

    工作因子 (time_cost / memory_cost / parallelism) 在构造时固定。
    每次 hash 使用随机盐，同一明文得到不同摘要，但都能通过 verify。
    """

    def __init__(
        self,
        time_cost: int = 3,
        memory_cost: int = 65536,
        parallelism: int = 4,
    ):
        self._password_hash = PasswordHash(
            (
                Argon2Hasher(
                    time_cost=time_cost,
                    memory_cost=memory_cost,
                    parallelism=parallelism,
                ),
            )
        )

    def hash(self, password: str) -> str:
        """
        生成密码哈希值 (Argon2id)。

        Args:
            password: 明文密码

        Returns:
            str: 加密后的哈希字符串
        """
        return self._password_hash.hash(password)

    def verify(self, password: str, hashed_password: str) -> bool:
        """
        验证明文密码与哈希值是否匹配。
        哈希格式无法识别或已损坏时返回 False，不抛异常。
        """
        try:
            return self._password_hash.verify(password, hashed_password)
        except UnknownHashError:
            return False

    async def hash_async(self, password: str) -> str:
        """异步生成密码哈希（在线程池中执行，避免阻塞事件循环）。"""
        return await run_in_threadpool(self.hash, password)

    async def verify_async(self, password: str, hashed_password: str) -> bool:
        """异步验证密码（在线程池中执行，避免阻塞事件循环）。"""
        return await run_in_threadpool(self.verify, password, hashed_password)


# ------------------------------------------------------------------------------
# 2. JWT 处理 (JSON Web Token)
# ------------------------------------------------------------------------------


class InvalidTokenError(Exception):
    """
    Token 校验失败 (签名错误 / 格式错误 / 已过期)。
    仅在认证流程内部使用，由 Authenticator 吸收为"匿名"，不会直接返回给客户端。
    """


class TokenPayload(BaseModel):
    """解码后的 Token 负载"""

    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    phone_number: str = Field(alias="phoneNumber")
    exp: int


class TokenService:
    """
    无状态 Token 服务。

    签名密钥在构造时注入，实例不持有任何可变状态。
    过期判断使用秒级 Unix 时间戳，exp == now 视为已过期。
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        lifetime: timedelta = timedelta(days=60),
        clock: Callable[[], float] = time.time,
    ):
        if not secret_key:
            raise ValueError("TokenService requires a non-empty secret key")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._lifetime = int(lifetime.total_seconds())
        self._clock = clock

    def now(self) -> int:
        """当前 Unix 时间 (秒)"""
        return int(self._clock())

    def issue(self, user_id: Any, phone_number: str) -> str:
        """
        签发 Token。

        Args:
            user_id: 用户 ID (UUID 或字符串)
            phone_number: 冗余手机号，仅用于诊断，不作为身份依据

        Returns:
            str: 编码后的 JWT 字符串
        """
        claims = {
            "id": str(user_id),
            "phoneNumber": phone_number,
            "exp": self.now() + self._lifetime,
        }
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenPayload:
        """
        校验签名与有效期并返回负载。

        Raises:
            InvalidTokenError: 签名无效、负载格式错误或已过期
        """
        try:
            # 过期由下方按秒级边界自行判断 (jose 对 exp == now 视为有效)
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidTokenError(str(exc)) from None

        try:
            payload = TokenPayload.model_validate(claims)
        except ValidationError:
            raise InvalidTokenError("malformed token payload") from None

        if payload.exp <= self.now():
            raise InvalidTokenError("token expired")

        return payload


# ------------------------------------------------------------------------------
# 3. 进程级单例
# ------------------------------------------------------------------------------

password_hasher = PasswordHasher(
    time_cost=settings.PASSWORD_HASH_TIME_COST,
    memory_cost=settings.PASSWORD_HASH_MEMORY_COST,
    parallelism=settings.PASSWORD_HASH_PARALLELISM,
)

token_service = TokenService(
    secret_key=settings.SECRET_KEY,  # type: ignore[arg-type]
    algorithm=settings.ALGORITHM,
    lifetime=timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS),
)


def get_token_service() -> TokenService:
    """Token 服务依赖 (测试中可 override)"""
    return token_service


def get_password_hasher() -> PasswordHasher:
    """密码哈希器依赖 (测试中可 override)"""
    return password_hasher
