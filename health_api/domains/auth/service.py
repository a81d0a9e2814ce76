"""
File: health_api/domains/auth/service.py
Description: 认证领域服务 (Service)

本模块封装认证核心业务逻辑：
1. Authenticator: 从 Authorization 头解析出已认证主体 (或匿名)
2. AuthService: 手机号密码登录，签发/复用 Token

认证失败 (无凭证、方案错误、Token 无效或过期、用户已删除) 一律视为匿名，
只有鉴权闸门在 required 策略下才会拒绝请求。
存储或缓存不可用等协作方故障原样向上抛出。
"""

from health_api.core.exceptions import ValidationException
from health_api.core.logging import logger
from health_api.core.security import InvalidTokenError, PasswordHasher, TokenService
from health_api.db.models.user import User
from health_api.domains.auth.cache import PrincipalCache
from health_api.domains.auth.constants import TOKEN_SCHEMES, AuthError
from health_api.domains.auth.schemas import LoginRequest, Principal
from health_api.domains.users.repository import UserRepository
from health_api.utils.masking import mask_phone


def extract_token(authorization: str | None) -> str | None:
    """
    从 Authorization 头提取 Token。
    格式: "Token <jwt>" 或 "Bearer <jwt>"，方案名大小写敏感。
    """
    if not authorization:
        return None

    scheme, _, credentials = authorization.partition(" ")
    if scheme not in TOKEN_SCHEMES or not credentials:
        return None

    return credentials


class Authenticator:
    """
    请求认证器。
    """

    def __init__(
        self,
        tokens: TokenService,
        user_repo: UserRepository,
        cache: PrincipalCache,
    ):
        self.tokens = tokens
        self.user_repo = user_repo
        self.cache = cache

    async def authenticate(self, authorization: str | None) -> Principal | None:
        """
        解析当前请求的主体。

        流程:
        1. 提取 Token (缺失或方案不符 -> 匿名)
        2. 查缓存，命中直接返回
        3. 验签 + 过期检查 (失败 -> 匿名)
        4. 按 Token 中的 id 查库 (用户不存在 -> 匿名)
        5. 构造主体并写入缓存
        """
        token = extract_token(authorization)
        if token is None:
            return None

        cached = await self.cache.get(token)
        if cached is not None:
            return cached

        try:
            payload = self.tokens.verify(token)
        except InvalidTokenError as exc:
            logger.bind(reason=str(exc)).debug("Token rejected, treating as anonymous")
            return None

        user = await self.user_repo.get(payload.id)
        if user is None:
            return None

        principal = Principal.from_user(user, token)
        await self.cache.set(principal, remaining=payload.exp - self.tokens.now())

        logger.bind(phone_number=mask_phone(user.phone_number)).info(
            "Authenticated via JWT"
        )
        return principal


class AuthService:
    """
    认证服务类 (登录)。
    """

    def __init__(
        self,
        user_repo: UserRepository,
        tokens: TokenService,
        hasher: PasswordHasher,
    ):
        self.user_repo = user_repo
        self.tokens = tokens
        self.hasher = hasher

    async def login(
        self, login_data: LoginRequest, principal: Principal | None = None
    ) -> tuple[User, str]:
        """
        手机号密码登录。

        流程:
        1. 按手机号查库 (不存在 -> 422 phoneNumber)
        2. 校验密码哈希 (线程池，不匹配 -> 422 password)
        3. 若当前请求已以同一用户身份认证，复用其 Token，否则签发新 Token
        """
        user = await self.user_repo.get_by_phone_number(login_data.phone_number)
        if not user:
            raise ValidationException(
                AuthError.ACCOUNT_NOT_FOUND, field="phoneNumber", reason="账号不存在"
            )

        if not await self.hasher.verify_async(
            login_data.password, user.hashed_password
        ):
            raise ValidationException(
                AuthError.PASSWORD_INCORRECT, field="password", reason="密码不正确"
            )

        if principal is not None and principal.id == user.id:
            token = principal.token
        else:
            token = self.tokens.issue(user.id, user.phone_number)

        logger.bind(
            user_id=str(user.id), phone_number=mask_phone(user.phone_number)
        ).info("User logged in")

        return user, token
