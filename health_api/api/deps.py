"""
File: health_api/api/deps.py
Description: 全局依赖注入定义 (DB Session + 认证 + 鉴权闸门)

本模块负责：
1. 数据库会话管理 (get_db / DBSession)
2. Token 解析缓存与认证器装配 (PrincipalCacheDep / AuthenticatorDep)
3. 鉴权闸门：
   - AuthPolicy.OPTIONAL: 认证失败视为匿名，接口照常执行 (API 路由默认)
   - AuthPolicy.REQUIRED: 未能解析出主体时返回 401，接口函数不会被调用
   - AuthPolicy.NONE: 不做认证

认证结果挂载在 request.state.principal 上，并作为依赖返回值注入接口，
这是接口获知调用者身份的唯一渠道。
同一请求内 get_principal 只执行一次 (FastAPI 依赖缓存)。
"""

from collections.abc import AsyncGenerator, Callable, Coroutine
from enum import StrEnum
from typing import Annotated, Any

from fastapi import Depends, Header, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from health_api.core.config import settings
from health_api.core.exceptions import UnauthorizedException
from health_api.core.redis import get_redis
from health_api.core.security import TokenService, get_token_service
from health_api.db.models.user import User
from health_api.db.session import AsyncSessionLocal
from health_api.domains.auth.cache import PrincipalCache
from health_api.domains.auth.schemas import Principal
from health_api.domains.auth.service import Authenticator
from health_api.domains.users.repository import UserRepository

# ------------------------------------------------------------------------------
# 1. Database Dependencies
# ------------------------------------------------------------------------------


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    获取异步数据库会话依赖。
    使用 async with 确保请求结束时自动关闭 session。
    """
    async with AsyncSessionLocal() as session:
        yield session


DBSession = Annotated[AsyncSession, Depends(get_db)]
TokenServiceDep = Annotated[TokenService, Depends(get_token_service)]


async def get_user_repository(session: DBSession) -> UserRepository:
    """用户仓储 (凭证存储)"""
    return UserRepository(model=User, session=session)


UserRepoDep = Annotated[UserRepository, Depends(get_user_repository)]


# ------------------------------------------------------------------------------
# 2. Authentication Dependencies
# ------------------------------------------------------------------------------


async def get_principal_cache(
    redis: Annotated[Redis, Depends(get_redis)],
) -> PrincipalCache:
    return PrincipalCache(redis=redis, ttl=settings.TOKEN_CACHE_TTL_SECONDS)


PrincipalCacheDep = Annotated[PrincipalCache, Depends(get_principal_cache)]


async def get_authenticator(
    tokens: TokenServiceDep,
    user_repo: UserRepoDep,
    cache: PrincipalCacheDep,
) -> Authenticator:
    return Authenticator(tokens=tokens, user_repo=user_repo, cache=cache)


AuthenticatorDep = Annotated[Authenticator, Depends(get_authenticator)]


async def get_principal(
    request: Request,
    authenticator: AuthenticatorDep,
    authorization: Annotated[str | None, Header()] = None,
) -> Principal | None:
    """
    运行认证器并将结果挂载到 request.state.principal。
    无凭证或凭证无效时返回 None (匿名)。
    """
    principal = await authenticator.authenticate(authorization)
    request.state.principal = principal
    return principal


OptionalPrincipal = Annotated[Principal | None, Depends(get_principal)]


async def require_principal(principal: OptionalPrincipal) -> Principal:
    """
    required 策略：未认证直接拒绝 (401)，接口函数不会执行。
    """
    if principal is None:
        raise UnauthorizedException()
    return principal


# 已登录用户依赖
# 用法: async def endpoint(principal: CurrentPrincipal): ...
CurrentPrincipal = Annotated[Principal, Depends(require_principal)]


# ------------------------------------------------------------------------------
# 3. Authorization Gate (鉴权闸门)
# ------------------------------------------------------------------------------


class AuthPolicy(StrEnum):
    """接口级鉴权策略"""

    REQUIRED = "required"
    OPTIONAL = "optional"
    NONE = "none"


async def skip_authentication(request: Request) -> None:
    """none 策略：不认证，主体为空"""
    request.state.principal = None


GateDependency = Callable[..., Coroutine[Any, Any, Principal | None]]

_GATES: dict[AuthPolicy, GateDependency] = {
    AuthPolicy.REQUIRED: require_principal,
    AuthPolicy.OPTIONAL: get_principal,
    AuthPolicy.NONE: skip_authentication,
}


def auth_gate(policy: AuthPolicy = AuthPolicy.OPTIONAL) -> GateDependency:
    """
    返回对应策略的闸门依赖。

    用法:
        router = APIRouter(dependencies=[Depends(auth_gate(AuthPolicy.OPTIONAL))])
    """
    return _GATES[policy]
