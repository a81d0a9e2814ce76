"""
File: health_api/domains/auth/router.py
Description: 认证领域 HTTP 路由层

本模块定义认证相关的 API 端点：
1. POST /login: 手机号密码登录，返回用户资料 + Token

挂载于 {API_PREFIX}/users 前缀下 (与账号接口同一资源路径)。
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from health_api.api.deps import OptionalPrincipal, TokenServiceDep, UserRepoDep
from health_api.core.response import ResponseModel
from health_api.core.security import PasswordHasher, get_password_hasher
from health_api.domains.auth.constants import AuthMsg
from health_api.domains.auth.schemas import LoginRequest
from health_api.domains.auth.service import AuthService
from health_api.domains.users.router import with_token
from health_api.domains.users.schemas import UserWithToken

router = APIRouter()


async def get_auth_service(
    user_repo: UserRepoDep,
    tokens: TokenServiceDep,
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
) -> AuthService:
    """
    构造 AuthService 实例。
    复用 User 领域的 Repository。
    """
    return AuthService(user_repo=user_repo, tokens=tokens, hasher=hasher)


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


@router.post(
    "/login",
    response_model=ResponseModel[UserWithToken],
    summary="用户登录",
    description="使用手机号密码登录。已携带同一用户的有效 Token 时复用该 Token，否则签发新 Token。",
)
async def login(
    request: Request,
    login_data: LoginRequest,
    principal: OptionalPrincipal,
    service: AuthServiceDep,
) -> ResponseModel[UserWithToken]:
    """
    登录接口
    """
    user, token = await service.login(login_data, principal)
    req_id = getattr(request.state, "request_id", None)

    return ResponseModel.success(
        data=with_token(user, token), message=AuthMsg.LOGIN_SUCCESS, request_id=req_id
    )
