"""
File: health_api/domains/auth/constants.py
Description: 认证领域常量定义 (错误码 + 成功提示)
Namespace: auth.*

1. Error 定义: 继承 BaseErrorCode，包含 (HTTP状态, 业务码, 默认文案)
2. Msg 定义: 纯字符串常量，用于 Router 返回成功响应
"""

from starlette.status import HTTP_422_UNPROCESSABLE_ENTITY

from health_api.core.error_code import BaseErrorCode


class AuthError(BaseErrorCode):
    """
    认证领域错误定义
    登录失败以 422 + 字段级错误返回 (phoneNumber / password)
    """

    ACCOUNT_NOT_FOUND = (
        HTTP_422_UNPROCESSABLE_ENTITY,
        "auth.account_not_found",
        "账号不存在",
    )
    PASSWORD_INCORRECT = (
        HTTP_422_UNPROCESSABLE_ENTITY,
        "auth.password_incorrect",
        "账号或密码错误",
    )


class AuthMsg:
    """
    认证领域成功提示文案
    """

    LOGIN_SUCCESS = "登录成功"


# Authorization 头允许的认证方案 (大小写敏感)
TOKEN_SCHEMES = frozenset({"Token", "Bearer"})

# Redis 缓存 Key 前缀
PRINCIPAL_CACHE_PREFIX = "auth:principal:"
USER_TOKENS_PREFIX = "auth:user_tokens:"
