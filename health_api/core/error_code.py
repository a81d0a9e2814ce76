"""
File: health_api/core/error_code.py
Description: 全局错误码基类与系统级错误定义

本模块定义了错误码的枚举基类及系统通用的错误状态。
语义化 HTTP 状态码 + 字符串命名空间。

定义结构 Tuple(http_status, code, message):
1. http_status: HTTP 响应状态码 (4xx/5xx)
2. code: 字符串业务码 (格式: domain.reason)，渲染为错误体中的 "type"
3. message: 默认的人类可读错误消息
"""

from enum import Enum

from starlette.status import (
    HTTP_401_UNAUTHORIZED,
    HTTP_404_NOT_FOUND,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
)


class BaseErrorCode(Enum):
    """
    错误码枚举基类
    所有业务领域的错误码 Enum 必须继承此类。

    Value Tuple Definition:
    (http_status, code, msg)
    """

    @property
    def http_status(self) -> int:
        """获取映射的 HTTP 状态码"""
        return self.value[0]

    @property
    def code(self) -> str:
        """获取业务错误标识 (domain.reason)"""
        return self.value[1]

    @property
    def msg(self) -> str:
        """获取默认错误描述信息"""
        return self.value[2]


class SystemErrorCode(BaseErrorCode):
    """
    系统通用错误定义 (System Domain)
    包含: 参数校验、认证基础、系统故障
    """

    # HTTP 422: 参数校验失败 (Pydantic 校验会自动映射到这里)
    INVALID_PARAMS = (
        HTTP_422_UNPROCESSABLE_ENTITY,
        "system.invalid_params",
        "参数校验失败",
    )

    # HTTP 401: 鉴权闸门拒绝 (仅 required 策略的接口会触发)
    UNAUTHORIZED = (HTTP_401_UNAUTHORIZED, "system.unauthorized", "身份认证失败")

    # HTTP 404: 通用资源不存在
    NOT_FOUND = (HTTP_404_NOT_FOUND, "system.not_found", "资源不存在")

    # HTTP 500: 服务端故障 (需要监控报警)
    INTERNAL_ERROR = (
        HTTP_500_INTERNAL_SERVER_ERROR,
        "system.internal_error",
        "系统内部错误",
    )
