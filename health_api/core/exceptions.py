"""
File: health_api/core/exceptions.py
Description: 业务异常类与全局异常处理器

本模块负责：
1. 业务异常基类（AppException）接受 BaseErrorCode 枚举
2. 常用派生异常：参数校验 (422)、未认证 (401)、资源不存在 (404)、传输失败
3. 全局异常处理器将异常渲染为固定错误体：
   - 422: {"errors": {"<field>": "<message>"}}
   - 其他: {"name", "message", "code", "type", "data"}
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import HTTP_404_NOT_FOUND, HTTP_422_UNPROCESSABLE_ENTITY

from health_api.core.error_code import BaseErrorCode, SystemErrorCode
from health_api.core.logging import logger
from health_api.core.response import PrettyORJSONResponse
from health_api.utils.masking import mask_validation_errors

# ------------------------------------------------------------------------------
# 1. 自定义业务异常类
# ------------------------------------------------------------------------------


class AppException(Exception):
    """
    应用基础异常类。

    用法示例:
        raise AppException(UserErrorCode.AVATAR_TOO_LARGE)
        raise AppException(SystemErrorCode.NOT_FOUND, message="头像不存在")
    """

    def __init__(
        self,
        error: BaseErrorCode,
        message: str = "",
        data: Any = None,
    ):
        # 自动从枚举中解构: (HTTP状态, 业务码, 默认文案)
        self.http_status = error.http_status
        self.code = error.code
        self.message = message or error.msg
        self.data = data
        super().__init__(self.message)


class ValidationException(AppException):
    """
    字段级校验失败 (422)。
    data 为 [{"field": ..., "message": ...}] 列表，由处理器折叠为 errors 字典。
    """

    def __init__(
        self,
        error: BaseErrorCode = SystemErrorCode.INVALID_PARAMS,
        *,
        field: str,
        reason: str,
        message: str = "",
    ):
        super().__init__(
            error, message=message, data=[{"field": field, "message": reason}]
        )


class UnauthorizedException(AppException):
    """鉴权闸门拒绝请求 (401)。"""

    def __init__(self, message: str = ""):
        super().__init__(SystemErrorCode.UNAUTHORIZED, message=message)


class NotFoundException(AppException):
    """目标资源不存在 (404)。"""

    def __init__(
        self, error: BaseErrorCode = SystemErrorCode.NOT_FOUND, message: str = ""
    ):
        super().__init__(error, message=message)


class TransportError(AppException):
    """文件流传输过程中的 I/O 失败。部分写入的文件已被清理。"""


# ------------------------------------------------------------------------------
# 2. 辅助函数
# ------------------------------------------------------------------------------


def _get_request_id(request: Request) -> str:
    """尝试从 request.state 获取 request_id，如果不存在则返回 'unknown'"""
    return str(getattr(request.state, "request_id", "unknown"))


def _field_errors(items: list[dict[str, Any]]) -> dict[str, str]:
    """
    将 [{"field": "a.b", "message": ...}] 折叠为 {"b": message}。
    同一字段出现多次时保留第一条。
    """
    errors: dict[str, str] = {}
    for item in items:
        field = str(item["field"]).split(".")[-1]
        errors.setdefault(field, str(item["message"]))
    return errors


def render_error(
    name: str, message: str, http_status: int, code: str, data: Any = None
) -> dict[str, Any]:
    """构造非 422 错误体"""
    return {
        "name": name,
        "message": message,
        "code": http_status,
        "type": code,
        "data": data,
    }


# ------------------------------------------------------------------------------
# 3. 全局异常处理器 (Handlers)
# ------------------------------------------------------------------------------


async def app_exception_handler(
    request: Request, exc: AppException
) -> PrettyORJSONResponse:
    """
    处理自定义业务异常 (AppException)
    直接映射为定义好的 HTTP 状态码和 Code
    """
    logger.bind(
        request_id=_get_request_id(request),
        code=exc.code,
        http_status=exc.http_status,
        message=exc.message,
    ).warning("Business exception occurred")

    if exc.http_status == HTTP_422_UNPROCESSABLE_ENTITY and isinstance(
        exc.data, list
    ):
        content: dict[str, Any] = {"errors": _field_errors(exc.data)}
    else:
        content = render_error(
            type(exc).__name__, exc.message, exc.http_status, exc.code, exc.data
        )

    return PrettyORJSONResponse(status_code=exc.http_status, content=content)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> PrettyORJSONResponse:
    """
    处理 Pydantic 请求体校验异常 (422)
    字段名取 loc 的最后一段，即对外的 camelCase 字段名
    """
    errors = exc.errors()
    items = [
        {
            "field": str(error["loc"][-1]) if error.get("loc") else "unknown",
            "message": error.get("msg", "Invalid parameter"),
        }
        for error in errors
    ]

    logger.bind(
        request_id=_get_request_id(request),
        raw_errors=mask_validation_errors(errors),
    ).warning("Request validation failed")

    return PrettyORJSONResponse(
        status_code=SystemErrorCode.INVALID_PARAMS.http_status,
        content={"errors": _field_errors(items)},
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> PrettyORJSONResponse:
    """
    处理框架层面的 HTTP 异常 (如 404 Not Found, 405 Method Not Allowed)
    """
    code_str = (
        SystemErrorCode.NOT_FOUND.code
        if exc.status_code == HTTP_404_NOT_FOUND
        else "system.http_error"
    )

    logger.bind(
        request_id=_get_request_id(request),
        status_code=exc.status_code,
        detail=str(exc.detail),
    ).warning("Framework HTTP exception occurred")

    return PrettyORJSONResponse(
        status_code=exc.status_code,
        content=render_error("HTTPException", str(exc.detail), exc.status_code, code_str),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(
    request: Request, exc: Exception
) -> PrettyORJSONResponse:
    """
    处理所有未捕获的异常 (500 Internal Server Error)
    屏蔽内部细节，防止服务器异常信息直接暴露给用户
    """
    logger.opt(exception=exc).bind(request_id=_get_request_id(request)).error(
        "Unhandled system exception occurred"
    )

    error = SystemErrorCode.INTERNAL_ERROR
    return PrettyORJSONResponse(
        status_code=error.http_status,
        content=render_error("InternalError", error.msg, error.http_status, error.code),
    )


# ------------------------------------------------------------------------------
# 4. 异常处理器注册函数
# ------------------------------------------------------------------------------


def register_exception_handlers(app: FastAPI) -> None:
    """
    统一注册所有异常处理器。
    应在 main.py 中调用。
    """
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore
    app.add_exception_handler(Exception, general_exception_handler)
