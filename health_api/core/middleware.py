"""
File: health_api/core/middleware.py
Description: 中间件配置与实现

本模块负责：
1. 定义 RequestLogMiddleware：
   - 生成 UUID v7 request_id
   - 绑定 Loguru 上下文
   - 记录访问日志 (Access Log)，带上已认证用户 ID (如有)
   - 添加 X-Request-ID 响应头
2. 提供 register_middlewares 函数：
   - 统一注册 CORS、RequestLogMiddleware
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from uuid6 import uuid7

from health_api.core.config import settings
from health_api.core.logging import logger

# 跳过详细日志的路径（健康检查等高频低价值请求）
SKIP_LOG_PATHS: set[str] = {"/health", "/health/", "/favicon.ico"}


def _principal_id(request: Request) -> str | None:
    principal = getattr(request.state, "principal", None)
    return str(principal.id) if principal is not None else None


class RequestLogMiddleware(BaseHTTPMiddleware):
    """
    全局请求日志中间件

    职责：
    1. 为每个请求生成唯一 Request ID (UUID v7)
    2. 将 request_id 绑定到 Loguru 上下文，贯穿整个请求链路
    3. 记录请求处理耗时与最终状态码
    4. 在响应头中回传 X-Request-ID
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = str(uuid7())
        request.state.request_id = request_id

        skip_log = request.url.path in SKIP_LOG_PATHS

        # 在此 with 块内，Router/Service/Repo 产生的所有日志都会自动携带 request_id
        with logger.contextualize(request_id=request_id):
            start_time = time.perf_counter()

            try:
                response = await call_next(request)
                response.headers["X-Request-ID"] = request_id

                if not skip_log:
                    process_time = (time.perf_counter() - start_time) * 1000
                    logger.bind(
                        method=request.method,
                        path=request.url.path,
                        status_code=response.status_code,
                        duration_ms=round(process_time, 2),
                        user_id=_principal_id(request),
                        client_ip=request.client.host if request.client else "unknown",
                    ).info("Request finished")

                return response

            except Exception as exc:
                # 业务异常已由 ExceptionHandler 转为响应，走到这里说明是未处理的严重错误
                process_time = (time.perf_counter() - start_time) * 1000
                logger.bind(
                    method=request.method,
                    path=request.url.path,
                    duration_ms=round(process_time, 2),
                ).opt(exception=exc).error("Request failed with unhandled exception")
                raise


def register_middlewares(app: FastAPI) -> None:
    """
    统一注册所有中间件。
    注意：后注册的中间件先执行 (对于请求进入方向)。
    """
    # 1. CORS
    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # 2. Request Log & ID (最后注册，以便最先拦截请求)
    app.add_middleware(RequestLogMiddleware)
