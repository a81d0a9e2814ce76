"""
File: health_api/main.py
Description: FastAPI 应用入口与工厂函数

本模块负责：
1. 创建 FastAPI 应用实例 (设置默认响应类为 ORJSONResponse)
2. 管理应用生命周期 (lifespan): 初始化日志、建表、关闭数据库与 Redis 连接
3. 组装全局组件：中间件、异常处理器、路由
4. 提供健康检查与根路径接口 (不经过鉴权闸门)
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from health_api.api_router import api_router
from health_api.core.config import settings
from health_api.core.exceptions import register_exception_handlers
from health_api.core.logging import logger, setup_logging
from health_api.core.middleware import register_middlewares
from health_api.core.redis import close_redis
from health_api.core.response import ResponseModel
from health_api.db.session import close_engine, create_tables


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    应用生命周期管理器。
    """
    # 1. 启动时：初始化日志系统并建表
    setup_logging()
    await create_tables()
    logger.bind(environment=settings.ENVIRONMENT).info(
        f"{settings.PROJECT_NAME} started"
    )

    yield

    # 2. 关闭时：优雅释放资源
    await close_redis()
    await close_engine()


def create_app() -> FastAPI:
    """应用工厂函数"""

    app = FastAPI(
        title=settings.PROJECT_NAME,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # 1. 注册中间件 (CORS, RequestID, Logging)
    register_middlewares(app)

    # 2. 注册异常处理器
    register_exception_handlers(app)

    # 3. 挂载 API 路由 (带默认鉴权闸门)
    app.include_router(api_router, prefix=settings.API_PREFIX)

    # 4. 健康检查
    @app.get(
        "/health",
        tags=["health"],
        summary="健康检查",
        response_model=ResponseModel[dict[str, str]],
    )
    async def health_check():
        """
        健康检查接口。
        用于 K8s Liveness/Readiness Probe 或负载均衡器检查。
        """
        return ResponseModel.success(data={"status": "ok"})

    # 5. 根路由
    @app.get(
        "/",
        tags=["root"],
        summary="系统入口",
        response_model=ResponseModel[dict[str, str]],
    )
    async def root():
        """
        系统根路径，返回欢迎信息与文档地址。
        """
        return ResponseModel.success(
            message=f"Welcome to {settings.PROJECT_NAME}",
            data={
                "status": "running",
                "docs_url": app.docs_url or "",
                "health_url": "/health",
            },
        )

    return app


# 暴露给 Uvicorn 运行的应用实例
app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
