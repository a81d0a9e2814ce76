"""
File: health_api/core/response.py
Description: 统一响应信封（Unified Response Envelope）与错误响应类

本模块定义了：
1. ResponseModel: 所有成功响应的统一信封格式
2. PrettyORJSONResponse: 错误响应使用的缩进 JSON 响应类
"""

from datetime import UTC, datetime
from typing import Any, Generic, TypeVar, cast

import orjson
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ResponseBase(BaseModel):
    """
    响应基类
    """

    model_config = ConfigDict(from_attributes=True)

    code: str = Field(default="success", description="业务状态码")
    message: str = Field(default="Success", description="响应消息")
    request_id: str | None = Field(default=None, description="请求追踪ID")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="响应生成时间",
    )


class ResponseModel(ResponseBase, Generic[T]):
    """
    统一响应信封
    """

    data: T | None = Field(default=None, description="业务数据")

    @classmethod
    def success(
        cls,
        data: T | None = None,
        message: str = "Success",
        request_id: str | None = None,
    ) -> "ResponseModel[T]":
        """
        构造成功响应
        """
        # 强制将 Pydantic 模型转换为 JSON 安全的字典 (对外字段名使用 camelCase 别名)
        if hasattr(data, "model_dump"):
            data = cast(Any, data).model_dump(mode="json", by_alias=True)

        return cls(
            code="success",
            message=message,
            data=data,
            request_id=request_id,
        )


class PrettyORJSONResponse(ORJSONResponse):
    """
    带 2 空格缩进的 ORJSON 响应。
    错误体需要人类可读，因此全部异常处理器统一使用此类。
    """

    def render(self, content: Any) -> bytes:
        return orjson.dumps(
            content,
            option=orjson.OPT_INDENT_2 | orjson.OPT_NON_STR_KEYS,
        )
