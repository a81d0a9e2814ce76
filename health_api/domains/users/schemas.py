"""
File: health_api/domains/users/schemas.py
Description: 用户领域 Pydantic 模型 (Schema)

本模块定义了用户相关的输入/输出数据结构：
1. UserCreate: 注册参数 (包含密码明文)
2. UserUpdate: 更新参数 (所有字段可选，PATCH 语义)
3. UserRead: 用户信息响应 (屏蔽密码哈希)
4. UserWithToken: 用户信息 + Token

规范：
- 对外字段名使用 camelCase (phoneNumber / inviteCode)，内部使用 snake_case
- 手机号按固定号段正则校验 (search 语义)
- 响应模型开启 from_attributes=True 以支持 ORM 转换
"""

import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from health_api.domains.users.constants import (
    PASSWORD_MIN_LENGTH,
    PHONE_ERROR_MESSAGE,
    PHONE_MAX_LENGTH,
    PHONE_PATTERN,
)

PHONE_REGEX = re.compile(PHONE_PATTERN)


def validate_phone_number(v: str) -> str:
    """手机号校验 (供各 Schema 复用)"""
    if not PHONE_REGEX.search(v):
        raise ValueError(PHONE_ERROR_MESSAGE)
    return v


class CamelModel(BaseModel):
    """对外 camelCase 别名，同时允许按字段名填充"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ------------------------------------------------------------------------------
# Input Schemas (输入模型)
# ------------------------------------------------------------------------------


class UserCreate(CamelModel):
    """
    用户注册模型。
    头像 image 只能通过上传接口写入，这里不接收。
    """

    phone_number: str = Field(
        ...,
        max_length=PHONE_MAX_LENGTH,
        description="手机号 (登录凭证)",
        examples=["0912345678"],
    )
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, description="明文密码")
    fullname: str = Field(..., min_length=1, max_length=100, description="姓名")
    birthday: str = Field(..., max_length=32, description="生日", examples=["1990-01-01"])
    gender: bool = Field(..., strict=True, description="性别")
    city: str = Field(..., max_length=100, description="城市")
    address: str | None = Field(default=None, max_length=255, description="地址")
    invite_code: str | None = Field(default=None, max_length=64, description="邀请码")

    @field_validator("phone_number")
    @classmethod
    def _check_phone(cls, v: str) -> str:
        return validate_phone_number(v)


class UserUpdate(CamelModel):
    """
    用户更新模型。
    所有字段均为可选，仅更新传入且非 null 的字段。
    手机号与头像不可通过此接口修改。
    """

    password: str | None = Field(
        default=None, min_length=PASSWORD_MIN_LENGTH, description="新密码 (如需修改)"
    )
    fullname: str | None = Field(default=None, min_length=1, max_length=100)
    birthday: str | None = Field(default=None, max_length=32)
    gender: bool | None = Field(default=None, strict=True)
    city: str | None = Field(default=None, max_length=100)
    address: str | None = Field(default=None, max_length=255)
    invite_code: str | None = Field(default=None, max_length=64)


# ------------------------------------------------------------------------------
# Output Schemas (输出/响应模型)
# ------------------------------------------------------------------------------


class UserRead(CamelModel):
    """
    用户读取模型 (响应)。
    屏蔽了 hashed_password 字段。
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: UUID = Field(..., description="用户 ID (UUID v7)")
    phone_number: str
    fullname: str
    birthday: str
    gender: bool
    city: str
    address: str | None = None
    invite_code: str | None = None
    image: str | None = Field(default=None, description="头像存储路径")
    created_at: datetime = Field(..., description="创建时间 (UTC)")
    updated_at: datetime = Field(..., description="更新时间 (UTC)")


class UserWithToken(UserRead):
    """用户信息 + 访问令牌"""

    token: str = Field(..., description="访问令牌 (JWT)")


class UserDeleted(CamelModel):
    """删除结果"""

    id: UUID
