"""
File: health_api/domains/auth/schemas.py
Description: 认证领域 Pydantic 模型 (Schema)

1. Principal: 已认证主体 (请求级，挂载在 request.state 上)
2. LoginRequest: 手机号密码登录请求参数
"""

from uuid import UUID

from pydantic import BaseModel, Field

from health_api.db.models.user import User
from health_api.domains.users.constants import PASSWORD_MIN_LENGTH, PHONE_MAX_LENGTH
from health_api.domains.users.schemas import CamelModel


class Principal(BaseModel):
    """
    已认证主体。
    用户资料的投影 (不含密码哈希) + 本次请求携带的原始 Token。
    """

    id: UUID
    phone_number: str
    fullname: str
    birthday: str
    gender: bool
    city: str
    address: str | None = None
    invite_code: str | None = None
    image: str | None = None
    token: str

    @classmethod
    def from_user(cls, user: User, token: str) -> "Principal":
        return cls(
            id=user.id,
            phone_number=user.phone_number,
            fullname=user.fullname,
            birthday=user.birthday,
            gender=user.gender,
            city=user.city,
            address=user.address,
            invite_code=user.invite_code,
            image=user.image,
            token=token,
        )


class LoginRequest(CamelModel):
    """
    手机号密码登录请求参数。
    """

    phone_number: str = Field(
        ..., max_length=PHONE_MAX_LENGTH, description="手机号", examples=["0912345678"]
    )
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, description="用户密码")
