"""
File: health_api/db/models/user.py
Description: 用户账号模型

继承自 UUIDModel，自动拥有 UUID v7 主键与 created_at / updated_at。
账号删除为物理删除，不提供软删除。

约束:
- 手机号唯一，且不允许空字符串
- 只存密码哈希，不存明文
"""

from sqlalchemy import Boolean, CheckConstraint, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from health_api.db.models.base import UUIDModel


class User(UUIDModel):
    """
    用户模型 (账号域)
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "users"

    __table_args__ = (
        CheckConstraint(
            "length(trim(phone_number)) > 0", name="ck_users_phone_not_empty"
        ),
        CheckConstraint(
            "length(hashed_password) > 0", name="ck_users_password_not_empty"
        ),
    )

    # --------------------------------------------------------------------------
    # 核心凭证
    # --------------------------------------------------------------------------

    # 手机号：登录凭证，必填且唯一
    phone_number: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False, comment="手机号 (登录凭证)"
    )

    # 密码：存储 Argon2id 哈希值
    hashed_password: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="密码哈希值"
    )

    # --------------------------------------------------------------------------
    # 基础资料
    # --------------------------------------------------------------------------

    fullname: Mapped[str] = mapped_column(String(100), nullable=False, comment="姓名")
    birthday: Mapped[str] = mapped_column(String(32), nullable=False, comment="生日")
    gender: Mapped[bool] = mapped_column(Boolean, nullable=False, comment="性别")
    city: Mapped[str] = mapped_column(String(100), nullable=False, comment="城市")
    address: Mapped[str | None] = mapped_column(
        String(255), nullable=True, comment="地址"
    )
    invite_code: Mapped[str | None] = mapped_column(
        String(64), nullable=True, comment="邀请码"
    )

    # 头像：存储端文件路径，上传前为空
    image: Mapped[str | None] = mapped_column(
        String(512), nullable=True, comment="头像文件路径"
    )
