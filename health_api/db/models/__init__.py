"""
File: health_api/db/models/__init__.py
Description: ORM 模型注册表

导入所有业务模型，使 Base.metadata 在启动建表 (create_all) 时能发现全部表。
新增模型必须在此处导入。
"""

from health_api.db.models.base import Base, TimestampMixin, UUIDBase, UUIDModel
from health_api.db.models.user import User

__all__ = [
    "Base",
    "UUIDBase",
    "UUIDModel",
    "TimestampMixin",
    "User",
]
