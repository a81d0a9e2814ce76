"""
File: health_api/db/repositories/base.py
Description: 通用异步 Repository 基类 (CRUD)

本模块定义了 BaseRepository，封装了通用的 CRUD 操作。
所有领域的 Repository 应继承此类，以减少样板代码。

特性：
- 泛型支持: BaseRepository[ModelType]
- 纯异步: 基于 sqlalchemy.ext.asyncio
- 只 flush 不 commit: 事务边界由 Service 层控制
- 安全增强: update 操作自动过滤核心系统字段 (id, created_at, updated_at)
"""

from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from health_api.db.models.base import UUIDBase

ModelType = TypeVar("ModelType", bound=UUIDBase)


class BaseRepository(Generic[ModelType]):
    """
    通用 CRUD 仓储基类。

    参数:
    - ModelType: SQLAlchemy 模型类 (如 User)
    """

    # 受保护的字段，禁止通过通用 update 方法修改
    PROTECTED_FIELDS: ClassVar[set[str]] = {"id", "created_at", "updated_at"}

    def __init__(self, model: type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def get(self, id: Any) -> ModelType | None:
        """根据主键 ID 查询单条记录"""
        return await self.session.get(self.model, id)

    async def create(self, data: dict[str, Any]) -> ModelType:
        """
        创建新记录。
        flush 到数据库以获取 ID 与默认值，但不 commit。
        """
        db_obj = self.model(**data)

        self.session.add(db_obj)
        await self.session.flush()
        await self.session.refresh(db_obj)

        return db_obj

    async def update(self, db_obj: ModelType, data: dict[str, Any]) -> ModelType:
        """
        更新现有记录 (仅更新传入的字段)。
        会自动过滤 PROTECTED_FIELDS 中的字段。
        """
        safe_data = {k: v for k, v in data.items() if k not in self.PROTECTED_FIELDS}

        db_obj.update(**safe_data)

        self.session.add(db_obj)
        await self.session.flush()
        await self.session.refresh(db_obj)

        return db_obj

    async def delete(self, db_obj: ModelType) -> None:
        """物理删除记录。"""
        await self.session.delete(db_obj)
        await self.session.flush()
