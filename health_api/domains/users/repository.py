"""
File: health_api/domains/users/repository.py
Description: 用户领域仓储层 (Repository)

本模块负责用户数据的数据库访问 (凭证存储)，继承自通用 BaseRepository。
扩展功能：
1. get_by_phone_number: 根据手机号查询 (登录、注册查重)
"""

from sqlalchemy import select

from health_api.db.models.user import User
from health_api.db.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """
    用户仓储类。
    继承了 BaseRepository 的 get/create/update/delete 方法。
    """

    async def get_by_phone_number(self, phone_number: str) -> User | None:
        """
        根据手机号查询用户。
        """
        stmt = select(User).where(User.phone_number == phone_number)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
