"""
File: health_api/domains/users/service.py
Description: 用户领域服务 (业务逻辑层)

本模块封装用户管理的核心业务逻辑：
1. 注册：校验手机号唯一性、哈希密码、写入数据库、签发 Token
2. 查询：按 ID 获取用户
3. 更新：部分更新，密码字段重新哈希
4. 删除：物理删除并清理头像文件
5. 头像：流式落盘 -> 更新 image 字段 -> 清理旧文件

注意：
- 所有数据库写操作的事务提交 (Commit) 由本层负责
- 用户资料变更后使该用户的 Token 解析缓存失效
- 密码哈希使用线程池版本，避免阻塞事件循环
"""

from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from health_api.core.exceptions import NotFoundException, ValidationException
from health_api.core.logging import logger
from health_api.core.security import PasswordHasher, TokenService
from health_api.db.models.user import User
from health_api.domains.auth.cache import PrincipalCache
from health_api.domains.users.constants import UserErrorCode
from health_api.domains.users.repository import UserRepository
from health_api.domains.users.schemas import UserCreate, UserUpdate
from health_api.domains.users.storage import AvatarStorage
from health_api.utils.masking import mask_phone


def _phone_exists() -> ValidationException:
    return ValidationException(
        UserErrorCode.PHONE_EXIST, field="phoneNumber", reason="手机号已存在"
    )


class UserService:
    """
    用户领域服务。

    职责：
    - 编排业务流程
    - 执行业务规则校验 (如：手机号是否重复)
    - 调用 Repository 进行数据持久化
    """

    def __init__(
        self,
        repo: UserRepository,
        hasher: PasswordHasher,
        tokens: TokenService,
        cache: PrincipalCache,
        storage: AvatarStorage,
    ):
        self.repo = repo
        self.hasher = hasher
        self.tokens = tokens
        self.cache = cache
        self.storage = storage

    async def create(self, obj_in: UserCreate) -> tuple[User, str]:
        """
        创建新用户 (注册)，返回用户与新签发的 Token。
        """
        # 1. 唯一性校验 (Fail Fast)
        if await self.repo.get_by_phone_number(obj_in.phone_number):
            raise _phone_exists()

        # 2. 密码加密
        hashed_password = await self.hasher.hash_async(obj_in.password)

        # 3. 持久化与事务提交 (并发注册由唯一约束兜底)
        user_data = obj_in.model_dump(exclude={"password"})
        try:
            user = await self.repo.create(
                {**user_data, "hashed_password": hashed_password, "image": None}
            )
            await self.repo.session.commit()
        except IntegrityError:
            await self.repo.session.rollback()
            raise _phone_exists() from None

        logger.bind(user_id=str(user.id), phone_number=mask_phone(user.phone_number)).info(
            "User created successfully"
        )

        return user, self.tokens.issue(user.id, user.phone_number)

    async def get(self, user_id: UUID) -> User:
        """
        获取用户详情。
        用户不存在时抛出 NotFoundException。
        """
        user = await self.repo.get(user_id)
        if not user:
            raise NotFoundException(UserErrorCode.USER_NOT_FOUND)
        return user

    async def update(self, user_id: UUID, obj_in: UserUpdate) -> User:
        """
        部分更新用户资料。
        未传入或为 null 的字段保持不变；密码重新哈希后写入。
        """
        user = await self.get(user_id)

        update_data: dict[str, Any] = obj_in.model_dump(
            exclude_unset=True, exclude_none=True
        )

        new_password = update_data.pop("password", None)
        if new_password:
            update_data["hashed_password"] = await self.hasher.hash_async(new_password)

        updated_user = await self.repo.update(user, update_data)
        await self.repo.session.commit()
        await self.cache.invalidate_user(user_id)

        logger.bind(user_id=str(user_id), fields=sorted(update_data)).info(
            "User updated successfully"
        )

        return updated_user

    async def delete(self, user_id: UUID) -> None:
        """
        删除用户 (物理删除)，同时删除其头像文件。
        """
        user = await self.get(user_id)
        image = user.image

        await self.repo.delete(user)
        await self.repo.session.commit()
        await self.cache.invalidate_user(user_id)
        await self.storage.remove(image)

        logger.bind(user_id=str(user_id)).info("User deleted")

    async def upload_avatar(
        self, user_id: UUID, chunks: AsyncIterator[bytes], filename: str | None
    ) -> User:
        """
        上传头像。

        顺序保证: 文件完整落盘 -> 更新 image 并提交 -> 删除旧头像文件。
        落盘失败时部分文件已被存储层清理，image 字段保持不变。
        """
        user = await self.get(user_id)

        path = await self.storage.save(chunks, owner_id=user.id, filename=filename)
        previous = user.image

        try:
            updated_user = await self.repo.update(user, {"image": str(path)})
            await self.repo.session.commit()
        except Exception:
            await self.repo.session.rollback()
            await self.storage.remove(str(path))
            raise

        await self.cache.invalidate_user(user_id)
        if previous and previous != str(path):
            await self.storage.remove(previous)

        logger.bind(user_id=str(user_id), path=str(path)).info("Avatar updated")

        return updated_user

    async def get_avatar_path(self, user_id: UUID) -> Path:
        """
        获取头像文件路径。
        用户、image 字段或磁盘文件任一缺失都返回 404。
        """
        user = await self.get(user_id)
        if not await self.storage.exists(user.image):
            raise NotFoundException(UserErrorCode.AVATAR_NOT_FOUND)
        return Path(user.image)  # type: ignore[arg-type]
