"""
File: health_api/domains/users/dependencies.py
Description: 用户领域依赖注入 (DI)

依赖链：
DBSession → UserRepository ┐
TokenService / PasswordHasher ├→ UserService → UserServiceDep
PrincipalCache / AvatarStorage ┘

Router 层直接使用 UserServiceDep，无需关心底层细节。
"""

from typing import Annotated

from fastapi import Depends

from health_api.api.deps import PrincipalCacheDep, TokenServiceDep, UserRepoDep
from health_api.core.security import PasswordHasher, get_password_hasher
from health_api.domains.users.service import UserService
from health_api.domains.users.storage import AvatarStorage, get_avatar_storage

AvatarStorageDep = Annotated[AvatarStorage, Depends(get_avatar_storage)]
PasswordHasherDep = Annotated[PasswordHasher, Depends(get_password_hasher)]


async def get_user_service(
    repo: UserRepoDep,
    hasher: PasswordHasherDep,
    tokens: TokenServiceDep,
    cache: PrincipalCacheDep,
    storage: AvatarStorageDep,
) -> UserService:
    """
    获取用户服务实例 (UserService)。
    """
    return UserService(
        repo=repo, hasher=hasher, tokens=tokens, cache=cache, storage=storage
    )


# Router 中只需写: service: UserServiceDep
UserServiceDep = Annotated[UserService, Depends(get_user_service)]
