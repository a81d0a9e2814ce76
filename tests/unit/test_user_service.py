"""
File: tests/unit/test_user_service.py
Description: 用户领域服务单元测试

本模块测试 UserService 的核心业务逻辑：
1. 注册：密码哈希、手机号重复检测
2. 部分更新：未传字段保持不变，密码重新哈希
3. 删除：不存在返回 404，头像文件随账号删除
4. 头像：中断/超限时不留部分文件且 image 不变，成功时替换旧文件
"""

import asyncio
from collections.abc import AsyncIterator
from io import BytesIO
from pathlib import Path

import pytest
from fastapi import UploadFile
from uuid6 import uuid7

from health_api.core.exceptions import (
    AppException,
    NotFoundException,
    TransportError,
    ValidationException,
)
from health_api.core.security import password_hasher, token_service
from health_api.db.models.user import User
from health_api.domains.auth.cache import PrincipalCache
from health_api.domains.auth.schemas import Principal
from health_api.domains.users.repository import UserRepository
from health_api.domains.users.schemas import UserCreate, UserUpdate
from health_api.domains.users.service import UserService
from health_api.domains.users.storage import AvatarStorage, iter_upload

# ------------------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------------------


@pytest.fixture
def user_service(
    user_repo: UserRepository,
    principal_cache: PrincipalCache,
    avatar_storage: AvatarStorage,
) -> UserService:
    """
    创建一个绑定了测试 Session、内存缓存与临时目录的 UserService 实例。
    """
    return UserService(
        repo=user_repo,
        hasher=password_hasher,
        tokens=token_service,
        cache=principal_cache,
        storage=avatar_storage,
    )


async def stream(*parts: bytes) -> AsyncIterator[bytes]:
    for part in parts:
        yield part


async def broken_stream() -> AsyncIterator[bytes]:
    yield b"first-chunk"
    raise ConnectionResetError("client went away")


def stored_files(storage: AvatarStorage) -> list[Path]:
    if not storage.root.exists():
        return []
    return sorted(storage.root.iterdir())


# ------------------------------------------------------------------------------
# Test Cases: 注册
# ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_user_success(user_service: UserService, user_payload) -> None:
    """测试：正常创建用户"""
    user_in = UserCreate.model_validate(user_payload())

    user, token = await user_service.create(user_in)

    # 1. 验证返回对象字段
    assert user.id is not None
    assert user.phone_number == "0912345678"
    assert user.invite_code == "INV001"
    assert user.image is None
    assert user.created_at is not None

    # 2. 验证密码已加密 (不存储明文)
    assert user.hashed_password != "secret123"
    assert password_hasher.verify("secret123", user.hashed_password)

    # 3. Token 指向新用户
    assert token_service.verify(token).id == user.id


@pytest.mark.asyncio
async def test_create_user_duplicate_phone(
    user_service: UserService, stored_user: User, user_payload
) -> None:
    """测试：手机号重复时抛出字段级校验异常"""
    user_in = UserCreate.model_validate(
        user_payload(phoneNumber=stored_user.phone_number)
    )

    with pytest.raises(ValidationException) as exc_info:
        await user_service.create(user_in)

    assert exc_info.value.http_status == 422
    assert exc_info.value.data[0]["field"] == "phoneNumber"


# ------------------------------------------------------------------------------
# Test Cases: 更新 / 删除
# ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_partial_update_keeps_other_fields(
    user_service: UserService, stored_user: User
) -> None:
    """测试：只更新传入字段，null 字段忽略"""
    update = UserUpdate.model_validate({"city": "Hue", "fullname": None})

    user = await user_service.update(stored_user.id, update)

    assert user.city == "Hue"
    assert user.fullname == "Tran Thi B"
    assert user.birthday == "1995-05-05"
    assert password_hasher.verify("secret123", user.hashed_password)


@pytest.mark.asyncio
async def test_password_update_is_rehashed(
    user_service: UserService, stored_user: User
) -> None:
    """测试：更新密码后以哈希形式存储，旧密码失效"""
    user = await user_service.update(
        stored_user.id, UserUpdate.model_validate({"password": "newsecret"})
    )

    assert user.hashed_password != "newsecret"
    assert password_hasher.verify("newsecret", user.hashed_password)
    assert not password_hasher.verify("secret123", user.hashed_password)


@pytest.mark.asyncio
async def test_update_invalidates_cached_principal(
    user_service: UserService,
    stored_user: User,
    stored_user_token: str,
    principal_cache: PrincipalCache,
) -> None:
    await principal_cache.set(
        Principal.from_user(stored_user, stored_user_token), remaining=600
    )

    await user_service.update(stored_user.id, UserUpdate.model_validate({"city": "Hue"}))

    assert await principal_cache.get(stored_user_token) is None


@pytest.mark.asyncio
async def test_delete_unknown_user(user_service: UserService) -> None:
    with pytest.raises(NotFoundException) as exc_info:
        await user_service.delete(uuid7())

    assert exc_info.value.http_status == 404


@pytest.mark.asyncio
async def test_delete_removes_avatar_file(
    user_service: UserService,
    stored_user: User,
    user_repo: UserRepository,
    avatar_storage: AvatarStorage,
) -> None:
    user_id = stored_user.id
    await user_service.upload_avatar(user_id, stream(b"png-bytes"), "me.png")
    assert len(stored_files(avatar_storage)) == 1

    await user_service.delete(user_id)

    assert await user_repo.get(user_id) is None
    assert stored_files(avatar_storage) == []


# ------------------------------------------------------------------------------
# Test Cases: 头像
# ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_upload_avatar_success(
    user_service: UserService, stored_user: User, avatar_storage: AvatarStorage
) -> None:
    user = await user_service.upload_avatar(
        stored_user.id, stream(b"abc", b"def"), "photo.JPG"
    )

    path = Path(user.image)  # type: ignore[arg-type]
    assert path.parent == avatar_storage.root
    assert path.name.startswith(f"{stored_user.id}_")
    assert path.suffix == ".jpg"
    assert path.read_bytes() == b"abcdef"
    assert await user_service.get_avatar_path(stored_user.id) == path


@pytest.mark.asyncio
async def test_upload_avatar_replaces_previous_file(
    user_service: UserService, stored_user: User, avatar_storage: AvatarStorage
) -> None:
    first = await user_service.upload_avatar(stored_user.id, stream(b"one"), None)
    first_path = Path(first.image)  # type: ignore[arg-type]

    second = await user_service.upload_avatar(stored_user.id, stream(b"two"), None)

    assert not first_path.exists()
    assert stored_files(avatar_storage) == [Path(second.image)]  # type: ignore[arg-type]
    assert Path(second.image).suffix == ".png"  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_interrupted_upload_leaves_no_file(
    user_service: UserService,
    stored_user: User,
    user_repo: UserRepository,
    avatar_storage: AvatarStorage,
) -> None:
    with pytest.raises(TransportError):
        await user_service.upload_avatar(stored_user.id, broken_stream(), "me.png")

    assert stored_files(avatar_storage) == []
    user = await user_repo.get(stored_user.id)
    assert user is not None
    assert user.image is None


@pytest.mark.asyncio
async def test_interrupted_upload_keeps_previous_avatar(
    user_service: UserService, stored_user: User, avatar_storage: AvatarStorage
) -> None:
    first = await user_service.upload_avatar(stored_user.id, stream(b"one"), None)

    with pytest.raises(TransportError):
        await user_service.upload_avatar(stored_user.id, broken_stream(), None)

    assert stored_files(avatar_storage) == [Path(first.image)]  # type: ignore[arg-type]
    assert (await user_service.get(stored_user.id)).image == first.image


@pytest.mark.asyncio
async def test_oversized_upload_is_rejected(
    user_service: UserService, stored_user: User, avatar_storage: AvatarStorage
) -> None:
    chunks = stream(*[b"x" * 256] * 5)

    with pytest.raises(AppException) as exc_info:
        await user_service.upload_avatar(stored_user.id, chunks, "big.png")

    assert exc_info.value.http_status == 413
    assert stored_files(avatar_storage) == []


@pytest.mark.asyncio
async def test_avatar_path_missing(user_service: UserService, stored_user: User) -> None:
    with pytest.raises(NotFoundException):
        await user_service.get_avatar_path(stored_user.id)


@pytest.mark.asyncio
async def test_cancelled_upload_leaves_no_file(
    user_service: UserService,
    stored_user: User,
    user_repo: UserRepository,
    avatar_storage: AvatarStorage,
) -> None:
    """测试：上传被取消时删除部分文件，image 保持不变"""
    first_chunk_written = asyncio.Event()

    async def stalled_stream() -> AsyncIterator[bytes]:
        yield b"first-chunk"
        first_chunk_written.set()
        await asyncio.Event().wait()
        yield b"never"

    task = asyncio.create_task(
        user_service.upload_avatar(stored_user.id, stalled_stream(), "me.png")
    )
    await first_chunk_written.wait()
    assert len(stored_files(avatar_storage)) == 1

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert stored_files(avatar_storage) == []
    user = await user_repo.get(stored_user.id)
    assert user is not None
    assert user.image is None


@pytest.mark.asyncio
async def test_iter_upload_reads_in_storage_chunks(avatar_storage: AvatarStorage) -> None:
    upload = UploadFile(file=BytesIO(b"x" * 40), filename="me.png")

    chunks = [chunk async for chunk in iter_upload(upload, avatar_storage.chunk_size)]

    assert [len(chunk) for chunk in chunks] == [16, 16, 8]
