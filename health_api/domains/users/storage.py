"""
File: health_api/domains/users/storage.py
Description: 头像文件存储

本模块负责：
1. 按块 (chunk) 将上传流写入 UPLOAD_DIR，文件名由服务端生成
2. 写入过程中任何异常或取消都会删除已写入的部分文件
3. 超出大小上限时中止写入并清理
4. 头像文件的查找与删除

文件 I/O 在线程池中执行，避免阻塞事件循环。
"""

import asyncio
import mimetypes
from collections.abc import AsyncIterator
from pathlib import Path
from typing import IO, Any

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool
from uuid6 import uuid7

from health_api.core.config import settings
from health_api.core.exceptions import AppException, TransportError
from health_api.core.logging import logger
from health_api.domains.users.constants import (
    DEFAULT_AVATAR_MEDIA_TYPE,
    UserErrorCode,
)

DEFAULT_SUFFIX = ".png"


async def iter_upload(file: UploadFile, chunk_size: int) -> AsyncIterator[bytes]:
    """将 UploadFile 转为按块读取的异步迭代器"""
    while chunk := await file.read(chunk_size):
        yield chunk


class AvatarStorage:
    """
    头像存储 (本地文件系统)。
    """

    def __init__(self, root: Path, max_bytes: int, chunk_size: int):
        self.root = root
        self.max_bytes = max_bytes
        self.chunk_size = chunk_size

    def build_path(self, owner_id: Any, filename: str | None) -> Path:
        """
        生成存储路径: <root>/<owner_id>_<uuid7 hex><suffix>
        客户端文件名只贡献扩展名，避免路径穿越与重名覆盖。
        """
        suffix = Path(filename or "").suffix.lower() or DEFAULT_SUFFIX
        return self.root / f"{owner_id}_{uuid7().hex}{suffix}"

    async def save(
        self, chunks: AsyncIterator[bytes], owner_id: Any, filename: str | None
    ) -> Path:
        """
        将字节流完整写入磁盘后返回路径。

        Raises:
            AppException(AVATAR_TOO_LARGE): 超出大小上限
            TransportError: 读流或写盘过程中的 I/O 失败
        """
        await run_in_threadpool(self.root.mkdir, parents=True, exist_ok=True)
        path = self.build_path(owner_id, filename)
        fh: IO[bytes] = await run_in_threadpool(path.open, "wb")
        written = 0

        try:
            async for chunk in chunks:
                written += len(chunk)
                if written > self.max_bytes:
                    raise AppException(UserErrorCode.AVATAR_TOO_LARGE)
                await run_in_threadpool(fh.write, chunk)
            await run_in_threadpool(fh.close)
        except (AppException, asyncio.CancelledError):
            await self._discard(fh, path)
            raise
        except Exception as exc:
            await self._discard(fh, path)
            logger.bind(path=str(path), error=str(exc)).warning(
                "Avatar stream aborted, partial file removed"
            )
            raise TransportError(UserErrorCode.AVATAR_UPLOAD_FAILED) from exc

        logger.bind(path=str(path), size=written).info("Avatar file stored")
        return path

    async def _discard(self, fh: IO[bytes], path: Path) -> None:
        """关闭并删除部分写入的文件"""
        await run_in_threadpool(fh.close)
        await run_in_threadpool(path.unlink, missing_ok=True)

    async def exists(self, path: str | None) -> bool:
        if not path:
            return False
        return await run_in_threadpool(Path(path).is_file)

    async def remove(self, path: str | None) -> None:
        """删除头像文件 (文件不存在时忽略)"""
        if path:
            await run_in_threadpool(Path(path).unlink, missing_ok=True)

    @staticmethod
    def media_type(path: str) -> str:
        """按扩展名推断内容类型，非图片类型一律回退为 image/png"""
        guessed, _ = mimetypes.guess_type(path)
        if guessed and guessed.startswith("image/"):
            return guessed
        return DEFAULT_AVATAR_MEDIA_TYPE


def get_avatar_storage() -> AvatarStorage:
    """头像存储依赖 (测试中可 override 为临时目录)"""
    return AvatarStorage(
        root=Path(settings.UPLOAD_DIR),
        max_bytes=settings.AVATAR_MAX_BYTES,
        chunk_size=settings.UPLOAD_CHUNK_SIZE,
    )
