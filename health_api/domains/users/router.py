"""
File: health_api/domains/users/router.py
Description: 用户领域 HTTP 路由层

本模块定义了账号管理的 API 端点 (挂载于 {API_PREFIX}/users)：
1. POST   /            注册 (公开)
2. GET    /me          获取我的资料 (需登录)
3. PUT    /            更新我的资料 (需登录，部分更新)
4. PUT    /avatar      上传头像 (需登录，multipart 字段 file)
5. GET    /avatar      下载头像 (需登录)
6. DELETE /{user_id}   删除账号 (需登录)

登录接口 POST /login 定义在 auth 领域，挂载在同一前缀下。
"""

from uuid import UUID

from fastapi import APIRouter, File, Request, UploadFile, status
from fastapi.responses import FileResponse

from health_api.api.deps import CurrentPrincipal
from health_api.core.response import ResponseModel
from health_api.db.models.user import User
from health_api.domains.users.constants import UserMsg
from health_api.domains.users.dependencies import UserServiceDep
from health_api.domains.users.schemas import (
    UserCreate,
    UserDeleted,
    UserRead,
    UserUpdate,
    UserWithToken,
)
from health_api.domains.users.storage import iter_upload

router = APIRouter()


def with_token(user: User, token: str) -> UserWithToken:
    """ORM 用户 + Token -> 响应模型"""
    return UserWithToken(**UserRead.model_validate(user).model_dump(), token=token)


# ------------------------------------------------------------------------------
# Public Endpoints (公开接口)
# ------------------------------------------------------------------------------


@router.post(
    "",
    response_model=ResponseModel[UserWithToken],
    status_code=status.HTTP_201_CREATED,
    summary="注册新用户",
    description="创建新用户并返回访问令牌。手机号必须唯一。无需登录。",
)
async def create_user(
    request: Request,
    user_in: UserCreate,
    service: UserServiceDep,
) -> ResponseModel[UserWithToken]:
    """
    注册接口 (Public)
    """
    user, token = await service.create(user_in)
    req_id = getattr(request.state, "request_id", None)

    return ResponseModel.success(
        data=with_token(user, token), request_id=req_id, message=UserMsg.CREATED
    )


# ------------------------------------------------------------------------------
# Protected Endpoints (受保护接口 - 需登录)
# ------------------------------------------------------------------------------


@router.get(
    "/me",
    response_model=ResponseModel[UserWithToken],
    summary="获取我的个人资料",
    description="获取当前登录用户的最新资料。需携带有效 Token。",
)
async def read_user_me(
    request: Request,
    principal: CurrentPrincipal,
    service: UserServiceDep,
) -> ResponseModel[UserWithToken]:
    """
    查询当前用户接口 (Secured)
    主体可能来自缓存，这里重新查库以返回最新资料。
    """
    user = await service.get(principal.id)
    req_id = getattr(request.state, "request_id", None)

    return ResponseModel.success(
        data=with_token(user, principal.token), request_id=req_id
    )


@router.put(
    "",
    response_model=ResponseModel[UserWithToken],
    summary="更新我的个人资料",
    description="仅更新请求中提供的字段，其余字段保持不变。需携带有效 Token。",
)
async def update_user_me(
    request: Request,
    user_in: UserUpdate,
    principal: CurrentPrincipal,
    service: UserServiceDep,
) -> ResponseModel[UserWithToken]:
    """
    更新当前用户接口 (Secured)
    """
    updated_user = await service.update(principal.id, user_in)
    req_id = getattr(request.state, "request_id", None)

    return ResponseModel.success(
        data=with_token(updated_user, principal.token),
        request_id=req_id,
        message=UserMsg.UPDATED,
    )


@router.put(
    "/avatar",
    response_model=ResponseModel[UserRead],
    summary="上传头像",
    description="multipart/form-data 上传单个文件 (字段名 file)。需携带有效 Token。",
)
async def upload_avatar(
    request: Request,
    principal: CurrentPrincipal,
    service: UserServiceDep,
    file: UploadFile = File(...),
) -> ResponseModel[UserRead]:
    """
    头像上传接口 (Secured)
    """
    user = await service.upload_avatar(
        principal.id,
        iter_upload(file, service.storage.chunk_size),
        filename=file.filename,
    )
    req_id = getattr(request.state, "request_id", None)

    return ResponseModel.success(
        data=UserRead.model_validate(user),
        request_id=req_id,
        message=UserMsg.AVATAR_UPLOADED,
    )


@router.get(
    "/avatar",
    response_class=FileResponse,
    summary="下载头像",
    description="返回当前用户头像的原始字节。需携带有效 Token。",
)
async def download_avatar(
    principal: CurrentPrincipal,
    service: UserServiceDep,
) -> FileResponse:
    """
    头像下载接口 (Secured)
    """
    path = await service.get_avatar_path(principal.id)
    return FileResponse(path, media_type=service.storage.media_type(str(path)))


@router.delete(
    "/{user_id}",
    response_model=ResponseModel[UserDeleted],
    summary="删除账号",
    description="按 ID 删除账号及其头像文件。需携带有效 Token。",
)
async def delete_user(
    request: Request,
    user_id: UUID,
    principal: CurrentPrincipal,
    service: UserServiceDep,
) -> ResponseModel[UserDeleted]:
    """
    删除账号接口 (Secured)
    """
    await service.delete(user_id)
    req_id = getattr(request.state, "request_id", None)

    return ResponseModel.success(
        data=UserDeleted(id=user_id), request_id=req_id, message=UserMsg.DELETED
    )
