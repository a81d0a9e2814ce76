"""
File: health_api/domains/users/constants.py
Description: 用户领域常量定义 (错误码 + 成功提示)
Namespace: users.*
"""

from starlette.status import (
    HTTP_404_NOT_FOUND,
    HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from health_api.core.error_code import BaseErrorCode


class UserErrorCode(BaseErrorCode):
    """用户领域错误码"""

    # 格式: (HTTP状态, 业务码, 默认文案)

    PHONE_EXIST = (HTTP_422_UNPROCESSABLE_ENTITY, "users.phone_exist", "手机号已存在")
    USER_NOT_FOUND = (HTTP_404_NOT_FOUND, "users.not_found", "用户不存在")
    AVATAR_NOT_FOUND = (HTTP_404_NOT_FOUND, "users.avatar_not_found", "头像不存在")
    AVATAR_TOO_LARGE = (
        HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        "users.avatar_too_large",
        "头像文件过大",
    )
    AVATAR_UPLOAD_FAILED = (
        HTTP_500_INTERNAL_SERVER_ERROR,
        "users.avatar_upload_failed",
        "头像上传失败",
    )


class UserMsg:
    """
    用户领域成功提示文案
    """

    CREATED = "注册成功"
    UPDATED = "资料更新成功"
    DELETED = "账号已删除"
    AVATAR_UPLOADED = "头像上传成功"


# 手机号正则 (国内号段格式，search 语义：号码中包含匹配即可)
PHONE_PATTERN = r"(84|0[3|5|7|8|9])+([0-9]{8})\b"
PHONE_ERROR_MESSAGE = "手机号格式不正确"
PHONE_MAX_LENGTH = 20

PASSWORD_MIN_LENGTH = 6

# 头像下载默认的内容类型
DEFAULT_AVATAR_MEDIA_TYPE = "image/png"
