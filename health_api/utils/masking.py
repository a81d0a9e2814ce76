"""
File: health_api/utils/masking.py
Description: PII 数据脱敏工具 (Data Masking)

本模块提供敏感信息脱敏功能，用于日志记录时的隐私保护，
确保日志中不出现明文密码、Token 与完整手机号。

特性：
1. 针对性脱敏: 手机号。
2. 递归脱敏: 深度遍历字典/列表，自动过滤敏感 Key (如 password, token)。
3. 校验错误脱敏: Pydantic 错误中的 input 字段按出错字段名判定是否掩盖。
"""

from collections.abc import Sequence
from typing import Any

# ==============================================================================
# 1. 敏感字段黑名单 (大小写不敏感)
# ==============================================================================
SENSITIVE_KEYS = {
    "password",
    "hashed_password",
    "hashedpassword",
    "secret",
    "secret_key",
    "token",
    "authorization",
}

# ==============================================================================
# 2. 基础脱敏函数
# ==============================================================================


def mask_phone(phone: str | None) -> str:
    """
    手机号脱敏。
    规则: 保留前3位和后4位，中间用 * 替换。
    示例: 0912345678 -> 091****5678
    """
    if not phone or len(phone) < 7:
        return "******"
    return f"{phone[:3]}****{phone[-4:]}"


def mask_secret(value: Any) -> str:
    """
    通用机密信息完全掩盖。
    用于密码、Token 等。
    """
    if value is None:
        return ""
    return "******"


# ==============================================================================
# 3. 递归脱敏工具
# ==============================================================================


def mask_sensitive_data(data: Any) -> Any:
    """
    递归遍历数据结构（字典、列表），自动对敏感字段进行脱敏。
    返回副本，不修改原数据。
    """
    if isinstance(data, dict):
        new_data = {}
        for k, v in data.items():
            if isinstance(k, str) and k.lower() in SENSITIVE_KEYS:
                new_data[k] = mask_secret(v)
            else:
                new_data[k] = mask_sensitive_data(v)
        return new_data

    if isinstance(data, list):
        return [mask_sensitive_data(item) for item in data]

    return data


def mask_validation_errors(errors: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Pydantic 校验错误脱敏。
    错误项的 input 是用户原始输入，若出错字段为敏感字段 (如 password) 则掩盖；
    input 为整个请求体 (缺字段时) 则递归脱敏。
    ctx 中可能含异常对象，日志中不需要，直接丢弃。
    """
    masked: list[dict[str, Any]] = []
    for error in errors:
        item = {k: v for k, v in error.items() if k != "ctx"}
        loc = item.get("loc") or ()
        field = str(loc[-1]).lower() if loc else ""
        if "input" in item:
            if field in SENSITIVE_KEYS:
                item["input"] = mask_secret(item["input"])
            else:
                item["input"] = mask_sensitive_data(item["input"])
        masked.append(item)
    return masked
