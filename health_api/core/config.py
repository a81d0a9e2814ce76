"""
File: health_api/core/config.py
Description: 全局应用配置管理（使用 pydantic-settings）

所有配置值通过环境变量或 .env 文件加载。
本模块负责：
1. 校验环境变量类型
2. 解析复杂类型（如 CORS 列表）
3. 组装数据库 DSN（生产使用 postgresql+asyncpg，本地/测试可直接给 sqlite+aiosqlite）
4. 定义 Redis、JWT、密码哈希工作因子与头像上传参数
5. 运行时强制校验必填项，确保应用在配置缺失时快速失败
"""

from typing import Literal

from pydantic import AnyHttpUrl, model_validator
from pydantic_core import MultiHostUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """全局配置对象（唯一真实来源）"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        case_sensitive=True,
    )

    # --------------------------------------------------------------------------
    # 1. General (通用)
    # --------------------------------------------------------------------------
    PROJECT_NAME: str = "Health Accounts API"
    API_PREFIX: str = "/api"
    ENVIRONMENT: Literal["local", "dev", "prod"] = "local"
    DEBUG: bool = False
    PORT: int = 3000

    # JWT 签名密钥 (启动时读取一次，之后只读；严禁写入日志)
    SECRET_KEY: str | None = None

    # CORS 配置（Pydantic 会自动解析 JSON 字符串列表）
    BACKEND_CORS_ORIGINS: list[AnyHttpUrl] = []

    # --------------------------------------------------------------------------
    # 2. Database (PostgreSQL)
    # --------------------------------------------------------------------------
    POSTGRES_SERVER: str | None = None
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str | None = None
    POSTGRES_PASSWORD: str | None = None
    POSTGRES_DB: str | None = None

    # 连接池配置 (仅对 PostgreSQL 生效)
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_PRE_PING: bool = True
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # 完整 DSN 覆盖（可选，例如 sqlite+aiosqlite:///./health.db）
    SQLALCHEMY_DATABASE_URI: str | None = None

    # --------------------------------------------------------------------------
    # 3. Logging (Loguru)
    # --------------------------------------------------------------------------
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_JSON_FORMAT: bool = False
    LOG_FILE_ENABLED: bool = False
    LOG_DIR: str = "logs"
    LOG_ROTATION: str = "1 hour"
    LOG_RETENTION: str = "7 days"
    LOG_COMPRESSION: str = "zip"
    LOG_DIAGNOSE: bool = True  # 生产环境建议 False，避免变量值进入日志

    # --------------------------------------------------------------------------
    # 4. Redis (Token 解析缓存)
    # --------------------------------------------------------------------------
    REDIS_URL: str = "redis://localhost:6379/0"

    # Token -> 用户 解析结果的缓存时长 (秒)，必须远短于 Token 自身有效期
    TOKEN_CACHE_TTL_SECONDS: int = 60 * 60

    # --------------------------------------------------------------------------
    # 5. Security & Authentication (JWT + Argon2id)
    # --------------------------------------------------------------------------
    # Token 有效期 (天)，签发时固定，不可原地续期
    ACCESS_TOKEN_EXPIRE_DAYS: int = 60

    # JWT 签名算法
    ALGORITHM: str = "HS256"

    # Argon2id 工作因子 (固定值，调整后仅影响新生成的哈希)
    PASSWORD_HASH_TIME_COST: int = 3
    PASSWORD_HASH_MEMORY_COST: int = 65536  # KiB
    PASSWORD_HASH_PARALLELISM: int = 4

    # --------------------------------------------------------------------------
    # 6. Avatar Upload (头像上传)
    # --------------------------------------------------------------------------
    UPLOAD_DIR: str = "__uploads"
    UPLOAD_CHUNK_SIZE: int = 64 * 1024
    AVATAR_MAX_BYTES: int = 5 * 1024 * 1024

    # --------------------------------------------------------------------------
    # Properties (便捷属性)
    # --------------------------------------------------------------------------
    @property
    def is_production(self) -> bool:
        """是否为生产环境"""
        return self.ENVIRONMENT == "prod"

    @property
    def is_sqlite(self) -> bool:
        """当前 DSN 是否指向 SQLite (本地调试/测试)"""
        return str(self.SQLALCHEMY_DATABASE_URI).startswith("sqlite")

    # --------------------------------------------------------------------------
    # Validators
    # --------------------------------------------------------------------------
    @model_validator(mode="after")
    def _validate_and_build_db_uri(self) -> "Settings":
        """验证必填项并构建数据库连接串。"""
        # 1. 校验 SECRET_KEY
        if not self.SECRET_KEY:
            raise ValueError("SECRET_KEY 必须在环境变量或 .env 中设置")

        if self.is_production and len(self.SECRET_KEY) < 32:
            raise ValueError("生产环境 SECRET_KEY 长度必须 >= 32 字符")

        # 2. 如果 env 直接提供了 DSN，则优先使用
        if self.SQLALCHEMY_DATABASE_URI:
            return self

        # 3. 否则检查 POSTGRES_* 字段是否齐全
        missing_fields = [
            field
            for field in (
                "POSTGRES_SERVER",
                "POSTGRES_USER",
                "POSTGRES_PASSWORD",
                "POSTGRES_DB",
            )
            if not getattr(self, field)
        ]

        if missing_fields:
            raise ValueError(
                f"缺少数据库环境变量，无法构建 DSN: {', '.join(missing_fields)}"
            )

        # 4. 自动组装 DSN
        self.SQLALCHEMY_DATABASE_URI = str(
            MultiHostUrl.build(
                scheme="postgresql+asyncpg",
                username=self.POSTGRES_USER,  # type: ignore[arg-type]
                password=self.POSTGRES_PASSWORD,  # type: ignore[arg-type]
                host=self.POSTGRES_SERVER,  # type: ignore[arg-type]
                port=self.POSTGRES_PORT,
                path=self.POSTGRES_DB,  # type: ignore[arg-type]
            )
        )

        return self


# 单例配置对象
# 配置加载失败时，Pydantic 会抛出 ValidationError，包含详细错误信息
settings = Settings()
