"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, BaseModel, Field
from typing import Optional
from pydantic import model_validator


class RedisSettings(BaseModel):
    url: Optional[str] = None
    max_connections: int = 10
    default_ttl: int = 300
    namespace: str = "payment-reconciler"


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./payments.db"


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="Payment Reconciler", validation_alias=AliasChoices("PROJECT_NAME", "APP_NAME"))
    VERSION: str = Field(default="1.0.0", validation_alias=AliasChoices("VERSION", "APP_VERSION"))
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # 分组配置：Redis/Database 采用嵌套模型（环境变量 REDIS__URL / DATABASE__URL）
    redis: RedisSettings = Field(default_factory=RedisSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    # 安全配置
    SECRET_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SECRET_KEY", "JWT_SECRET", "JWT_SECRET_KEY"),
        description="JWT签名密钥，所有环境必须设置",
    )
    ALGORITHM: str = Field(default="HS256", validation_alias=AliasChoices("ALGORITHM", "JWT_ALGORITHM"))
    # 服务令牌有效期：24小时
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(
        default=24 * 60,
        validation_alias=AliasChoices("ACCESS_TOKEN_EXPIRE_MINUTES", "JWT_EXPIRATION_MINUTES"),
    )

    # 允许换取服务令牌的客户端凭据
    ALLOWED_CLIENT_ID: Optional[str] = None
    ALLOWED_CLIENT_SECRET: Optional[str] = None

    # 日志/请求体记录配置
    LOG_REQUEST_BODY_ENABLE_BY_DEFAULT: bool = False
    LOG_REQUEST_BODY_MAX_BYTES: int = 2048

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _validate_secret_key(self):
        # 所有环境均要求显式配置 SECRET_KEY（或 JWT_SECRET），避免重启导致已签发令牌失效
        if not self.SECRET_KEY:
            raise ValueError(
                "SECRET_KEY 未配置。请在环境变量或 .env 中设置 SECRET_KEY（或 JWT_SECRET）"
            )
        return self


settings = Settings()
