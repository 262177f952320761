"""应用配置模块。

本模块使用pydantic-settings进行环境变量管理，提供应用运行所需的所有配置参数。
支持多环境配置：
- 开发环境：读取 .env.development
- 生产环境：读取 .env.production
- 默认：读取 .env

环境通过 APP_ENV 环境变量指定，默认为 development。
"""

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_env_files() -> tuple[str, ...]:
    """根据APP_ENV环境变量获取要加载的.env文件列表。

    返回的文件列表按优先级从高到低排列。

    :return: .env文件路径元组
    """
    app_env = os.getenv("APP_ENV", "development")

    env_files_map = {
        "development": (".env.development", ".env"),
        "production": (".env.production", ".env"),
    }

    return env_files_map.get(app_env, (".env",))


class AppConfig(BaseSettings):
    """应用配置类。

    使用 Pydantic BaseSettings 从环境变量加载配置。
    支持从 ``.env`` 文件读取，优先级：环境变量 > .env 文件 > 默认值。

    :param app_env: 应用运行环境（development/production）
    :param host: 服务器监听地址
    :param port: 服务器监听端口（1-65535）
    :param workers: 工作进程数（≥1）
    :param log_level: 日志级别（DEBUG/INFO/WARNING/ERROR/CRITICAL）
    :param verbose_logging: 是否启用详细日志模式
    :param target_api_url: 后端模型的 chat completions 完整地址
    :param target_api_key: 后端模型的访问密钥（可选）
    :param target_model: 请求未指定模型时发送给后端的模型名
    :param max_rounds: 单个请求内与后端交互的最大轮次
    :param timeout_chat: 后端请求超时（秒）
    :param handler_cache_size: 处理器缓存的最大条目数
    :param cors_origins: 允许的跨域来源

    .. code-block:: bash

       # .env 文件示例
       APP_ENV=production
       TARGET_API_URL=http://localhost:11434/v1/chat/completions
       TARGET_MODEL=llama3
       LOG_LEVEL=INFO

    .. seealso::
       :func:`get_settings` - 获取配置单例
    """

    model_config = SettingsConfigDict(
        env_file=_get_env_files(),
        env_file_encoding="utf-8",
        extra="allow",
        case_sensitive=False,
    )

    app_env: Literal["development", "production"] = Field(
        default="development",
        description="应用运行环境"
    )

    host: str = Field(
        default="0.0.0.0",
        description="服务器监听地址"
    )

    port: int = Field(
        default=3500,
        description="服务器监听端口",
        gt=0,
        lt=65536
    )

    workers: int = Field(
        default=1,
        description="工作进程数",
        ge=1
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="日志级别"
    )

    verbose_logging: bool = Field(
        default=None,
        validate_default=True,
        description="是否启用详细日志模式（未设置时跟随 DEBUG 级别）"
    )

    # 后端目标配置
    target_api_url: str = Field(
        default="",
        description="后端 chat completions 地址（为空表示未配置）"
    )

    target_api_key: str = Field(
        default="",
        description="后端访问密钥"
    )

    target_model: str = Field(
        default="default",
        description="默认后端模型名"
    )

    # 编排配置
    max_rounds: int = Field(
        default=10,
        ge=1,
        description="单请求最大轮次"
    )

    timeout_chat: int = Field(
        default=300,
        ge=1,
        description="后端请求超时(秒)"
    )

    handler_cache_size: int = Field(
        default=128,
        ge=1,
        description="处理器缓存最大条目数"
    )

    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="允许的跨域来源"
    )

    @field_validator("verbose_logging", mode="before")
    @classmethod
    def auto_enable_verbose_for_debug(cls, v: bool, info) -> bool:
        """如果日志级别为DEBUG，自动启用详细日志（除非明确设置为False）。"""
        if v is not None and isinstance(v, bool):
            return v
        if isinstance(v, str) and v.strip():
            return v.strip().lower() in ("1", "true", "yes", "on")
        log_level = info.data.get("log_level", "INFO")
        if log_level and log_level.upper() == "DEBUG":
            return True
        return False

    @field_validator("target_api_url")
    @classmethod
    def validate_target_api_url(cls, v: str) -> str:
        """验证后端 URL 格式"""
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("target_api_url 必须以 http:// 或 https:// 开头")
        return v

    @property
    def has_target(self) -> bool:
        """是否已配置后端目标。"""
        return bool(self.target_api_url)


@lru_cache
def get_settings() -> AppConfig:
    """获取应用配置单例。

    使用lru_cache确保配置只被加载一次，提高性能。

    :return: AppConfig实例

    Example::

        >>> settings = get_settings()
        >>> print(settings.host, settings.port)
    """
    return AppConfig()
