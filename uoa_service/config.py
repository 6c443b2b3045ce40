"""
异动期权服务配置模块
支持从环境变量读取配置，自动检测 Docker 容器环境并启用服务发现
"""

import os
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _is_docker() -> bool:
    """检测当前是否运行在 Docker 容器内"""
    return (
        os.path.exists("/.dockerenv")
        or os.environ.get("DOCKER_CONTAINER", "").lower() in ("1", "true", "yes")
    )


def _default_redis_host() -> str:
    """Docker 环境使用服务名 'redis'，本地使用 'localhost'"""
    return "redis" if _is_docker() else "localhost"


class UOAServiceSettings(BaseSettings):
    """异动期权服务配置"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── 基础配置 ──────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8001)
    DEBUG: bool = Field(default=False)
    ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"]
    )

    # ── 上游数据源（Benzinga） ─────────────────────────────
    BENZINGA_API_KEY: str = Field(default="")
    BENZINGA_BASE_URL: str = Field(
        default="https://api.benzinga.com/api/v1/signal/option_activity"
    )
    BENZINGA_HEADER_AUTH: bool = Field(default=False)  # True 时通过 Authorization 头传递 Key
    UPSTREAM_TIMEOUT_SECONDS: float = Field(default=15.0)

    # ── Redis 配置（支持服务发现） ─────────────────────────
    REDIS_HOST: str = Field(default_factory=_default_redis_host)
    REDIS_PORT: int = Field(default=6379)
    REDIS_PASSWORD: str = Field(default="")
    REDIS_DB: int = Field(default=0)
    REDIS_ENABLED: bool = Field(default=True)
    REDIS_MAX_CONNECTIONS: int = Field(default=20)

    @property
    def REDIS_URL(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # ── 缓存配置 ──────────────────────────────────────────
    CACHE_TTL_SECONDS: int = Field(default=30)     # 响应缓存 TTL（秒）
    CACHE_NAMESPACE: str = Field(default="uoa")

    # ── 查询与推断策略 ────────────────────────────────────
    DEFAULT_PAGE: int = Field(default=1)
    DEFAULT_PAGE_SIZE: int = Field(default=50)
    AGGRESSIVE_BUY_THRESHOLD: float = Field(default=0.75)   # pos_in_spread ≥ 阈值视为主动买
    AGGRESSIVE_SELL_THRESHOLD: float = Field(default=0.25)  # pos_in_spread ≤ 阈值视为主动卖

    # ── 日志配置 ──────────────────────────────────────────
    LOG_LEVEL: str = Field(default="INFO")


@lru_cache
def get_settings() -> UOAServiceSettings:
    """获取全局配置（单例）"""
    return UOAServiceSettings()


settings = get_settings()
