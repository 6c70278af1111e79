"""
cfhelper.core.config
~~~~~~~~~~~~~~~~~~~~

集中式配置管理，基于 pydantic-settings 自动从 ``.env`` 文件加载。

支持多环境配置（dev / test / prod），加载顺序为:
  1. 环境变量（最高优先级）
  2. ``.env.{ENVIRONMENT}`` 环境专属文件
  3. ``.env`` 基础文件
  4. 字段默认值（最低优先级）
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 读取当前环境标识（在 Settings 类定义之前，用于决定加载哪个 .env 文件）
_CURRENT_ENV: str = os.getenv("ENVIRONMENT", "dev")


class Settings(BaseSettings):
    """全局配置对象，字段值按如下优先级加载：环境变量 > .env.{env} > .env > 默认值。"""

    # ── 基础 ──────────────────────────────────────────────────────────
    PROJECT_NAME: str = Field(default="SE Onboarding Chat", description="项目名称")
    VERSION: str = Field(default="0.1.0", description="版本号")
    ENVIRONMENT: Literal["dev", "test", "prod"] = Field(
        default="dev",
        description="运行环境：dev / test / prod",
    )

    # ── Workers AI ────────────────────────────────────────────────────
    CF_ACCOUNT_ID: str = Field(..., description="Cloudflare 账户 ID")
    CF_API_TOKEN: str = Field(..., description="具备 Workers AI 权限的 API Token")
    CF_API_BASE_URL: str = Field(
        default="https://api.cloudflare.com/client/v4",
        description="Cloudflare REST API 根地址",
    )

    # ── Gemini（可选的第二推理后端）──────────────────────────────────
    GEMINI_API_KEY: str = Field(default="", description="Google Gemini API Key，留空则不启用")

    # ── 推理 ──────────────────────────────────────────────────────────
    DEFAULT_MODEL: str = Field(
        default="@cf/meta/llama-4-scout-17b-16e-instruct",
        description="客户端未指定模型时使用的默认模型",
    )
    INFERENCE_TIMEOUT_SECONDS: float = Field(
        default=60.0,
        description="单次推理 HTTP 调用的超时时间",
    )

    # ── 文档检索（MCP）────────────────────────────────────────────────
    DOCS_MCP_BASE_URL: str = Field(
        default="https://docs.mcp.cloudflare.com",
        description="文档检索 MCP 服务根地址",
    )
    DOCS_SEARCH_TOOL: str = Field(
        default="search_cloudflare_documentation",
        description="调用的 MCP 工具名称",
    )
    MCP_TIMEOUT_SECONDS: float = Field(default=30.0, description="SSE 等待结果的总超时")
    MCP_SUBMIT_DELAY_SECONDS: float = Field(
        default=1.0,
        description="打开 SSE 通道后、提交查询前的等待时间",
    )
    MCP_MIN_RESULT_LENGTH: int = Field(default=10, description="检索结果的最小可用长度")
    MCP_MAX_CONTEXT_CHARS: int = Field(default=8000, description="注入系统提示的检索文本上限")

    # ── 房间 ──────────────────────────────────────────────────────────
    DEFAULT_ROOM: str = Field(default="default", description="未指定 room 参数时的房间 ID")
    ROOM_IDLE_GRACE_SECONDS: float = Field(
        default=30.0,
        description="房间无人后保留状态的宽限期",
    )
    WS_QUEUE_SIZE: int = Field(default=20, description="单连接待处理事件队列长度")

    # ── 服务 ──────────────────────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0", description="服务监听地址")
    PORT: int = Field(default=8000, description="服务监听端口")
    LOG_LEVEL: str = Field(default="INFO", description="日志级别（可被环境属性覆盖）")

    # ── Pydantic Settings ─────────────────────────────────────────────
    # 先加载 .env.{env} 再加载 .env，前者优先级更高
    model_config = SettingsConfigDict(
        env_file=(f".env.{_CURRENT_ENV}", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── 环境判断 ──────────────────────────────────────────────────────

    @property
    def is_prod(self) -> bool:
        """当前是否为生产环境。"""
        return self.ENVIRONMENT == "prod"

    @property
    def is_test(self) -> bool:
        """当前是否为测试环境。"""
        return self.ENVIRONMENT == "test"

    @property
    def is_dev(self) -> bool:
        """当前是否为开发环境。"""
        return self.ENVIRONMENT == "dev"

    # ── 环境差异化行为 ────────────────────────────────────────────────

    @property
    def debug(self) -> bool:
        """是否开启 debug 模式。仅 dev 环境开启。"""
        return self.is_dev

    @property
    def reload(self) -> bool:
        """是否开启热重载。仅 dev 环境开启。"""
        return self.is_dev

    @property
    def effective_log_level(self) -> str:
        """根据环境自动推断日志级别。

        - dev  → INFO
        - test → DEBUG（方便排查测试失败）
        - prod → WARNING（减少噪音）

        如果环境变量中显式设置了 LOG_LEVEL，会覆盖此默认推断。
        """
        env_log = os.getenv("LOG_LEVEL")
        if env_log:
            return env_log
        return {
            "dev": "INFO",
            "test": "DEBUG",
            "prod": "WARNING",
        }.get(self.ENVIRONMENT, "INFO")

    @property
    def allow_cors_all_origins(self) -> bool:
        """是否允许所有 CORS 来源。非 prod 环境允许，方便本地调试。"""
        return not self.is_prod

    @property
    def gemini_enabled(self) -> bool:
        """是否配置了 Gemini 后端。"""
        return bool(self.GEMINI_API_KEY)


@lru_cache
def get_settings() -> Settings:
    """获取全局 Settings 单例（带缓存，避免重复解析 .env）。"""
    return Settings()


settings: Settings = get_settings()
