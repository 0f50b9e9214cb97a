"""配置管理模块。

支持从 .env、config.yaml 以及环境变量（前缀 FINAC_CHAT_）加载配置。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("FINAC_CHAT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


def check_error_template(template: str) -> str:
    """错误回复模板只能引用 {error} 一个占位符，否则失败时 format 会再抛异常。"""

    if "{error}" not in template:
        raise ValueError("error_reply_template must contain '{error}'")
    try:
        template.format(error="x")
    except (AttributeError, KeyError, IndexError, ValueError) as e:
        raise ValueError(f"error_reply_template is not a valid format string: {e!r}")
    return template


class Settings(BaseSettings):
    """客户端配置。"""

    # ---- Finac 服务端 ----
    base_url: str = Field(
        default="http://localhost:3000",
        description="Finac 应用的根地址",
    )
    chat_path: str = Field(default="/api/ai/chat", description="发送消息 / 单个会话接口")
    chats_path: str = Field(default="/api/ai/chats", description="会话列表接口")
    auth_cookie_name: str = Field(
        default="better-auth.session_token",
        description="登录态 cookie 名称",
    )
    auth_cookie: Optional[str] = Field(default=None, description="登录态 cookie 值")

    # ---- 网络 / 流式读取 ----
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    stream_idle_timeout: float = Field(
        default=60.0,
        gt=0,
        description="流式读取时两次数据块之间允许的最长等待（秒），超时即判定本轮失败",
    )

    # ---- 本地消息 ----
    provisional_id_prefix: str = Field(default="temp-", description="乐观消息 ID 前缀")
    error_reply_template: str = Field(
        default="Sorry, I encountered an error: {error}. Please try again.",
        description="本轮失败时合成的助手消息模板",
    )

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_prefix="FINAC_CHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("error_reply_template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        return check_error_template(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
