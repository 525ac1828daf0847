"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。
进程启动时构建一次 settings，再通过构造函数传给客户端与解析器。
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
    explicit = os.getenv("PROXY_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
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


class ProxySettings(BaseSettings):
    """代理服务配置（使用 Pydantic）。"""

    # ---- Dust 凭据 ----
    dust_api_key: Optional[str] = Field(default=None, description="Dust API 密钥")
    dust_workspace_id: Optional[str] = Field(default=None, description="Dust 工作区 ID")
    dust_base_url: str = Field(
        default="https://dust.tt/api/v1",
        description="Dust API 基础URL",
    )
    dust_app_url: str = Field(
        default="https://dust.tt",
        description="Dust Web 界面地址，用于拼接超时时的会话链接",
    )
    http_timeout: float = Field(default=30.0, ge=1.0, description="单次 HTTP 调用超时时间（秒）")

    # ---- 解析策略 ----
    default_strategy: str = Field(default="poll", description="默认解析策略：poll、poll-fast 或 stream")
    poll_max_attempts: int = Field(default=15, ge=1, le=100, description="poll 策略最大轮询次数")
    poll_fast_max_attempts: int = Field(default=4, ge=1, le=100, description="poll-fast 策略最大轮询次数")
    poll_delay: float = Field(default=2.0, ge=0.0, description="两次轮询之间的固定间隔（秒）")
    stream_deadline: float = Field(default=60.0, ge=1.0, description="流式读取的整体截止时间（秒）")

    # ---- 创建会话时携带的上下文 ----
    message_timezone: str = Field(default="Europe/Paris", description="消息上下文中的时区")
    message_username: str = Field(default="Figma Plugin User", description="消息上下文中的用户名")
    title_prefix: str = Field(default="Mockup: ", description="会话标题前缀")

    # ---- 服务与日志 ----
    host: str = Field(default="0.0.0.0", description="监听地址")
    port: int = Field(default=3000, ge=1, le=65535, description="监听端口")
    expose_stack_trace: bool = Field(default=False, description="500 响应中是否附带异常堆栈")
    log_dir: str = Field(default="logs", description="日志目录")
    log_level: str = Field(default="INFO", description="日志级别，例如 DEBUG、INFO、WARNING")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")
    log_to_console: bool = Field(default=True, description="是否同时输出到 stderr")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("dust_api_key", "dust_workspace_id")
    @classmethod
    def blank_as_missing(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("default_strategy")
    @classmethod
    def normalize_strategy(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def has_credentials(self) -> bool:
        return bool(self.dust_api_key and self.dust_workspace_id)

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


settings = ProxySettings()

if not settings.has_credentials:
    warnings.warn("DUST_API_KEY / DUST_WORKSPACE_ID not set, proxy requests will fail with 500")
