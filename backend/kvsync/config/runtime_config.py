"""
运行期配置 - 读取 config/kvsync.yaml

职责：
- 加载存储地址/命名空间/超时/watch/日志等运行参数
- 提供环境变量覆盖机制（KVSYNC_ 前缀，嵌套用 __）
- 类型安全的配置访问
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from ..transport.etcd import normalize_endpoint, parse_auth

DEFAULT_CONFIG_PATH = Path("config/kvsync.yaml")


class TimeoutConfig(BaseModel):
    """超时配置"""

    request_sec: float = 5.0
    watch_poll_sec: float = 1.0


class WatchConfig(BaseModel):
    """watch订阅配置"""

    queue_size: int = 256
    poll_interval_sec: float = 0.5


class LoggingConfig(BaseModel):
    """日志配置"""

    log_level: str = "INFO"
    log_format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class SyncSettings(BaseSettings):
    """同步运行期配置（支持环境变量覆盖）"""

    # 存储
    endpoints: list[str] = Field(default_factory=lambda: ["http://127.0.0.1:2379"])
    auth: str = ""
    namespace: str = ""

    # 布尔值解析：True 时非 "true"/"false" 文本报 ParseError，False 时保持未设置
    strict_booleans: bool = True

    # 各子配置
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "KVSYNC_",
        "env_nested_delimiter": "__",
    }

    @field_validator("endpoints")
    @classmethod
    def _normalize_endpoints(cls, value: list[str]) -> list[str]:
        endpoints = [normalize_endpoint(e) for e in value if e.strip()]
        if not endpoints:
            raise ValueError("endpoints 不能为空")
        return endpoints

    @field_validator("auth")
    @classmethod
    def _check_auth(cls, value: str) -> str:
        parse_auth(value)
        return value

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> SyncSettings:
        """从YAML文件加载配置（文件不存在时使用默认值）"""
        path = Path(yaml_path)
        if not path.exists():
            return cls()

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        section = data.get("kvsync", {}) or {}
        top = {
            k: v for k, v in cls._extract(data, "kvsync").items()
            if k in ("endpoints", "auth", "namespace", "strict_booleans")
        }

        return cls(
            **top,
            timeouts=TimeoutConfig(**cls._extract(section, "timeouts")),
            watch=WatchConfig(**cls._extract(section, "watch")),
            logging=LoggingConfig(**cls._extract(section, "logging")),
        )

    @staticmethod
    def _extract(data: dict[str, Any], key: str) -> dict[str, Any]:
        """提取并展平配置"""
        section = data.get(key, {}) or {}
        result = {}
        for k, v in section.items():
            if isinstance(v, dict) and "default" in v:
                result[k] = v["default"]
            elif not isinstance(v, dict):
                result[k] = v
        return result


def setup_logging(settings: SyncSettings) -> None:
    """按配置初始化根日志"""
    level = getattr(logging, settings.logging.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=settings.logging.log_format)
    logging.getLogger("kvsync").setLevel(level)


# 全局配置实例
_config: SyncSettings | None = None


def get_config() -> SyncSettings:
    """获取全局配置（惰性加载）"""
    global _config
    if _config is None:
        _config = SyncSettings.from_yaml(DEFAULT_CONFIG_PATH)
    return _config


def reload_config(yaml_path: str | Path | None = None) -> SyncSettings:
    """重新加载配置"""
    global _config
    path = yaml_path or DEFAULT_CONFIG_PATH
    _config = SyncSettings.from_yaml(path)
    return _config
