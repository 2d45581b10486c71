"""
配置层 - 加载运行期配置

职责：
- 加载 config/kvsync.yaml（存储地址/命名空间/超时/watch/日志）
- 支持 KVSYNC_ 环境变量覆盖
- 提供类型安全的配置访问接口
"""

from .runtime_config import (
    LoggingConfig,
    SyncSettings,
    TimeoutConfig,
    WatchConfig,
    get_config,
    reload_config,
    setup_logging,
)

__all__ = [
    "SyncSettings",
    "TimeoutConfig",
    "WatchConfig",
    "LoggingConfig",
    "get_config",
    "reload_config",
    "setup_logging",
]
