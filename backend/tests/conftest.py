"""
pytest 配置与公共 fixtures

使用方式：
    def test_something(store, config, client):
        client.save()
        assert store.get("/ns/key1/subkey1").node.value == "a"
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from kvsync import MemoryKVStore, SyncClient
from kvsync.config import SyncSettings
from sample_config import Config, ServiceConfig, sample_config


# ============================================================================
# 配置 Fixtures
# ============================================================================

@pytest.fixture
def settings() -> SyncSettings:
    """运行期配置（默认值）"""
    return SyncSettings()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """临时目录"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ============================================================================
# 存储 Fixtures
# ============================================================================

@pytest.fixture
def store() -> Generator[MemoryKVStore, None, None]:
    """内存存储（自动关闭）"""
    kv = MemoryKVStore(wait_interval=0.01)
    yield kv
    kv.close()


# ============================================================================
# 同步门面 Fixtures
# ============================================================================

@pytest.fixture
def config() -> Config:
    """示例配置 {key1:{"a",1}, key2:[{301,true}], key3:{"m1":"v1"}}"""
    return sample_config()


@pytest.fixture
def client(store: MemoryKVStore, config: Config) -> SyncClient:
    """命名空间 ns 下的同步门面"""
    return SyncClient(store, "ns", config)


@pytest.fixture
def service() -> ServiceConfig:
    """覆盖标量序列/结构体映射的配置"""
    return ServiceConfig(
        name="api",
        enabled=True,
        tags=["blue", "green"],
        ports=[80, 443],
        flags=[True, False],
        endpoints={
            "primary": {"host": "10.0.0.1", "port": 2379},
            "backup": {"host": "10.0.0.2", "port": 2380},
        },
    )
