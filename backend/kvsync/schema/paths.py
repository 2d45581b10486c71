"""
路径派生 - 由前缀与注解段拼接存储路径

规则：
- derive_path(prefix, segment) = prefix + "/" + segment
- prefix 为空时结果为 "/" + segment
- 段原样使用，不做规范化（含"/"的注解段在 schema 推导时拒绝）
"""

from __future__ import annotations


def derive_path(prefix: str, segment: str) -> str:
    """拼接子路径"""
    if not prefix:
        return "/" + segment
    return prefix + "/" + segment


def normalize_namespace(namespace: str) -> str:
    """去掉命名空间首尾的"/"（"/teststructmap/item1/" -> "teststructmap/item1"）"""
    return namespace.strip("/")


def root_path(namespace: str) -> str:
    """
    根路径（用于派生子路径的前缀）

    命名空间为空时返回空串，子路径形如 "/key1"；
    注册表中根的键见 registry_key。
    """
    namespace = normalize_namespace(namespace)
    if not namespace:
        return ""
    return "/" + namespace


def registry_key(path: str) -> str:
    """注册表键：空前缀对应 "/" """
    return path or "/"


def walk_prefix(path: str) -> str:
    """registry_key 的逆操作"""
    return "" if path == "/" else path


def last_segment(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def is_under(path: str, parent: str) -> bool:
    """path 是否位于 parent 之下（不含 parent 本身）"""
    if parent in ("", "/"):
        return path != "/" and path.startswith("/")
    return path.startswith(parent + "/")
