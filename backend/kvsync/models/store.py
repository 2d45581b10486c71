"""
存储响应模型 - KV存储返回的节点/响应/变更事件

字段命名对应 etcd v2 keys API 的 JSON 结构（createdIndex/modifiedIndex/prevNode）
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class StoreNode(BaseModel):
    """存储节点（叶子或目录）"""
    key: str = "/"
    value: str | None = None
    dir: bool = False
    nodes: list[StoreNode] = Field(default_factory=list)
    created_index: int = Field(0, alias="createdIndex")
    modified_index: int = Field(0, alias="modifiedIndex")
    ttl: int | None = None
    expiration: str | None = None

    model_config = {"populate_by_name": True}

    @property
    def name(self) -> str:
        """key的最后一段"""
        return self.key.rsplit("/", 1)[-1]

    def child(self, key: str) -> StoreNode | None:
        """按完整key查找直接子节点"""
        for node in self.nodes:
            if node.key == key:
                return node
        return None


class StoreResponse(BaseModel):
    """存储操作响应"""
    action: str = "get"
    node: StoreNode = Field(default_factory=StoreNode)
    prev_node: StoreNode | None = Field(None, alias="prevNode")
    index: int = Field(0, description="存储当前全局索引")

    model_config = {"populate_by_name": True}


class WatchEvent(BaseModel):
    """变更事件"""
    action: str
    key: str
    value: str | None = None
    dir: bool = False
    modified_index: int = 0
    prev_value: str | None = None

    @classmethod
    def from_response(cls, response: StoreResponse) -> WatchEvent:
        prev = response.prev_node
        return cls(
            action=response.action,
            key=response.node.key,
            value=response.node.value,
            dir=response.node.dir,
            modified_index=response.node.modified_index,
            prev_value=prev.value if prev else None,
        )
