"""远端数据网关接口。

实体仓库只通过本接口访问后端，按表名做行级的增删改查：

- select(table, filters, order) -> rows
- insert(table, row) -> row
- update(table, id, patch) -> row
- delete(table, id) -> None
- upsert_batch(table, rows) -> None

行统一用字典表示，键为数据表列名。所有方法都是协程，
后端拒绝或网络失败时抛出 GatewayError。
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

Row = Dict[str, Any]
# 排序规则：(列名, 是否升序)
Order = Sequence[Tuple[str, bool]]


class GatewayError(Exception):
    """后端拒绝请求或请求失败。

    Attributes:
        table: 出错的数据表。
        operation: 出错的操作（select/insert/update/delete/upsert_batch）。
    """

    def __init__(self, message: str, table: str = "",
                 operation: str = "") -> None:
        super().__init__(message)
        self.table = table
        self.operation = operation


class RemoteGateway(ABC):
    """远端数据网关抽象基类。

    实现类负责和具体后端通讯（托管数据库、REST 服务等），
    不得包含任何客户端状态。
    """

    @abstractmethod
    async def select(self, table: str,
                     filters: Optional[Dict[str, Any]] = None,
                     order: Optional[Order] = None) -> List[Row]:
        """按等值条件查询行。

        Args:
            table: 表名。
            filters: 列名 -> 值，全部条件按 AND 组合。
            order: 排序规则列表。

        Returns:
            行字典列表。
        """
        pass

    @abstractmethod
    async def insert(self, table: str, row: Row) -> Row:
        """插入一行，返回带有后端生成字段（id、时间戳）的完整行。"""
        pass

    @abstractmethod
    async def update(self, table: str, row_id: str, patch: Row) -> Row:
        """按 id 更新一行，返回更新后的完整行。"""
        pass

    @abstractmethod
    async def delete(self, table: str, row_id: str) -> None:
        """按 id 删除一行。"""
        pass

    @abstractmethod
    async def upsert_batch(self, table: str, rows: List[Row]) -> None:
        """批量写入：带 id 且已存在的行按字段更新，其余行插入。

        整批在一个事务中完成，失败时整批不生效。
        """
        pass
