"""部门拖拽排序引擎。

引擎与具体的拖拽手势库无关：调用方把 (被拖动的 id, 目标 id)
交给引擎，引擎负责计算新顺序、维护固定行的位置、批量保存，
保存失败时回滚。

状态机::

    IDLE ──start_drag──→ DRAGGING ──drop──→ DROPPED_VALID ───→ IDLE
                                      └───→ DROPPED_INVALID ─→ IDLE

排序是唯一采用乐观更新的写入：本地顺序立即生效，再批量写入后端；
写入失败时丢弃本地顺序并从后端重新载入。
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from loguru import logger

from config.crm_config import ALL_DEPARTMENTS, PINNED_DEPARTMENTS, UNCATEGORIZED
from interface.base import ActivityType
from .cancellation import CancelToken
from .departments import DepartmentStore
from .entities import Department
from .exceptions import RemoteReadError, RemoteWriteError, SubmissionInProgress
from .reconciliation import Mutation


class DragState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    DROPPED_VALID = "dropped_valid"
    DROPPED_INVALID = "dropped_invalid"


@dataclass
class ReorderResult:
    """一次有效拖放的计算结果

    Attributes:
        rows: 新的显示顺序（含虚拟行）。
        updates: 需要保存的 {id, sort_order} 列表。
    """
    rows: List[Department]
    updates: List[dict]


def is_pinned(department: Department) -> bool:
    return department.code in PINNED_DEPARTMENTS


def compute_order(rows: List[Department], active_id: str,
                  over_id: Optional[str]) -> Optional[ReorderResult]:
    """计算一次拖放后的新顺序。

    1. 把被拖动的行从原位置移到目标位置
    2. 如果“所有客户”行被挤离第 0 位，把它移回第 0 位
    3. “未分類”保存的排序值最大，重新载入后总在最后，因此本地也把它放回末尾
    4. 除“所有客户”与“未分类”外，其余行按列表顺序重新编号 1..N

    Args:
        rows: 当前显示顺序。
        active_id: 被拖动行的 id。
        over_id: 放下位置所在行的 id，拖到列表外时为 None。

    Returns:
        有效拖放返回 ReorderResult；无效拖放返回 None。
    """
    if over_id is None or active_id == over_id:
        return None
    ids = [row.id for row in rows]
    if active_id not in ids or over_id not in ids:
        return None

    source = ids.index(active_id)
    target = ids.index(over_id)
    if is_pinned(rows[source]):
        return None
    if target == 0 and rows[0].code == ALL_DEPARTMENTS:
        return None

    moved = list(rows)
    moved.insert(target, moved.pop(source))

    for index, row in enumerate(moved):
        if row.code == ALL_DEPARTMENTS and index != 0:
            moved.insert(0, moved.pop(index))
            break
    for index, row in enumerate(moved):
        if row.code == UNCATEGORIZED and index != len(moved) - 1:
            moved.append(moved.pop(index))
            break

    result: List[Department] = []
    updates: List[dict] = []
    next_order = 1
    for row in moved:
        if row.code in (ALL_DEPARTMENTS, UNCATEGORIZED):
            result.append(row)
            continue
        row = row.merge({"sort_order": next_order})
        updates.append({"id": row.id, "sort_order": next_order})
        result.append(row)
        next_order += 1
    return ReorderResult(rows=result, updates=updates)


class ReorderEngine:
    """部门排序引擎

    Attributes:
        store: 部门仓库。
        state: 当前拖拽状态。
        active_id: 正在拖动的部门 id。
    """

    SUBMIT_KEY = "departments:reorder"

    def __init__(self, store: DepartmentStore) -> None:
        self.store = store
        self.state = DragState.IDLE
        self.active_id: Optional[str] = None

    def start_drag(self, active_id: str) -> bool:
        """开始拖动；固定行和不存在的行不能拖动，返回 False"""
        department = self.store.get(active_id)
        if department is None or is_pinned(department):
            logger.debug(f"部门 {active_id} 不可拖动")
            self._reset()
            return False
        self.state = DragState.DRAGGING
        self.active_id = active_id
        return True

    def cancel_drag(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self.state = DragState.IDLE
        self.active_id = None

    async def drop(self, over_id: Optional[str],
                   token: Optional[CancelToken] = None) -> Optional[List[Department]]:
        """在目标行上放下。

        Returns:
            有效拖放返回新的部门列表；无效拖放返回 None，列表不变。

        Raises:
            RemoteWriteError: 批量保存失败，列表已恢复为后端顺序。
        """
        if self.state is not DragState.DRAGGING or self.active_id is None:
            return None

        result = compute_order(self.store.list(), self.active_id, over_id)
        if result is None:
            self.state = DragState.DROPPED_INVALID
            logger.debug(f"无效的拖放: {self.active_id} -> {over_id}")
            self._reset()
            return None

        self.state = DragState.DROPPED_VALID
        try:
            await self._persist(result, token)
        finally:
            self._reset()
        return self.store.list()

    async def move(self, active_id: str, over_id: Optional[str],
                   token: Optional[CancelToken] = None) -> Optional[List[Department]]:
        """一次完成拖动与放下，供键盘操作或测试使用"""
        if not self.start_drag(active_id):
            return None
        return await self.drop(over_id, token)

    async def _persist(self, result: ReorderResult,
                       token: Optional[CancelToken]) -> None:
        snapshot = self.store.persisted()
        self.store.replace_order(result.rows)

        async def remote():
            await self.store.gateway.upsert_batch(self.store.table, result.updates)

        try:
            await self.store.reconciler.run(Mutation(
                submit_key=self.SUBMIT_KEY,
                activity=ActivityType.EDIT,
                remote=remote,
                success_message="部門順序已更新",
                failure_message="無法更新部門順序",
                token=token,
            ))
        except SubmissionInProgress:
            self.store.replace_order(snapshot)
            raise
        except RemoteWriteError:
            self.store.replace_order(snapshot)
            try:
                await self.store.refresh(token=token)
            except RemoteReadError:
                logger.warning("排序失败后重新载入部门失败，保留拖动前的顺序")
            raise
        logger.info(f"部门顺序已更新: {len(result.updates)} 个部门")
