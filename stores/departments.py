"""部门仓库。

部门按 sort_order 排序显示，sort_order 相同时保持后端返回的先后顺序。
列表最前面永远是虚拟的“所有客户”行（代码 all），它只表示不过滤，
不对应任何后端行；“未分类”（代码 uncategorized）永远存在，
不能拖动，也不能删除。
"""
import re
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from config.crm_config import (
    ALL_DEPARTMENTS, PINNED_DEPARTMENTS, UNCATEGORIZED, UNCATEGORIZED_SORT_ORDER,
)
from config.settings import settings
from interface.base import ActivityType
from .base import EntityStore, non_negative, require_text
from .cancellation import CancelToken
from .entities import Department
from .exceptions import ValidationError
from .reconciliation import Mutation


def slugify(name: str) -> str:
    """由部门名称生成部门代码：转小写，空白换成连字符。

    保留中文等非 ASCII 文字，例如 "行銷" -> "行銷"，"Key Accounts" -> "key-accounts"。
    """
    code = re.sub(r"\s+", "-", name.strip().lower())
    return re.sub(r"[^\w-]", "", code)


def _sort_key(department: Department) -> float:
    return float("inf") if department.sort_order is None else department.sort_order


class DepartmentStore(EntityStore[Department]):
    """部门仓库

    每次写入成功后整体重新载入。

    Attributes:
        customers: 客户仓库；删除或改名部门时同步客户的部门字段。
    """

    table = "departments"
    entity_cls = Department
    label = "部門"
    order = (("sort_order", True),)
    insert_at_head = False
    refresh_after_write = True

    def __init__(self, gateway, reconciler, user_id, customers=None) -> None:
        super().__init__(gateway, reconciler, user_id)
        self.customers = customers

    # ================================================================
    # 读取
    # ================================================================

    def all_row(self) -> Department:
        return Department(
            id=ALL_DEPARTMENTS, code=ALL_DEPARTMENTS,
            name=settings.all_departments_name, sort_order=0,
        )

    def list(self, *predicates: Callable[[Department], bool]) -> List[Department]:
        """返回部门列表，第一行永远是“所有客户”虚拟行（若满足条件）"""
        rows = [self.all_row()] + self._items
        return [row for row in rows if all(p(row) for p in predicates)]

    def persisted(self) -> List[Department]:
        """只返回后端存在的部门（不含虚拟行）"""
        return list(self._items)

    async def refresh(self, scope: Optional[str] = None,
                      token: Optional[CancelToken] = None) -> List[Department]:
        await super().refresh(scope, token)
        # sorted 是稳定排序，sort_order 相同时保持原有下标顺序
        self._items = sorted(self._items, key=_sort_key)
        return self.list()

    def find(self, code: str) -> Optional[Department]:
        for department in self._items:
            if department.code == code:
                return department
        return None

    def exists(self, code: str) -> bool:
        return code == UNCATEGORIZED or self.find(code) is not None

    def name_for(self, code: str) -> str:
        """部门代码 -> 显示名称，找不到时返回代码本身"""
        if code == ALL_DEPARTMENTS:
            return settings.all_departments_name
        department = self.find(code)
        if department is not None:
            return department.name
        if code == UNCATEGORIZED:
            return settings.uncategorized_name
        return code

    def next_sort_order(self) -> int:
        orders = [
            d.sort_order for d in self._items
            if d.code != UNCATEGORIZED and d.sort_order is not None
        ]
        return max(orders, default=0) + 1

    # ================================================================
    # 校验
    # ================================================================

    def prepare_insert(self, draft: Dict[str, Any]) -> Dict[str, Any]:
        name = require_text(draft, "name", "部門名稱")
        code = (draft.get("code") or "").strip() or slugify(name)
        if not code:
            raise ValidationError("無法由名稱產生部門代碼", "code")
        if code in PINNED_DEPARTMENTS:
            raise ValidationError(f"部門代碼 {code} 為系統保留", "code")
        if self.find(code) is not None:
            raise ValidationError(f"部門代碼已存在: {code}", "code")

        if draft.get("sort_order") is None:
            sort_order = self.next_sort_order()
        else:
            sort_order = int(non_negative(draft["sort_order"], "sort_order", "排序"))
            if any(d.sort_order == sort_order for d in self._items):
                raise ValidationError(f"排序值已被使用: {sort_order}", "sort_order")
        return {"code": code, "name": name, "sort_order": sort_order}

    def prepare_update(self, current: Department,
                       patch: Dict[str, Any]) -> Dict[str, Any]:
        changes = super().prepare_update(current, patch)
        if changes.get("code", current.code) != current.code:
            raise ValidationError("部門代碼不可修改", "code")
        changes.pop("code", None)
        if "name" in changes:
            changes["name"] = require_text(changes, "name", "部門名稱")
        if "sort_order" in changes and changes["sort_order"] is not None:
            changes["sort_order"] = int(
                non_negative(changes["sort_order"], "sort_order", "排序")
            )
        return changes

    def subject_of(self, data: Dict[str, Any]) -> Optional[str]:
        return data.get("name")

    def created_message(self, draft: Dict[str, Any]) -> str:
        return f"新增了部門 {draft.get('name', '')}".strip()

    # ================================================================
    # 写入
    # ================================================================

    async def ensure_defaults(self, token: Optional[CancelToken] = None) -> Optional[Department]:
        """确保“未分类”部门存在，已存在时不发出请求。

        Returns:
            新建的部门；已存在时返回 None。
        """
        if self.find(UNCATEGORIZED) is not None:
            return None

        row = {
            "code": UNCATEGORIZED,
            "name": settings.uncategorized_name,
            "sort_order": UNCATEGORIZED_SORT_ORDER,
        }

        async def remote():
            return await self.gateway.insert(
                self.table, {**row, "user_id": self.user_id}
            )

        result = await self.reconciler.run(Mutation(
            submit_key=f"{self.table}:defaults",
            activity=ActivityType.CREATE,
            remote=remote,
            apply=lambda _: self.refresh(token=token),
            failure_message="無法建立預設部門",
            token=token,
        ))
        logger.info(f"已为用户 {self.user_id} 建立预设部门")
        return self._from_row(result)

    async def update(self, entity_id: str, patch: Dict[str, Any],
                     token: Optional[CancelToken] = None) -> Department:
        """修改部门；名称变更时同步该部门所有客户的部门名称"""
        current = self._require(entity_id)
        department = await super().update(entity_id, patch, token=token)
        if department.name != current.name:
            await self._propagate_name(department, token)
        return department

    async def _propagate_name(self, department: Department,
                              token: Optional[CancelToken]) -> None:
        async def remote():
            rows = await self.gateway.select(
                "customers", {"user_id": self.user_id, "department": department.code}
            )
            if rows:
                await self.gateway.upsert_batch("customers", [
                    {"id": row["id"], "department_name": department.name}
                    for row in rows
                ])

        def apply(_):
            if self.customers is not None:
                self.customers.reassign_local(
                    department.code, department.code, department.name
                )

        await self.reconciler.run(Mutation(
            submit_key=f"{self.table}:{department.id}:propagate",
            activity=ActivityType.EDIT,
            remote=remote,
            apply=apply,
            failure_message="同步客戶的部門名稱失敗",
            token=token,
        ))

    async def remove(self, entity_id: str,
                     token: Optional[CancelToken] = None) -> None:
        """删除部门。

        先把该部门的客户改为“未分类”，再删除部门行。两步不在同一事务中：
        第二步失败时客户已经改为未分类，部门仍然存在，可以重新删除。
        成功后重新载入部门与客户。

        Raises:
            ValidationError: 找不到部门，或部门不可删除。
            RemoteWriteError: 任一步骤被后端拒绝。
        """
        current = self._require(entity_id)

        def validate():
            if current.code in PINNED_DEPARTMENTS:
                raise ValidationError(f"無法刪除{current.name}", "code")

        async def remote():
            rows = await self.gateway.select(
                "customers", {"user_id": self.user_id, "department": current.code}
            )
            if rows:
                uncategorized_name = self.name_for(UNCATEGORIZED)
                await self.gateway.upsert_batch("customers", [
                    {
                        "id": row["id"],
                        "department": UNCATEGORIZED,
                        "department_name": uncategorized_name,
                    }
                    for row in rows
                ])
                logger.info(f"部门 {current.code} 的 {len(rows)} 位客户已改为未分类")
            await self.gateway.delete(self.table, entity_id)

        async def apply(_):
            await self.refresh(token=token)
            if self.customers is not None:
                await self.customers.refresh(token=token)

        await self.reconciler.run(Mutation(
            submit_key=f"{self.table}:{entity_id}",
            activity=ActivityType.DELETE,
            remote=remote,
            apply=apply,
            validate=validate,
            success_message=f"已刪除部門 {current.name}",
            failure_message="刪除部門失敗",
            subject_name=current.name,
            token=token,
        ))

    # ================================================================
    # 排序
    # ================================================================

    def replace_order(self, ordered: List[Department]) -> None:
        """用新的顺序替换本地列表（乐观更新），虚拟行会被忽略"""
        self._items = [d for d in ordered if not d.is_virtual]
