"""客户仓库。

客户列表按建立时间倒序排列，新增的客户插在最前面。
部门显示名称（department_name）由部门仓库推导，不由调用方传入。
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from config.crm_config import ALL_DEPARTMENTS, UNCATEGORIZED, catalog_config
from interface.base import ActivityType
from .base import EntityStore, blank_to_none, require_choice, require_text
from .cancellation import CancelToken
from .entities import Customer
from .exceptions import ValidationError
from .reconciliation import Mutation

# 可选的联系资料字段，空字符串存为 None
OPTIONAL_FIELDS = ("email", "phone", "address", "contact", "tax_id", "notes")


@dataclass
class CustomerFilter:
    """客户列表过滤条件，所有条件按 AND 组合。

    Attributes:
        status: 状态过滤，"all" 表示不过滤。
        department: 过滤对话框中选择的部门，"all" 表示不过滤。
        active_department: 侧边导航选中的部门，None 或 "all" 表示不过滤。
        query: 名称关键字，不区分大小写。
    """
    status: str = "all"
    department: str = ALL_DEPARTMENTS
    active_department: Optional[str] = None
    query: str = ""

    def __call__(self, customer: Customer) -> bool:
        if self.status != "all" and customer.status != self.status:
            return False
        if self.department != ALL_DEPARTMENTS and customer.department != self.department:
            return False
        if (self.active_department not in (None, ALL_DEPARTMENTS)
                and customer.department != self.active_department):
            return False
        if self.query and self.query.strip().lower() not in customer.name.lower():
            return False
        return True


@dataclass
class CustomerStats:
    """客户统计"""
    total: int = 0
    uncategorized: int = 0
    by_status: Dict[str, int] = field(default_factory=dict)
    # 部门代码 -> (部门名称, 客户数)
    by_department: Dict[str, tuple] = field(default_factory=dict)


class CustomerStore(EntityStore[Customer]):
    """客户仓库

    Attributes:
        departments: 部门仓库，用于校验部门代码并推导部门名称。
    """

    table = "customers"
    entity_cls = Customer
    label = "客戶"
    order = (("created_at", False),)
    insert_at_head = True

    def __init__(self, gateway, reconciler, user_id, departments=None) -> None:
        super().__init__(gateway, reconciler, user_id)
        self.departments = departments

    # ================================================================
    # 查询
    # ================================================================

    def search(self, query: str) -> List[Customer]:
        """按名称搜索客户（不区分大小写），空关键字返回全部"""
        return self.list(CustomerFilter(query=query))

    def stats(self) -> CustomerStats:
        """按状态与部门统计当前已载入的客户"""
        result = CustomerStats(total=len(self._items))
        for customer in self._items:
            result.by_status[customer.status] = result.by_status.get(customer.status, 0) + 1
            if customer.department == UNCATEGORIZED:
                result.uncategorized += 1
                continue
            name, count = result.by_department.get(
                customer.department,
                (customer.department_name or customer.department, 0),
            )
            result.by_department[customer.department] = (name, count + 1)
        return result

    # ================================================================
    # 校验
    # ================================================================

    def _department_name(self, code: str) -> str:
        if code == ALL_DEPARTMENTS:
            raise ValidationError("請選擇部門", "department")
        if self.departments is None:
            return code
        if not self.departments.exists(code):
            raise ValidationError(f"部門不存在: {code}", "department")
        return self.departments.name_for(code)

    def _check_status(self, status: str) -> str:
        statuses = catalog_config.ids(catalog_config.get_customer_statuses())
        return require_choice(status, statuses, "status", "客戶狀態")

    def prepare_insert(self, draft: Dict[str, Any]) -> Dict[str, Any]:
        row = super().prepare_insert(draft)
        row["name"] = require_text(draft, "name", "客戶名稱")
        row["status"] = self._check_status(draft.get("status") or "active")
        row["department"] = draft.get("department") or UNCATEGORIZED
        row["department_name"] = self._department_name(row["department"])
        for key in OPTIONAL_FIELDS:
            if key in row:
                row[key] = blank_to_none(row[key])
        return row

    def prepare_update(self, current: Customer,
                       patch: Dict[str, Any]) -> Dict[str, Any]:
        changes = super().prepare_update(current, patch)
        changes.pop("department_name", None)
        if "name" in changes:
            changes["name"] = require_text(changes, "name", "客戶名稱")
        if "status" in changes:
            self._check_status(changes["status"])
        if "department" in changes:
            changes["department"] = changes["department"] or UNCATEGORIZED
            changes["department_name"] = self._department_name(changes["department"])
        for key in OPTIONAL_FIELDS:
            if key in changes:
                changes[key] = blank_to_none(changes[key])
        return changes

    def subject_of(self, data: Dict[str, Any]) -> Optional[str]:
        return blank_to_none(data.get("name"))

    def created_message(self, draft: Dict[str, Any]) -> str:
        return f"新增了客戶 {blank_to_none(draft.get('name')) or ''}".strip()

    # ================================================================
    # 其他写入
    # ================================================================

    async def update_notes(self, customer_id: str, notes: Optional[str],
                           token: Optional[CancelToken] = None) -> Customer:
        return await self.update(customer_id, {"notes": notes}, token=token)

    async def change_department(self, customer_ids: List[str], code: str,
                                token: Optional[CancelToken] = None) -> List[Customer]:
        """批量更改客户部门，整批只发出一次写入。

        Raises:
            ValidationError: 没有选择客户、客户不存在或部门无效。
            RemoteWriteError: 后端拒绝写入，本地列表不变。
        """
        rows: List[Dict[str, Any]] = []

        def validate():
            if not customer_ids:
                raise ValidationError("請選擇客戶", "customer_ids")
            name = self._department_name(code or UNCATEGORIZED)
            for customer_id in customer_ids:
                self._require(customer_id)
                rows.append({
                    "id": customer_id,
                    "department": code or UNCATEGORIZED,
                    "department_name": name,
                })

        async def remote():
            await self.gateway.upsert_batch(self.table, rows)

        def apply(_):
            for row in rows:
                self._replace_local(row["id"], row)

        await self.reconciler.run(Mutation(
            submit_key=f"{self.table}:bulk-department",
            activity=ActivityType.EDIT,
            remote=remote,
            apply=apply,
            validate=validate,
            success_message=f"已更改 {len(customer_ids)} 位客戶的部門",
            failure_message="更改部門失敗",
            token=token,
        ))
        return [self.get(row["id"]) for row in rows]

    def reassign_local(self, from_code: str, to_code: str, to_name: str) -> None:
        """后端已经改好部门后，同步本地客户的部门字段"""
        patch = {"department": to_code, "department_name": to_name}
        self._items = [
            customer.merge(patch) if customer.department == from_code else customer
            for customer in self._items
        ]
