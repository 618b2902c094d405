"""实体仓库基类。

实体仓库在内存中保存某一类实体（在当前用户 / 当前范围内）的列表，
提供只读投影（list）和写入操作（add / update / remove / refresh），
并保证内存中的列表与后端一致：

- 写入先发到后端，确认成功后才更新本地列表（不做乐观更新）
- 写入失败时本地列表保持原样
- 仓库可以声明写入成功后直接修补本地列表，或整体重新载入

子类只需声明表名、实体类型、排序规则，并按需重写
``prepare_insert`` / ``prepare_update`` 做本地校验。
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar, Union

from loguru import logger

from database.gateway import GatewayError, Order, RemoteGateway, Row
from database.models import MONEY_LIMIT
from interface.base import ActivityType
from .cancellation import CancelToken, is_cancelled
from .entities import Entity
from .exceptions import RemoteReadError, ValidationError
from .reconciliation import Mutation, Reconciler

E = TypeVar("E", bound=Entity)

# 写入时不允许由客户端修改的字段
READONLY_FIELDS = ("id", "user_id", "created_at")


# ================================================================
# 校验工具
# ================================================================

def require_text(data: Dict[str, Any], field: str, label: str) -> str:
    """必填文字字段，返回去掉首尾空白后的值"""
    value = data.get(field)
    if value is None or not str(value).strip():
        raise ValidationError(f"請輸入{label}", field)
    return str(value).strip()


def require_choice(value: Any, choices, field: str, label: str) -> Any:
    if value not in choices:
        raise ValidationError(f"{label}無效: {value}", field)
    return value


def non_negative(value: Any, field: str, label: str) -> Union[int, float]:
    """数值字段，必须是大于等于 0 的有限数字。

    整数输入原样返回；字符串先按 Decimal 解析，整数值返回 int，
    因此整数金额在本地计算时不会损失精度。
    """
    if isinstance(value, int) and not isinstance(value, bool):
        number: Union[int, float] = value
    else:
        try:
            parsed = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{label}必須是數字", field)
        if not parsed.is_finite():
            raise ValidationError(f"{label}必須是有限數字", field)
        number = int(parsed) if parsed == parsed.to_integral_value() else float(parsed)
    if number < 0:
        raise ValidationError(f"{label}不可小於 0", field)
    return number


def money(value: Any, field: str, label: str) -> Union[int, float]:
    """金额字段：非负，且不超过金额列能保存的上限"""
    number = non_negative(value, field, label)
    if number >= MONEY_LIMIT:
        raise ValidationError(f"{label}超出上限", field)
    return number


def blank_to_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class EntityStore(Generic[E]):
    """实体仓库基类。

    Attributes:
        gateway: 远端数据网关。
        reconciler: 写入协调器。
        user_id: 当前登录用户，所有行都按它过滤。
        scope: 当前范围（例如 customer_id），没有范围的仓库为 None。
        subject_name: 当前范围对应的客户名称，写入活动记录。
        loading: 是否正在载入。
        last_error: 最近一次载入失败的提示，成功载入后清空。
    """

    table: str = ""
    entity_cls: Type[E] = Entity
    label: str = "記錄"
    order: Order = ()
    scope_field: Optional[str] = None
    insert_at_head: bool = True
    refresh_after_write: bool = False
    load_failure_message: Optional[str] = None

    def __init__(self, gateway: RemoteGateway, reconciler: Reconciler,
                 user_id: str) -> None:
        self.gateway = gateway
        self.reconciler = reconciler
        self.user_id = user_id
        self.scope: Optional[str] = None
        self.subject_name: Optional[str] = None
        self.loading: bool = False
        self.last_error: Optional[str] = None
        self._items: List[E] = []

    @property
    def notifier(self):
        return self.reconciler.notifier

    # ================================================================
    # 读取
    # ================================================================

    def list(self, *predicates: Callable[[E], bool]) -> List[E]:
        """返回当前列表的投影，多个条件按 AND 组合，不会发出请求。"""
        return [
            item for item in self._items
            if all(predicate(item) for predicate in predicates)
        ]

    def get(self, entity_id: str) -> Optional[E]:
        for item in self._items:
            if item.id == entity_id:
                return item
        return None

    def __len__(self) -> int:
        return len(self._items)

    def clear(self) -> None:
        """清空已载入的数据与范围，例如所属客户已被删除"""
        self._items = []
        self.scope = None
        self.subject_name = None
        self.last_error = None

    def _from_row(self, row: Row) -> E:
        return self.entity_cls.from_row(row)

    def _select_filters(self, scope: Optional[str]) -> Dict[str, Any]:
        filters = {"user_id": self.user_id}
        if self.scope_field:
            filters[self.scope_field] = scope
        return filters

    async def refresh(self, scope: Optional[str] = None,
                      token: Optional[CancelToken] = None) -> List[E]:
        """从后端整体重新载入当前范围的列表。

        Args:
            scope: 范围标识；有范围的仓库省略时沿用当前范围。
            token: 取消令牌。

        Returns:
            载入后的列表。

        Raises:
            RemoteReadError: 载入失败，已有数据保持不变。
        """
        if self.scope_field:
            scope = scope if scope is not None else self.scope
            if scope is None:
                raise ValidationError(f"載入{self.label}前請先選擇客戶", self.scope_field)

        self.loading = True
        try:
            rows = await self.gateway.select(
                self.table, self._select_filters(scope), self.order
            )
        except GatewayError as e:
            message = self.load_failure_message or f"無法載入{self.label}"
            logger.error(f"载入 {self.table} 失败: {e}")
            self.last_error = message
            self.notifier.error(message)
            raise RemoteReadError(message) from e
        finally:
            self.loading = False

        if is_cancelled(token):
            logger.debug(f"视图已关闭，丢弃 {self.table} 的载入结果")
            return self.list()

        self.scope = scope
        self._items = [self._from_row(row) for row in rows]
        self.last_error = None
        logger.debug(f"已载入 {self.table}: {len(self._items)} 条")
        return self.list()

    # ================================================================
    # 校验钩子
    # ================================================================

    def prepare_insert(self, draft: Dict[str, Any]) -> Row:
        """校验并规范化新增数据，返回要写入的行。"""
        names = self.entity_cls.field_names()
        return {k: v for k, v in draft.items()
                if k in names and k not in READONLY_FIELDS}

    def prepare_update(self, current: E, patch: Dict[str, Any]) -> Row:
        """校验并规范化修改数据，返回要写入的字段。"""
        names = self.entity_cls.field_names()
        unknown = [k for k in patch if k not in names or k in READONLY_FIELDS]
        if unknown:
            raise ValidationError(f"無法修改欄位: {', '.join(unknown)}", unknown[0])
        return dict(patch)

    def subject_of(self, data: Dict[str, Any]) -> Optional[str]:
        """活动记录里显示的客户名称"""
        return self.subject_name

    # ================================================================
    # 本地修补
    # ================================================================

    def _belongs(self, entity: E) -> bool:
        if not self.scope_field:
            return True
        return getattr(entity, self.scope_field) == self.scope

    def _insert_local(self, entity: E) -> None:
        if not self._belongs(entity):
            return
        if self.insert_at_head:
            self._items = [entity] + self._items
        else:
            self._items = self._items + [entity]

    def _replace_local(self, entity_id: str, row: Row) -> None:
        self._items = [
            item.merge(row) if item.id == entity_id else item
            for item in self._items
        ]

    def _remove_local(self, entity_id: str) -> None:
        self._items = [item for item in self._items if item.id != entity_id]

    def _require(self, entity_id: str) -> E:
        entity = self.get(entity_id)
        if entity is None:
            raise ValidationError(f"找不到{self.label}", "id")
        return entity

    # ================================================================
    # 写入
    # ================================================================

    async def add(self, draft: Dict[str, Any],
                  token: Optional[CancelToken] = None) -> E:
        """新增一条记录。

        Returns:
            后端返回的实体（带有生成的 id 与时间戳）。

        Raises:
            ValidationError: 本地校验失败，未发出请求。
            RemoteWriteError: 后端拒绝写入，本地列表不变。
        """
        row: Row = {}

        def validate():
            row.update(self.prepare_insert(draft))
            if self.scope_field:
                scope = draft.get(self.scope_field) or self.scope
                if not scope:
                    raise ValidationError("請先選擇客戶", self.scope_field)
                row[self.scope_field] = scope

        async def remote():
            return await self.gateway.insert(
                self.table, {**row, "user_id": self.user_id}
            )

        def apply(result: Row):
            if self.refresh_after_write:
                return self.refresh(token=token)
            self._insert_local(self._from_row(result))

        result = await self.reconciler.run(Mutation(
            submit_key=f"{self.table}:new",
            activity=ActivityType.CREATE,
            remote=remote,
            apply=apply,
            validate=validate,
            success_message=self.created_message(draft),
            failure_message=f"新增{self.label}失敗",
            subject_name=self.subject_of(draft),
            token=token,
        ))
        return self._from_row(result)

    async def update(self, entity_id: str, patch: Dict[str, Any],
                     token: Optional[CancelToken] = None) -> E:
        """修改一条记录。

        成功后用后端返回的字段替换本地实体，后端未返回的字段保留原值。

        Raises:
            ValidationError: 本地校验失败或找不到记录。
            RemoteWriteError: 后端拒绝写入，本地列表不变。
        """
        current = self._require(entity_id)
        changes: Row = {}

        def validate():
            changes.update(self.prepare_update(current, patch))

        async def remote():
            return await self.gateway.update(self.table, entity_id, changes)

        def apply(result: Row):
            if self.refresh_after_write:
                return self.refresh(token=token)
            self._replace_local(entity_id, result)

        result = await self.reconciler.run(Mutation(
            submit_key=f"{self.table}:{entity_id}",
            activity=ActivityType.EDIT,
            remote=remote,
            apply=apply,
            validate=validate,
            success_message=f"{self.label}已更新",
            failure_message=f"更新{self.label}失敗",
            subject_name=self.subject_of(current.to_dict()),
            token=token,
        ))
        return current.merge(result)

    async def remove(self, entity_id: str,
                     token: Optional[CancelToken] = None) -> None:
        """删除一条记录：先删除后端行，确认成功后才从本地列表移除。

        Raises:
            ValidationError: 找不到记录。
            RemoteWriteError: 后端拒绝删除，本地列表不变。
        """
        current = self._require(entity_id)

        async def remote():
            await self.gateway.delete(self.table, entity_id)

        def apply(_):
            if self.refresh_after_write:
                return self.refresh(token=token)
            self._remove_local(entity_id)

        await self.reconciler.run(Mutation(
            submit_key=f"{self.table}:{entity_id}",
            activity=ActivityType.DELETE,
            remote=remote,
            apply=apply,
            success_message=f"{self.label}已刪除",
            failure_message=f"刪除{self.label}失敗",
            subject_name=self.subject_of(current.to_dict()),
            token=token,
        ))

    def created_message(self, draft: Dict[str, Any]) -> str:
        return f"{self.label}已新增"
