"""服务方案与广告方案仓库。

服务方案：每个客户可以有多项，名称必须来自固定的服务目录。
广告方案：每个客户最多一项，重新选择时替换原有方案；
明细字段哪些必填由付费方式决定。
"""
from typing import Any, Dict, Optional

from config.crm_config import catalog_config
from .base import EntityStore, blank_to_none, money, non_negative, require_choice
from .cancellation import CancelToken
from .entities import AdvertisingPlanItem, ServicePlanItem
from .exceptions import ValidationError

ADVERTISING_DETAIL_FIELDS = ("service_fee_percentage", "prepaid_amount", "placement_limit")

DETAIL_LABELS = {
    "service_fee_percentage": "服務費抽成比例",
    "prepaid_amount": "預付金額",
    "placement_limit": "投放上限",
}


class ServicePlanStore(EntityStore[ServicePlanItem]):
    """服务方案仓库，新增的项目排在最后"""

    table = "service_plans"
    entity_cls = ServicePlanItem
    label = "服務方案"
    order = (("created_at", True),)
    scope_field = "customer_id"
    insert_at_head = False

    def _service_name(self, value: Any) -> str:
        name = catalog_config.service_name(str(value or "").strip())
        if name is None:
            raise ValidationError(f"服務項目無效: {value}", "name")
        return name

    def prepare_insert(self, draft: Dict[str, Any]) -> Dict[str, Any]:
        row = super().prepare_insert(draft)
        row["name"] = self._service_name(draft.get("name"))
        row["description"] = blank_to_none(draft.get("description"))
        row["price"] = money(draft.get("price") or 0, "price", "價格")
        return row

    def prepare_update(self, current: ServicePlanItem,
                       patch: Dict[str, Any]) -> Dict[str, Any]:
        changes = super().prepare_update(current, patch)
        if "name" in changes:
            changes["name"] = self._service_name(changes["name"])
        if "description" in changes:
            changes["description"] = blank_to_none(changes["description"])
        if "price" in changes:
            changes["price"] = money(changes["price"] or 0, "price", "價格")
        return changes

    def created_message(self, draft: Dict[str, Any]) -> str:
        name = catalog_config.service_name(str(draft.get("name") or ""))
        return f"新增了服務方案 {name}" if name else "服務方案已新增"

    def total(self):
        return sum(item.price for item in self._items)


def _detail_value(field: str, value: Any) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"請輸入{DETAIL_LABELS[field]}", field)
    number = non_negative(str(value).strip(), field, DETAIL_LABELS[field])
    if field == "service_fee_percentage" and number > 100:
        raise ValidationError(f"{DETAIL_LABELS[field]}不可大於 100", field)
    return str(value).strip()


class AdvertisingPlanStore(EntityStore[AdvertisingPlanItem]):
    """广告方案仓库

    每次写入后重新载入。新增前如果客户已有方案，改为更新原方案，
    因此同一客户永远最多一项。
    """

    table = "advertising_plans"
    entity_cls = AdvertisingPlanItem
    label = "廣告方案"
    order = (("created_at", False),)
    scope_field = "customer_id"
    refresh_after_write = True

    def current(self) -> Optional[AdvertisingPlanItem]:
        return self._items[0] if self._items else None

    def _details(self, data: Dict[str, Any]) -> Dict[str, Any]:
        platforms = catalog_config.ids(catalog_config.get_advertising_platforms())
        methods = list(catalog_config.get_advertising_payment_methods())
        require_choice(data.get("platform"), platforms, "platform", "廣告平台")
        require_choice(data.get("payment_method"), methods, "payment_method", "付費方式")

        required = catalog_config.required_advertising_fields(data["payment_method"])
        row = {"platform": data["platform"], "payment_method": data["payment_method"]}
        for field in ADVERTISING_DETAIL_FIELDS:
            row[field] = _detail_value(field, data.get(field)) if field in required else None
        return row

    def prepare_insert(self, draft: Dict[str, Any]) -> Dict[str, Any]:
        super().prepare_insert(draft)
        return self._details(draft)

    def prepare_update(self, current: AdvertisingPlanItem,
                       patch: Dict[str, Any]) -> Dict[str, Any]:
        super().prepare_update(current, patch)
        return self._details({**current.to_dict(), **patch})

    def created_message(self, draft: Dict[str, Any]) -> str:
        platform = catalog_config.display_name(
            catalog_config.get_advertising_platforms(), draft.get("platform")
        )
        return f"選擇了{platform}" if platform else "廣告方案已新增"

    async def add(self, draft: Dict[str, Any],
                  token: Optional[CancelToken] = None) -> AdvertisingPlanItem:
        customer_id = draft.get("customer_id") or self.scope
        if not customer_id:
            raise ValidationError("請先選擇客戶", "customer_id")
        return await self.select(
            customer_id, draft.get("platform"), draft.get("payment_method"),
            {k: draft.get(k) for k in ADVERTISING_DETAIL_FIELDS}, token=token,
        )

    async def select(self, customer_id: str, platform: str, payment_method: str,
                     details: Optional[Dict[str, Any]] = None,
                     token: Optional[CancelToken] = None) -> AdvertisingPlanItem:
        """为客户选择广告方案，已有方案时替换它。

        Args:
            customer_id: 客户 id。
            platform: 广告平台 id。
            payment_method: 付费方式 id。
            details: 明细字段，按付费方式决定哪些必填。

        Returns:
            保存后的广告方案。
        """
        if self.scope != customer_id:
            await self.refresh(customer_id, token=token)

        data = {"platform": platform, "payment_method": payment_method, **(details or {})}
        existing = self.current()
        if existing is not None:
            return await self.update(existing.id, data, token=token)
        return await super().add({**data, "customer_id": customer_id}, token=token)
