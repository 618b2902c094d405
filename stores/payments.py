"""付款记录仓库。

付款记录属于单个客户，按付款日期倒序排列。
total_amount 永远由 amount + tax_amount 计算，调用方传入的值会被忽略。
"""
from datetime import date
from typing import Any, Dict, Optional, Union

from config.crm_config import catalog_config
from database.models import MONEY_LIMIT
from .base import EntityStore, blank_to_none, money, non_negative, require_choice
from .cancellation import CancelToken
from .entities import PaymentRecord
from .exceptions import ValidationError

Number = Union[int, float]


def compute_total(amount: Number, tax_amount: Number) -> Number:
    """含税总额；整数输入得到精确的整数结果"""
    return amount + tax_amount


def checked_total(amount: Number, tax_amount: Number) -> Number:
    total = compute_total(amount, tax_amount)
    if total >= MONEY_LIMIT:
        raise ValidationError("含稅總額超出上限", "total_amount")
    return total


def parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError("請選擇付款日期", "date")
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"付款日期格式錯誤: {value}", "date")


class PaymentRecordStore(EntityStore[PaymentRecord]):
    """付款记录仓库，范围为单个客户"""

    table = "payment_records"
    entity_cls = PaymentRecord
    label = "付款記錄"
    order = (("date", False),)
    scope_field = "customer_id"
    insert_at_head = True
    load_failure_message = "獲取付款記錄失敗"

    def _from_row(self, row: Dict[str, Any]) -> PaymentRecord:
        if row.get("tax_amount") is None:
            row = {**row, "tax_amount": 0}
        return super()._from_row(row)

    def _check_choices(self, data: Dict[str, Any]) -> None:
        if "payment_method" in data:
            require_choice(
                data["payment_method"],
                catalog_config.ids(catalog_config.get_payment_methods()),
                "payment_method", "付款方式",
            )
        if data.get("account") is not None:
            require_choice(
                data["account"],
                catalog_config.ids(catalog_config.get_payment_accounts()),
                "account", "收款帳戶",
            )
        if "billing_cycle" in data:
            require_choice(
                data["billing_cycle"],
                catalog_config.ids(catalog_config.get_billing_cycles()),
                "billing_cycle", "繳費週期",
            )

    def prepare_insert(self, draft: Dict[str, Any]) -> Dict[str, Any]:
        if draft.get("amount") in (None, ""):
            raise ValidationError("請輸入金額", "amount")
        row = super().prepare_insert(draft)
        row["date"] = parse_date(draft.get("date"))
        row["payment_method"] = draft.get("payment_method") or ""
        row["account"] = blank_to_none(draft.get("account"))
        row["billing_cycle"] = draft.get("billing_cycle") or "monthly"
        self._check_choices(row)
        row["amount"] = money(draft["amount"], "amount", "金額")
        row["tax_amount"] = money(draft.get("tax_amount") or 0, "tax_amount", "稅額")
        row["total_amount"] = checked_total(row["amount"], row["tax_amount"])
        row["is_confirmed"] = bool(draft.get("is_confirmed", False))
        return row

    def prepare_update(self, current: PaymentRecord,
                       patch: Dict[str, Any]) -> Dict[str, Any]:
        changes = super().prepare_update(current, patch)
        changes.pop("total_amount", None)
        if "date" in changes:
            changes["date"] = parse_date(changes["date"])
        if "account" in changes:
            changes["account"] = blank_to_none(changes["account"])
        self._check_choices(changes)
        if "amount" in changes or "tax_amount" in changes:
            amount = money(changes.get("amount", current.amount), "amount", "金額")
            tax_amount = money(
                changes.get("tax_amount", current.tax_amount) or 0, "tax_amount", "稅額"
            )
            changes["amount"] = amount
            changes["tax_amount"] = tax_amount
            changes["total_amount"] = checked_total(amount, tax_amount)
        if "is_confirmed" in changes:
            changes["is_confirmed"] = bool(changes["is_confirmed"])
        return changes

    def created_message(self, draft: Dict[str, Any]) -> str:
        try:
            amount = non_negative(draft.get("amount"), "amount", "金額")
        except ValidationError:
            return "付款記錄已新增"
        return f"新增了 {amount:,} 元的付款記錄"

    async def toggle_confirmed(self, record_id: str,
                               token: Optional[CancelToken] = None) -> PaymentRecord:
        """切换付款记录的确认状态"""
        current = self._require(record_id)
        return await self.update(
            record_id, {"is_confirmed": not current.is_confirmed}, token=token
        )

    def total(self) -> Number:
        """当前客户所有付款记录的总额"""
        return sum(record.total_amount for record in self._items)
