"""实体数据结构。

实体仓库在内存中保存的对象。字段名与后端列名一致，
``from_row`` 忽略后端多返回的列（例如 user_id），
``merge`` 用后端返回的行覆盖已知字段、保留后端未返回的字段。
"""
import dataclasses
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional, Type, TypeVar

E = TypeVar("E", bound="Entity")


@dataclass(frozen=True)
class Entity:
    """实体基类，所有实体都以后端生成的 id 标识"""
    id: str

    @classmethod
    def field_names(cls):
        return {f.name for f in dataclasses.fields(cls)}

    @classmethod
    def from_row(cls: Type[E], row: Dict[str, Any]) -> E:
        names = cls.field_names()
        return cls(**{k: v for k, v in row.items() if k in names})

    def merge(self: E, row: Dict[str, Any]) -> E:
        names = self.field_names()
        return dataclasses.replace(
            self, **{k: v for k, v in row.items() if k in names}
        )

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class Customer(Entity):
    name: str = ""
    department: str = "uncategorized"
    department_name: str = ""
    status: str = "active"
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    contact: Optional[str] = None
    tax_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class Department(Entity):
    code: str = ""
    name: str = ""
    sort_order: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def is_virtual(self) -> bool:
        """“所有客户”虚拟行不对应任何后端行"""
        return self.id == "all"


@dataclass(frozen=True)
class PaymentRecord(Entity):
    customer_id: str = ""
    date: Optional["date"] = None
    payment_method: str = ""
    account: Optional[str] = None
    billing_cycle: str = "monthly"
    amount: float = 0
    tax_amount: float = 0
    total_amount: float = 0
    is_confirmed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class ServicePlanItem(Entity):
    customer_id: str = ""
    name: str = ""
    description: Optional[str] = None
    price: float = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class AdvertisingPlanItem(Entity):
    customer_id: str = ""
    platform: str = ""
    payment_method: str = ""
    service_fee_percentage: Optional[str] = None
    prepaid_amount: Optional[str] = None
    placement_limit: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class CustomerFile(Entity):
    customer_id: str = ""
    file_name: str = ""
    title: Optional[str] = None
    file_path: str = ""
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
