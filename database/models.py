"""SQLAlchemy ORM 模型定义。

本模块定义了客户管理后端的所有数据表：
- 客户、部门等基础实体
- 付款记录、服务方案、广告方案等客户明细
- 客户文件的元数据（文件内容存放在对象存储中）

所有表都带有 user_id，数据只属于单个登录用户。
主键与时间戳由后端生成，客户端只读取它们。
"""
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Column, String, Text, Boolean, Integer, Date, DateTime,
    Numeric, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship

# SQLAlchemy declarative base，所有模型都继承自此类
Base = declarative_base()

# 允许使用旧式类型注解
Base.__allow_unmapped__ = True


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# 金额字段：DECIMAL 存储，读取为 float；
# 上限以内的整数都能被 float 精确表示
Money = Numeric(12, 2, asdecimal=False)
MONEY_LIMIT = 10 ** 10


class Customer(Base):
    """客户表模型。

    Attributes:
        id: 主键，UUID 字符串。
        user_id: 所属用户。
        name: 客户名称，必填。
        department: 部门代码，引用 departments.code 或 "uncategorized"。
        department_name: 部门显示名称（冗余存储，便于列表展示）。
        status: 状态，可选值：active / paused / inactive。
        email, phone, address, contact, tax_id: 可选联系资料。
        notes: 备注。
        created_at / updated_at: 时间戳。

    Relationships:
        payment_records / service_plans / advertising_plans / files:
            客户明细，删除客户时一并删除。
    """
    __tablename__ = "customers"

    id: str = Column(String(36), primary_key=True, default=_new_id)
    user_id: str = Column(String(64), nullable=False, index=True)
    name: str = Column(String(200), nullable=False)
    department: str = Column(String(100), nullable=False, default="uncategorized")
    department_name: str = Column(String(100), nullable=False, default="")
    status: str = Column(String(20), nullable=False, default="active")  # active / paused / inactive
    email: Optional[str] = Column(String(200))
    phone: Optional[str] = Column(String(50))
    address: Optional[str] = Column(String(500))
    contact: Optional[str] = Column(String(100))
    tax_id: Optional[str] = Column(String(20))
    notes: Optional[str] = Column(Text)
    created_at: datetime = Column(DateTime, default=_utcnow)
    updated_at: datetime = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    # Relationships
    payment_records: List["PaymentRecord"] = relationship(
        "PaymentRecord", back_populates="customer", cascade="all, delete-orphan"
    )
    service_plans: List["ServicePlan"] = relationship(
        "ServicePlan", back_populates="customer", cascade="all, delete-orphan"
    )
    advertising_plans: List["AdvertisingPlan"] = relationship(
        "AdvertisingPlan", back_populates="customer", cascade="all, delete-orphan"
    )
    files: List["CustomerFile"] = relationship(
        "CustomerFile", back_populates="customer", cascade="all, delete-orphan"
    )


class Department(Base):
    """部门表模型。

    code 在同一用户内唯一；sort_order 决定显示顺序。
    "all" 只是“不过滤”的虚拟行，不会写入此表。
    """
    __tablename__ = "departments"
    __table_args__ = (
        UniqueConstraint("user_id", "code", name="uq_departments_user_code"),
    )

    id: str = Column(String(36), primary_key=True, default=_new_id)
    user_id: str = Column(String(64), nullable=False, index=True)
    code: str = Column(String(100), nullable=False)
    name: str = Column(String(100), nullable=False)
    sort_order: Optional[int] = Column(Integer)
    created_at: datetime = Column(DateTime, default=_utcnow)


class PaymentRecord(Base):
    """付款记录表模型。

    total_amount 由客户端按 amount + tax_amount 计算后写入。
    """
    __tablename__ = "payment_records"

    id: str = Column(String(36), primary_key=True, default=_new_id)
    user_id: str = Column(String(64), nullable=False, index=True)
    customer_id: str = Column(String(36), ForeignKey("customers.id"), nullable=False)
    date = Column(Date, nullable=False)  # 付款日期
    payment_method: str = Column(String(50), nullable=False)
    account: Optional[str] = Column(String(50))
    billing_cycle: str = Column(String(20), nullable=False, default="monthly")
    amount: float = Column(Money, nullable=False)
    tax_amount: Optional[float] = Column(Money, default=0)
    total_amount: float = Column(Money, nullable=False)
    is_confirmed: bool = Column(Boolean, nullable=False, default=False)
    created_at: datetime = Column(DateTime, default=_utcnow)
    updated_at: datetime = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    customer: "Customer" = relationship("Customer", back_populates="payment_records")


class ServicePlan(Base):
    """服务方案表模型。name 来自固定的服务目录。"""
    __tablename__ = "service_plans"

    id: str = Column(String(36), primary_key=True, default=_new_id)
    user_id: str = Column(String(64), nullable=False, index=True)
    customer_id: str = Column(String(36), ForeignKey("customers.id"), nullable=False)
    name: str = Column(String(100), nullable=False)
    description: Optional[str] = Column(Text)
    price: float = Column(Money, nullable=False, default=0)
    created_at: datetime = Column(DateTime, default=_utcnow)
    updated_at: datetime = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    customer: "Customer" = relationship("Customer", back_populates="service_plans")


class AdvertisingPlan(Base):
    """广告方案表模型。

    每个客户最多一条；明细字段按付费方式决定哪些必填，
    与原始后端一致以字符串保存。
    """
    __tablename__ = "advertising_plans"

    id: str = Column(String(36), primary_key=True, default=_new_id)
    user_id: str = Column(String(64), nullable=False, index=True)
    customer_id: str = Column(String(36), ForeignKey("customers.id"), nullable=False)
    platform: str = Column(String(50), nullable=False)
    payment_method: str = Column(String(50), nullable=False)
    service_fee_percentage: Optional[str] = Column(String(20))
    prepaid_amount: Optional[str] = Column(String(20))
    placement_limit: Optional[str] = Column(String(20))
    created_at: datetime = Column(DateTime, default=_utcnow)
    updated_at: datetime = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    customer: "Customer" = relationship("Customer", back_populates="advertising_plans")


class CustomerFile(Base):
    """客户文件元数据表模型。

    file_path 是对象存储中的键：{user_id}/{customer_id}/{timestamp}.{ext}
    """
    __tablename__ = "customer_files"

    id: str = Column(String(36), primary_key=True, default=_new_id)
    user_id: str = Column(String(64), nullable=False, index=True)
    customer_id: str = Column(String(36), ForeignKey("customers.id"), nullable=False)
    file_name: str = Column(String(255), nullable=False)
    title: Optional[str] = Column(String(255))
    file_path: str = Column(String(500), nullable=False)
    file_size: Optional[int] = Column(Integer)
    mime_type: Optional[str] = Column(String(100))
    uploaded_at: datetime = Column(DateTime, default=_utcnow)
    updated_at: datetime = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    customer: "Customer" = relationship("Customer", back_populates="files")


# 表名 -> 模型，供网关按表名访问
TABLES = {
    model.__tablename__: model
    for model in (
        Customer, Department, PaymentRecord,
        ServicePlan, AdvertisingPlan, CustomerFile,
    )
}
