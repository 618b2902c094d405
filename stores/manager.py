"""CRM 上下文 - 实体仓库的统一入口。

CRMContext 为一个登录用户持有全部实体仓库、排序引擎、
两个删除确认门以及通知中心。视图只通过它读写数据：

    视图 ──→ CRMContext ──→ 实体仓库 ──→ RemoteGateway
                  │
                  ├──→ ConfirmationGate（破坏性操作）
                  └──→ NotificationHub（提示与活动记录）
"""
from typing import Any, List, Optional

from loguru import logger

from business.gate import ConfirmationGate
from config.settings import settings
from database.gateway import RemoteGateway
from database.manager import DatabaseManager
from database.storage import FileStorage, storage_from_settings
from interface.base import LogPresenter
from interface.manager import NotificationHub
from .cancellation import CancelToken
from .customers import CustomerStore
from .departments import DepartmentStore
from .entities import Customer
from .exceptions import ValidationError
from .files import FileStore
from .payments import PaymentRecordStore
from .plans import AdvertisingPlanStore, ServicePlanStore
from .reconciliation import Reconciler
from .reorder import ReorderEngine


class CRMContext:
    """单个用户的 CRM 上下文

    Attributes:
        user_id: 当前用户。
        gateway: 远端数据网关。
        storage: 文件对象存储。
        notifier: 通知中心。
        reconciler: 写入协调器，所有仓库共用。
        departments / customers / payments / service_plans /
        advertising_plans / files: 各实体仓库。
        reorder: 部门排序引擎。
        record_gate: 删除客户、删除部门、批量更改部门的确认门。
        file_gate: 删除文件的确认门。
    """

    def __init__(self, user_id: str, gateway: RemoteGateway,
                 storage: FileStorage,
                 notifier: Optional[NotificationHub] = None,
                 record_secret: Optional[str] = None,
                 file_secret: Optional[str] = None,
                 clock=None) -> None:
        self.user_id = user_id
        self.gateway = gateway
        self.storage = storage
        self.notifier = notifier or NotificationHub()
        self.reconciler = Reconciler(self.notifier)

        self.departments = DepartmentStore(gateway, self.reconciler, user_id)
        self.customers = CustomerStore(
            gateway, self.reconciler, user_id, departments=self.departments
        )
        self.departments.customers = self.customers
        self.payments = PaymentRecordStore(gateway, self.reconciler, user_id)
        self.service_plans = ServicePlanStore(gateway, self.reconciler, user_id)
        self.advertising_plans = AdvertisingPlanStore(gateway, self.reconciler, user_id)
        self.files = FileStore(gateway, self.reconciler, user_id, storage, clock=clock)
        self.reorder = ReorderEngine(self.departments)

        # 两个确认门分别配置，不共用口令
        self.record_gate = ConfirmationGate(
            "record",
            record_secret if record_secret is not None else settings.record_delete_secret,
            self.notifier,
        )
        self.file_gate = ConfirmationGate(
            "file",
            file_secret if file_secret is not None else settings.file_delete_secret,
            self.notifier,
        )

    @classmethod
    def from_settings(cls, user_id: str, database_url: Optional[str] = None,
                      storage_root: Optional[str] = None) -> "CRMContext":
        """按 settings 建立上下文：SQLAlchemy 网关 + 本地文件存储 + 日志展示端"""
        db = DatabaseManager(database_url)
        notifier = NotificationHub()
        notifier.register(LogPresenter())
        return cls(user_id, db.gateway, storage_from_settings(storage_root), notifier)

    @property
    def detail_stores(self) -> List[Any]:
        """以客户为范围的仓库"""
        return [self.payments, self.service_plans, self.advertising_plans, self.files]

    # ================================================================
    # 载入
    # ================================================================

    async def load(self, token: Optional[CancelToken] = None) -> None:
        """载入部门（必要时建立预设部门）与客户列表"""
        await self.departments.refresh(token=token)
        await self.departments.ensure_defaults(token=token)
        await self.customers.refresh(token=token)
        logger.info(
            f"用户 {self.user_id} 载入完成: "
            f"{len(self.departments)} 个部门, {len(self.customers)} 位客户"
        )

    async def open_customer(self, customer_id: str,
                            token: Optional[CancelToken] = None) -> Customer:
        """打开客户详情：载入该客户的付款记录、方案与文件"""
        customer = self.customers.get(customer_id)
        if customer is None:
            raise ValidationError("找不到客戶", "customer_id")
        for store in self.detail_stores:
            store.subject_name = customer.name
            await store.refresh(customer_id, token=token)
        return customer

    # ================================================================
    # 需要确认的破坏性操作
    # ================================================================

    async def delete_customer(self, customer_id: str, secret: Optional[str],
                              token: Optional[CancelToken] = None) -> None:
        """删除客户及其全部明细（付款记录、方案、文件元数据）"""
        async def action():
            await self.customers.remove(customer_id, token=token)
            for store in self.detail_stores:
                if store.scope == customer_id:
                    store.clear()

        await self.record_gate.run(secret, action)

    async def delete_department(self, department_id: str, secret: Optional[str],
                                token: Optional[CancelToken] = None) -> None:
        """删除部门，原部门客户改为未分类"""
        await self.record_gate.run(
            secret, lambda: self.departments.remove(department_id, token=token)
        )

    async def bulk_change_department(self, customer_ids: List[str], code: str,
                                     secret: Optional[str],
                                     token: Optional[CancelToken] = None) -> List[Customer]:
        return await self.record_gate.run(
            secret,
            lambda: self.customers.change_department(customer_ids, code, token=token),
        )

    async def delete_file(self, file_id: str, secret: Optional[str],
                          token: Optional[CancelToken] = None) -> None:
        await self.file_gate.run(
            secret, lambda: self.files.remove(file_id, token=token)
        )
