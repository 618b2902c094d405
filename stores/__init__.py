"""实体仓库模块 - 客户端数据同步层

每类实体一个仓库，在内存中保存后端行的镜像，
写入经由 Reconciler 按固定顺序执行，保证本地状态与后端一致。

使用示例：
    ```python
    from stores import CustomerFilter
    from stores.manager import CRMContext

    ctx = CRMContext.from_settings("user-1")
    await ctx.load()
    active = ctx.customers.list(CustomerFilter(status="active"))
    ```
"""
from stores.exceptions import (
    ConfirmationDenied, CRMError, RemoteReadError, RemoteWriteError,
    SubmissionInProgress, ValidationError,
)
from stores.cancellation import CancelToken, ViewScope
from stores.customers import CustomerFilter, CustomerStats, CustomerStore
from stores.departments import DepartmentStore
from stores.files import FileStore
from stores.payments import PaymentRecordStore, compute_total
from stores.plans import AdvertisingPlanStore, ServicePlanStore
from stores.reorder import DragState, ReorderEngine, compute_order

__all__ = [
    "AdvertisingPlanStore",
    "CRMError",
    "CancelToken",
    "ConfirmationDenied",
    "CustomerFilter",
    "CustomerStats",
    "CustomerStore",
    "DepartmentStore",
    "DragState",
    "FileStore",
    "PaymentRecordStore",
    "RemoteReadError",
    "RemoteWriteError",
    "ReorderEngine",
    "ServicePlanStore",
    "SubmissionInProgress",
    "ValidationError",
    "ViewScope",
    "compute_order",
    "compute_total",
]
