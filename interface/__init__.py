"""通知接口模块 - 实体仓库的对外事件

实体仓库完成（或失败）一次操作后发出两类事件：

- Notification: 成功 / 失败提示，交给所有已注册的展示端
- Activity: 活动记录，供通知面板显示，支持未读数与清空

核心组件：
- NotificationPresenter: 展示端抽象基类
- NotificationHub: 通知中心（统一分发通知并维护活动记录）
- ActivityFeed: 活动记录

架构设计：
    视图 ──→ 实体仓库 ──→ 远端网关
                 │
                 └──→ NotificationHub ──→ 展示端（界面提示 / 日志）
                                     └──→ ActivityFeed（通知面板）

使用示例：
    ```python
    from interface import NotificationHub, MemoryPresenter

    hub = NotificationHub()
    hub.register(MemoryPresenter())
    ```
"""
from interface.base import (
    Activity, ActivityType, LogPresenter, MemoryPresenter, Notification,
    NotificationKind, NotificationPresenter,
)
from interface.manager import ActivityFeed, NotificationHub

__all__ = [
    "Activity",
    "ActivityFeed",
    "ActivityType",
    "LogPresenter",
    "MemoryPresenter",
    "Notification",
    "NotificationHub",
    "NotificationKind",
    "NotificationPresenter",
]
