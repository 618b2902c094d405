"""通知中心 - 统一管理多个通知展示端与活动记录"""
import itertools
from typing import Dict, List, Optional

from loguru import logger

from interface.base import (
    Activity, ActivityType, Notification, NotificationKind,
    NotificationPresenter,
)


class ActivityFeed:
    """活动记录

    新记录插在最前面，只有用户主动清空时才会删除记录。
    """

    def __init__(self):
        self._entries: List[Activity] = []
        self._ids = itertools.count(1)

    def add(self, type: ActivityType, message: str,
            subject_name: Optional[str] = None) -> Activity:
        entry = Activity(
            id=str(next(self._ids)),
            type=type,
            message=message,
            subject_name=subject_name,
        )
        self._entries.insert(0, entry)
        return entry

    @property
    def entries(self) -> List[Activity]:
        return list(self._entries)

    @property
    def unread_count(self) -> int:
        return sum(1 for entry in self._entries if not entry.is_read)

    def mark_all_read(self):
        for entry in self._entries:
            entry.is_read = True

    def clear(self):
        self._entries.clear()


class NotificationHub:
    """通知中心

    把实体仓库发出的通知分发给所有已注册的展示端，
    并维护活动记录。某个展示端出错不会影响其他展示端，
    也不会影响发出通知的操作。

    使用方式：
        ```python
        hub = NotificationHub()
        hub.register(MemoryPresenter())
        hub.success("客戶已新增")
        ```
    """

    def __init__(self, activity: Optional[ActivityFeed] = None):
        self.presenters: Dict[str, NotificationPresenter] = {}
        self.activity = activity or ActivityFeed()

    def register(self, presenter: NotificationPresenter):
        """注册展示端

        Args:
            presenter: 展示端实例，同名展示端会被替换
        """
        name = presenter.name
        if name in self.presenters:
            logger.warning(f"展示端 {name} 已注册，将被替换")
        self.presenters[name] = presenter
        logger.debug(f"展示端已注册: {name}")

    def unregister(self, name: str):
        if name in self.presenters:
            del self.presenters[name]
            logger.debug(f"展示端已注销: {name}")

    def get_presenter(self, name: str) -> Optional[NotificationPresenter]:
        return self.presenters.get(name)

    def list_presenters(self) -> List[str]:
        return list(self.presenters.keys())

    def notify(self, kind: NotificationKind, message: str):
        notification = Notification(kind=kind, message=message)
        for name, presenter in self.presenters.items():
            try:
                presenter.present(notification)
            except Exception as e:
                logger.error(f"展示端 {name} 展示通知失败: {e}")

    def success(self, message: str):
        self.notify(NotificationKind.SUCCESS, message)

    def error(self, message: str):
        self.notify(NotificationKind.ERROR, message)

    def record(self, type: ActivityType, message: str,
               subject_name: Optional[str] = None) -> Activity:
        """写入一条活动记录"""
        return self.activity.add(type, message, subject_name)
