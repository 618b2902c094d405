"""通知接口抽象层 - 实体仓库向外发出的事件格式

定义通知（toast）与活动记录的数据结构，以及通知展示端的基类。
实体仓库只负责发出事件，如何展示完全由展示端决定。

核心概念：
- Notification: 一次操作结果的提示（成功 / 失败）
- Activity: 活动记录面板中的一条记录（新增 / 编辑 / 删除 / 上传）
- NotificationPresenter: 展示端抽象基类，负责把通知呈现给用户
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from loguru import logger


class NotificationKind(Enum):
    """通知类型"""
    SUCCESS = "success"
    ERROR = "error"


class ActivityType(Enum):
    """活动类型"""
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    UPLOAD = "upload"


@dataclass
class Notification:
    """一次操作结果的提示

    Attributes:
        kind: 成功或失败
        message: 展示给用户的文字
        timestamp: 产生时间
    """
    kind: NotificationKind
    message: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class Activity:
    """活动记录面板中的一条记录

    Attributes:
        id: 记录标识
        type: 活动类型
        message: 描述文字
        subject_name: 相关客户名称（可选）
        timestamp: 产生时间
        is_read: 是否已读
    """
    id: str
    type: ActivityType
    message: str
    subject_name: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    is_read: bool = False


class NotificationPresenter(ABC):
    """通知展示端抽象基类

    展示端没有返回值，实体仓库不关心通知是否送达。
    """

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def present(self, notification: Notification) -> None:
        """展示一条通知"""
        pass


class LogPresenter(NotificationPresenter):
    """把通知写入日志的展示端，没有界面时使用"""

    def __init__(self):
        super().__init__("log")

    def present(self, notification: Notification) -> None:
        if notification.kind == NotificationKind.ERROR:
            logger.warning(f"[通知] {notification.message}")
        else:
            logger.info(f"[通知] {notification.message}")


class MemoryPresenter(NotificationPresenter):
    """把通知保存在内存中的展示端，便于视图轮询或测试断言"""

    def __init__(self, name: str = "memory"):
        super().__init__(name)
        self.notifications: List[Notification] = []

    def present(self, notification: Notification) -> None:
        self.notifications.append(notification)

    @property
    def errors(self) -> List[str]:
        return [n.message for n in self.notifications
                if n.kind == NotificationKind.ERROR]

    @property
    def successes(self) -> List[str]:
        return [n.message for n in self.notifications
                if n.kind == NotificationKind.SUCCESS]
