"""删除确认门 - 破坏性操作前的口令确认

删除客户、删除部门、批量更改部门、删除文件之前，
用户必须输入口令。口令固定写在配置中，只是防误操作的确认步骤，
不是权限控制；真正的授权必须由后端检查。
"""
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from loguru import logger

from interface.manager import NotificationHub
from stores.exceptions import ConfirmationDenied

DENIED_MESSAGE = "請輸入正確的密碼"


class GateDecision(Enum):
    """确认结果"""
    ALLOWED = "allowed"
    DENIED = "denied"


class ConfirmationGate:
    """口令确认门

    无状态：不限制重试次数，也不会锁定。

    Attributes:
        name: 确认门名称，仅用于日志。
    """

    def __init__(self, name: str, secret: str,
                 notifier: Optional[NotificationHub] = None) -> None:
        self.name = name
        self._secret = secret
        self._notifier = notifier

    def confirm(self, entered: Optional[str]) -> GateDecision:
        if entered is not None and entered == self._secret:
            return GateDecision.ALLOWED
        return GateDecision.DENIED

    async def run(self, entered: Optional[str],
                  action: Callable[[], Awaitable[Any]]) -> Any:
        """确认口令后执行破坏性操作。

        Args:
            entered: 用户输入的口令。
            action: 口令正确时执行的协程函数，只会被调用一次。

        Returns:
            action 的返回值。

        Raises:
            ConfirmationDenied: 口令错误，action 不会被调用。
        """
        if self.confirm(entered) is GateDecision.DENIED:
            logger.warning(f"确认门 {self.name} 口令错误，操作已取消")
            if self._notifier is not None:
                self._notifier.error(DENIED_MESSAGE)
            raise ConfirmationDenied(DENIED_MESSAGE)
        return await action()
