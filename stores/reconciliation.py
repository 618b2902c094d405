"""写入协调协议 - 所有实体仓库共用的写入顺序。

每次写入按以下顺序执行：

1. 本地校验（必填字段、枚举值）；失败时不发出任何请求
2. 向远端网关发出且只发出一次写入
3. 成功后按仓库声明的方式更新本地状态（直接修补或整体刷新）
4. 失败时本地状态保持不变，抛出带类型的错误
5. 发出成功 / 失败通知；成功时写入活动记录

同一个表单（submit_key）在请求完成前不能再次提交，
相当于界面上禁用提交按钮；这是协作式的单线程约束，不是锁。
"""
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Set

from loguru import logger

from database.gateway import GatewayError
from database.storage import StorageError
from interface.base import ActivityType
from interface.manager import NotificationHub
from .cancellation import CancelToken, is_cancelled
from .exceptions import (
    RemoteReadError, RemoteWriteError, SubmissionInProgress, ValidationError,
)


@dataclass
class Mutation:
    """一次写入的描述

    Attributes:
        submit_key: 表单标识，同一标识同时只能有一个请求。
        activity: 活动类型（新增 / 编辑 / 删除 / 上传）。
        remote: 发出远端写入的协程函数。
        apply: 写入成功后更新本地状态，参数为 remote 的返回值，
            可以是普通函数或协程函数。
        validate: 本地校验函数，失败时抛出 ValidationError。
        success_message: 成功提示。
        failure_message: 失败提示。
        subject_name: 相关客户名称，写入活动记录。
        token: 取消令牌；令牌取消后不再更新本地状态。
    """
    submit_key: str
    activity: ActivityType
    remote: Callable[[], Awaitable[Any]]
    apply: Optional[Callable[[Any], Any]] = None
    validate: Optional[Callable[[], None]] = None
    success_message: str = ""
    failure_message: str = ""
    subject_name: Optional[str] = None
    token: Optional[CancelToken] = None


class Reconciler:
    """写入协调器

    所有实体仓库共用一个实例，因此提交锁在仓库之间共享。

    Attributes:
        notifier: 通知中心。
    """

    def __init__(self, notifier: NotificationHub) -> None:
        self.notifier = notifier
        self._in_flight: Set[str] = set()

    def is_submitting(self, submit_key: str) -> bool:
        return submit_key in self._in_flight

    async def run(self, mutation: Mutation) -> Any:
        """按协议执行一次写入。

        Returns:
            remote 的返回值。

        Raises:
            SubmissionInProgress: 同一表单的上一次提交尚未完成。
            ValidationError: 本地校验失败。
            RemoteWriteError: 后端拒绝写入。
        """
        if mutation.submit_key in self._in_flight:
            raise SubmissionInProgress("上一次提交尚未完成")

        if mutation.validate is not None:
            try:
                mutation.validate()
            except ValidationError as e:
                logger.warning(f"校验失败 [{mutation.submit_key}]: {e.message}")
                self.notifier.error(e.message)
                raise

        self._in_flight.add(mutation.submit_key)
        try:
            result = await mutation.remote()
        except (GatewayError, StorageError) as e:
            logger.error(f"写入失败 [{mutation.submit_key}]: {e}")
            self.notifier.error(mutation.failure_message)
            raise RemoteWriteError(mutation.failure_message) from e
        finally:
            self._in_flight.discard(mutation.submit_key)

        if is_cancelled(mutation.token):
            logger.debug(f"视图已关闭，跳过本地更新 [{mutation.submit_key}]")
            return result

        if mutation.apply is not None:
            try:
                applied = mutation.apply(result)
                if inspect.isawaitable(applied):
                    await applied
            except RemoteReadError as e:
                # 写入已经成功，只是重新载入失败；已有数据保持不变
                logger.warning(f"写入后重新载入失败 [{mutation.submit_key}]: {e.message}")

        logger.info(f"写入成功 [{mutation.submit_key}]")
        if mutation.success_message:
            self.notifier.success(mutation.success_message)
            self.notifier.record(
                mutation.activity, mutation.success_message,
                mutation.subject_name,
            )
        return result
