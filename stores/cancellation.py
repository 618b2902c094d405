"""取消令牌。

视图发起异步请求时传入令牌；视图销毁时取消令牌，
之后才返回的响应不再写入本地状态。
"""
from typing import Optional


class CancelToken:
    """单次请求的取消令牌。"""

    def __init__(self, parent: Optional["CancelToken"] = None) -> None:
        self._cancelled = False
        self._parent = parent

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        if self._cancelled:
            return True
        return self._parent is not None and self._parent.cancelled


class ViewScope:
    """视图作用域：统一管理视图内发出的所有令牌。

    使用方式：
        ```python
        with ViewScope() as scope:
            await ctx.customers.refresh(token=scope.token())
        # 离开作用域后，scope 发出的令牌全部失效
        ```
    """

    def __init__(self) -> None:
        self._root = CancelToken()

    def token(self) -> CancelToken:
        return CancelToken(parent=self._root)

    def close(self) -> None:
        self._root.cancel()

    @property
    def closed(self) -> bool:
        return self._root.cancelled

    def __enter__(self) -> "ViewScope":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def is_cancelled(token: Optional[CancelToken]) -> bool:
    return token is not None and token.cancelled
