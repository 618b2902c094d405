"""实体仓库的错误类型。

所有错误都继承 CRMError，调用方可以统一捕获；
任何错误都不会让本地状态偏离最后一次确认的状态。
"""
from typing import Optional


class CRMError(Exception):
    """客户管理错误基类。message 是可以直接展示给用户的文字。"""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CRMError):
    """本地校验失败（必填字段缺失、枚举值无效、部门代码重复等）。

    不会发出任何网络请求。
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class SubmissionInProgress(CRMError):
    """同一个表单的上一次提交尚未完成。"""
    pass


class RemoteWriteError(CRMError):
    """后端拒绝了写入（约束冲突、登录过期、网络中断）。不会自动重试。"""
    pass


class RemoteReadError(CRMError):
    """刷新/查询失败。已加载的数据保持不变。"""
    pass


class ConfirmationDenied(CRMError):
    """删除确认口令错误。"""
    pass
