"""客户文件仓库。

文件内容存放在对象存储中，数据表只记录元数据。
上传时先写入对象存储，再写入元数据；元数据写入失败时删除已上传的内容，
避免留下孤立文件。删除时先删对象存储，再删元数据。
"""
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from loguru import logger

from database.gateway import GatewayError
from database.storage import FileStorage, StorageError, build_storage_key
from interface.base import ActivityType
from .base import EntityStore, blank_to_none, require_text
from .cancellation import CancelToken
from .entities import CustomerFile
from .exceptions import RemoteReadError, ValidationError
from .reconciliation import Mutation

EDITABLE_FIELDS = ("title", "file_name")


class FileStore(EntityStore[CustomerFile]):
    """客户文件仓库

    Attributes:
        storage: 对象存储。
        clock: 生成存储键时间戳的时钟，测试时可以替换。
    """

    table = "customer_files"
    entity_cls = CustomerFile
    label = "檔案"
    order = (("uploaded_at", False),)
    scope_field = "customer_id"
    refresh_after_write = True
    load_failure_message = "無法載入檔案清單"

    def __init__(self, gateway, reconciler, user_id, storage: FileStorage,
                 clock: Optional[Callable[[], datetime]] = None) -> None:
        super().__init__(gateway, reconciler, user_id)
        self.storage = storage
        self.clock = clock or datetime.now

    def prepare_update(self, current: CustomerFile,
                       patch: Dict[str, Any]) -> Dict[str, Any]:
        changes = super().prepare_update(current, patch)
        readonly = [k for k in changes if k not in EDITABLE_FIELDS]
        if readonly:
            raise ValidationError(f"無法修改欄位: {', '.join(readonly)}", readonly[0])
        if "file_name" in changes:
            changes["file_name"] = require_text(changes, "file_name", "檔案名稱")
        if "title" in changes:
            changes["title"] = blank_to_none(changes["title"])
        return changes

    async def add(self, draft: Dict[str, Any],
                  token: Optional[CancelToken] = None) -> CustomerFile:
        """新增文件必须带上文件内容，等同于 upload"""
        return await self.upload(
            draft.get("customer_id") or self.scope,
            draft.get("file_name"),
            draft.get("data"),
            mime_type=draft.get("mime_type"),
            title=draft.get("title"),
            token=token,
        )

    async def upload(self, customer_id: Optional[str], file_name: Optional[str],
                     data: Optional[bytes], mime_type: Optional[str] = None,
                     title: Optional[str] = None,
                     token: Optional[CancelToken] = None) -> CustomerFile:
        """上传文件。

        Args:
            customer_id: 所属客户。
            file_name: 原始文件名。
            data: 文件内容。
            mime_type: 文件类型。
            title: 显示标题，可选。
            token: 取消令牌。

        Returns:
            写入后的文件元数据。

        Raises:
            ValidationError: 缺少客户、文件名或内容。
            RemoteWriteError: 上传或元数据写入失败。
        """
        row: Dict[str, Any] = {}

        def validate():
            if not customer_id:
                raise ValidationError("請先選擇客戶", "customer_id")
            name = require_text({"file_name": file_name}, "file_name", "檔案名稱")
            if data is None:
                raise ValidationError("請選擇檔案", "data")
            row.update({
                "customer_id": customer_id,
                "user_id": self.user_id,
                "file_name": name,
                "title": blank_to_none(title),
                "file_path": build_storage_key(
                    self.user_id, customer_id, name, now=self.clock()
                ),
                "file_size": len(data),
                "mime_type": mime_type,
            })

        async def remote():
            await self.storage.upload(row["file_path"], data, mime_type)
            try:
                return await self.gateway.insert(self.table, row)
            except GatewayError:
                await self._discard_blob(row["file_path"])
                raise

        def apply(_):
            if self.scope == customer_id:
                return self.refresh(token=token)

        result = await self.reconciler.run(Mutation(
            submit_key=f"{self.table}:upload",
            activity=ActivityType.UPLOAD,
            remote=remote,
            apply=apply,
            validate=validate,
            success_message="檔案上傳成功",
            failure_message="檔案上傳失敗",
            subject_name=self.subject_name,
            token=token,
        ))
        return self._from_row(result)

    async def _discard_blob(self, key: str) -> None:
        try:
            await self.storage.remove(key)
        except StorageError as e:
            logger.error(f"元数据写入失败后删除文件 {key} 也失败: {e}")

    async def download(self, file_id: str) -> bytes:
        """下载文件内容。

        Raises:
            ValidationError: 找不到文件。
            RemoteReadError: 对象存储读取失败。
        """
        current = self._require(file_id)
        try:
            data = await self.storage.download(current.file_path)
        except StorageError as e:
            logger.error(f"下载文件 {current.file_path} 失败: {e}")
            self.notifier.error("檔案下載失敗")
            raise RemoteReadError("檔案下載失敗") from e
        self.notifier.success("檔案下載開始")
        return data

    async def remove(self, file_id: str,
                     token: Optional[CancelToken] = None) -> None:
        """删除文件：先删除对象存储中的内容，再删除元数据"""
        current = self._require(file_id)

        async def remote():
            await self.storage.remove(current.file_path)
            await self.gateway.delete(self.table, file_id)

        await self.reconciler.run(Mutation(
            submit_key=f"{self.table}:{file_id}",
            activity=ActivityType.DELETE,
            remote=remote,
            apply=lambda _: self.refresh(token=token),
            success_message="檔案已刪除",
            failure_message="檔案刪除失敗",
            subject_name=self.subject_name,
            token=token,
        ))
