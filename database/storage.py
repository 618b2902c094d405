"""客户文件的对象存储。

文件内容是不透明的二进制块，按字符串键存放；
客户端只负责构造键并记录元数据，从不解析文件内容。

键格式：{user_id}/{customer_id}/{timestamp_ms}.{ext}
"""
import asyncio
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional


class StorageError(RuntimeError):
    """对象存储读写失败。"""
    pass


class FileStorage:
    """对象存储接口。"""

    async def upload(self, key: str, data: bytes,
                     content_type: Optional[str] = None) -> None:
        raise NotImplementedError

    async def download(self, key: str) -> bytes:
        raise NotImplementedError

    async def remove(self, key: str) -> None:
        raise NotImplementedError

    async def exists(self, key: str) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class LocalFileStorage(FileStorage):
    """本地文件系统实现，root 下按键的层级保存文件。

    文件读写在线程中执行，避免阻塞事件循环。
    """
    root: Path

    def _path(self, key: str) -> Path:
        safe_key = key.lstrip("/").replace("\\", "/")
        if ".." in safe_key.split("/"):
            raise StorageError(f"非法的存储键: {key}")
        return self.root / safe_key

    async def _in_thread(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    @staticmethod
    def _write(p: Path, data: bytes) -> None:
        if p.exists():
            raise StorageError(f"存储键已存在: {p.name}")
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_bytes(data)
        except OSError as e:
            raise StorageError(str(e)) from e

    @staticmethod
    def _read(p: Path) -> bytes:
        try:
            return p.read_bytes()
        except OSError as e:
            raise StorageError(str(e)) from e

    @staticmethod
    def _unlink(p: Path) -> None:
        try:
            p.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(str(e)) from e

    async def upload(self, key: str, data: bytes,
                     content_type: Optional[str] = None) -> None:
        await self._in_thread(self._write, self._path(key), data)

    async def download(self, key: str) -> bytes:
        return await self._in_thread(self._read, self._path(key))

    async def remove(self, key: str) -> None:
        await self._in_thread(self._unlink, self._path(key))

    async def exists(self, key: str) -> bool:
        return await self._in_thread(self._path(key).exists)


def build_storage_key(user_id: str, customer_id: str, file_name: str,
                      now: Optional[datetime] = None) -> str:
    """构造文件的存储键。

    扩展名取文件名最后一个点之后的部分并保留大小写；文件名没有点时不加扩展名。

    Args:
        user_id: 所属用户。
        customer_id: 所属客户。
        file_name: 上传时的原始文件名。
        now: 用于生成时间戳的时间，默认当前时间。

    Returns:
        形如 ``{user_id}/{customer_id}/{timestamp_ms}.{ext}`` 的键。
    """
    timestamp = int((now or datetime.now()).timestamp() * 1000)
    _, ext = os.path.splitext(file_name)
    return f"{user_id}/{customer_id}/{timestamp}{ext}"


def format_file_size(size: Optional[int]) -> str:
    """把字节数格式化为易读的字符串，例如 1536 -> '1.5 KB'。"""
    if not size:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


def storage_from_settings(root: Optional[str] = None) -> FileStorage:
    from config.settings import settings
    return LocalFileStorage(root=Path(root or settings.storage_root))
