"""数据库模块 - 远端数据网关与对象存储

核心组件：
- RemoteGateway: 远端数据网关抽象基类
- SQLAlchemyGateway: 基于 SQLAlchemy 的网关实现
- DatabaseManager: 连接、建表与网关的统一门面
- FileStorage / LocalFileStorage: 客户文件的对象存储
"""
from database.gateway import GatewayError, RemoteGateway
from database.manager import DatabaseManager
from database.sql_gateway import SQLAlchemyGateway
from database.storage import (
    FileStorage, LocalFileStorage, StorageError, build_storage_key,
    format_file_size,
)

__all__ = [
    "DatabaseManager",
    "FileStorage",
    "GatewayError",
    "LocalFileStorage",
    "RemoteGateway",
    "SQLAlchemyGateway",
    "StorageError",
    "build_storage_key",
    "format_file_size",
]
