"""数据库管理器 - 统一门面（Facade）。

DatabaseManager 是 database 模块的统一入口，组合了连接管理与远端网关：

1. **基础设施**：建表、会话、关闭连接。
2. **网关**：通过 ``db.gateway`` 取得 RemoteGateway 实现，交给实体仓库使用。
3. **便捷方法**：初始化新用户的预设数据、按用户统计行数等，
   供脚本与测试使用，返回字典/基本类型。
"""
from typing import Dict, Optional, Union

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.ext.asyncio import AsyncSession

from config.crm_config import UNCATEGORIZED, UNCATEGORIZED_SORT_ORDER
from config.settings import settings
from .connection import DatabaseConnection
from .models import Department, TABLES
from .sql_gateway import SQLAlchemyGateway


class DatabaseManager:
    """数据库管理器 - 统一门面。

    支持 SQLite（同步）和 PostgreSQL（异步）数据库引擎。

    Attributes:
        conn: 数据库连接管理器。
        gateway: 基于 SQLAlchemy 的远端数据网关。

    Example::

        db = DatabaseManager("sqlite:///data/crm.db")
        db.create_tables()
        await db.seed_defaults("user-1")

        ctx = CRMContext("user-1", db.gateway, storage)
    """

    def __init__(self, database_url: Optional[str] = None) -> None:
        """初始化数据库管理器。

        Args:
            database_url: 数据库连接URL。如果为None则使用settings配置。
                        支持 ``sqlite:///`` 和 ``postgresql://`` 格式。
        """
        self.conn = DatabaseConnection(database_url)
        self.gateway = SQLAlchemyGateway(self.conn)

    # ================================================================
    # 基础设施方法
    # ================================================================

    def create_tables(self) -> None:
        """创建所有数据库表（幂等操作）。"""
        self.conn.create_tables()

    async def create_tables_async(self) -> None:
        await self.conn.create_tables_async()

    def get_session(self) -> Union[Session, AsyncSession]:
        """获取数据库会话。"""
        return self.conn.get_session()

    @property
    def database_url(self) -> str:
        """数据库连接URL。"""
        return self.conn.database_url

    @property
    def engine(self):
        """SQLAlchemy 引擎对象。"""
        return self.conn.engine

    @property
    def is_async(self) -> bool:
        """是否为异步引擎。"""
        return self.conn.is_async

    def close(self) -> None:
        """关闭数据库连接，释放所有资源。"""
        self.conn.close()

    async def close_async(self) -> None:
        await self.conn.close_async()

    # ================================================================
    # 便捷方法
    # ================================================================

    async def seed_defaults(self, user_id: str) -> bool:
        """为用户建立预设部门（未分类），已存在时不做任何事。

        Args:
            user_id: 用户 ID。

        Returns:
            是否新建了部门。
        """
        def _seed(session: Session) -> bool:
            exists = session.scalars(
                select(Department).where(
                    Department.user_id == user_id,
                    Department.code == UNCATEGORIZED,
                )
            ).first()
            if exists is not None:
                return False
            session.add(Department(
                user_id=user_id,
                code=UNCATEGORIZED,
                name=settings.uncategorized_name,
                sort_order=UNCATEGORIZED_SORT_ORDER,
            ))
            return True

        created = await self.conn.run(_seed)
        if created:
            logger.info(f"已为用户 {user_id} 建立预设部门")
        return created

    async def count_rows(self, user_id: str) -> Dict[str, int]:
        """按表统计某个用户的行数。

        Returns:
            表名 -> 行数。
        """
        def _count(session: Session) -> Dict[str, int]:
            return {
                name: session.scalar(
                    select(func.count()).select_from(model).where(model.user_id == user_id)
                )
                for name, model in TABLES.items()
            }

        return await self.conn.run(_count)
