"""基于 SQLAlchemy 的远端数据网关实现。

开发与测试环境用它代替托管后端：表结构与托管后端一致，
主键与时间戳同样由后端生成。所有 SQLAlchemy 异常都转换为
GatewayError，调用方无需关心具体数据库。
"""
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import select as sa_select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .connection import DatabaseConnection
from .gateway import GatewayError, Order, RemoteGateway, Row
from .models import TABLES


class SQLAlchemyGateway(RemoteGateway):
    """SQLAlchemy 网关。

    每次调用使用独立会话并立即提交，与托管后端的单请求语义一致。

    Attributes:
        conn: 数据库连接管理器。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        self.conn = conn

    # ================================================================
    # 内部工具
    # ================================================================

    def _model(self, table: str, operation: str):
        model = TABLES.get(table)
        if model is None:
            raise GatewayError(f"未知数据表: {table}", table, operation)
        return model

    @staticmethod
    def _to_row(obj) -> Row:
        return {c.name: getattr(obj, c.name) for c in obj.__table__.columns}

    @staticmethod
    def _assign(obj, values: Row) -> None:
        columns = {c.name for c in obj.__table__.columns}
        for key, value in values.items():
            if key == "id":
                continue
            if key not in columns:
                raise ValueError(f"{obj.__tablename__} 没有字段 {key}")
            setattr(obj, key, value)

    async def _execute(self, table: str, operation: str, work) -> Any:
        try:
            return await self.conn.run(work)
        except GatewayError:
            raise
        except (SQLAlchemyError, ValueError) as e:
            logger.error(f"网关 {operation} {table} 失败: {e}")
            raise GatewayError(str(e), table, operation) from e

    # ================================================================
    # RemoteGateway 接口
    # ================================================================

    async def select(self, table: str,
                     filters: Optional[Dict[str, Any]] = None,
                     order: Optional[Order] = None) -> List[Row]:
        model = self._model(table, "select")

        def _query(session: Session) -> List[Row]:
            stmt = sa_select(model)
            for key, value in (filters or {}).items():
                stmt = stmt.where(getattr(model, key) == value)
            for key, ascending in (order or []):
                column = getattr(model, key)
                stmt = stmt.order_by(column.asc() if ascending else column.desc())
            return [self._to_row(obj) for obj in session.scalars(stmt).all()]

        return await self._execute(table, "select", _query)

    async def insert(self, table: str, row: Row) -> Row:
        model = self._model(table, "insert")

        def _insert(session: Session) -> Row:
            obj = model()
            if row.get("id"):
                obj.id = row["id"]
            self._assign(obj, row)
            session.add(obj)
            session.flush()
            session.refresh(obj)
            return self._to_row(obj)

        return await self._execute(table, "insert", _insert)

    async def update(self, table: str, row_id: str, patch: Row) -> Row:
        model = self._model(table, "update")

        def _update(session: Session) -> Row:
            obj = session.get(model, row_id)
            if obj is None:
                raise GatewayError(f"{table} 中不存在 id={row_id}", table, "update")
            self._assign(obj, patch)
            session.flush()
            session.refresh(obj)
            return self._to_row(obj)

        return await self._execute(table, "update", _update)

    async def delete(self, table: str, row_id: str) -> None:
        model = self._model(table, "delete")

        def _delete(session: Session) -> None:
            obj = session.get(model, row_id)
            if obj is None:
                raise GatewayError(f"{table} 中不存在 id={row_id}", table, "delete")
            # 通过 ORM 删除，关联明细按 cascade 一并删除
            session.delete(obj)

        await self._execute(table, "delete", _delete)

    async def upsert_batch(self, table: str, rows: List[Row]) -> None:
        model = self._model(table, "upsert_batch")

        def _upsert(session: Session) -> None:
            for row in rows:
                obj = session.get(model, row["id"]) if row.get("id") else None
                if obj is None:
                    obj = model()
                    if row.get("id"):
                        obj.id = row["id"]
                    session.add(obj)
                self._assign(obj, row)
            session.flush()

        await self._execute(table, "upsert_batch", _upsert)
