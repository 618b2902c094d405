"""Shared helpers for CRM tests.

- FailingGateway: wraps a real gateway and injects GatewayError per operation
- StepClock: deterministic clock, every call is one second later
- seed helpers that write rows directly through the gateway
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set, Tuple

from database.gateway import GatewayError, RemoteGateway

USER_ID = "user-1"
RECORD_SECRET = "record-secret"
FILE_SECRET = "file-secret"


class FailingGateway(RemoteGateway):
    """Gateway wrapper that records calls and fails on demand."""

    def __init__(self, inner: RemoteGateway):
        self.inner = inner
        self.failures: Set[Tuple[str, Optional[str]]] = set()
        self.calls: List[Tuple[str, str]] = []

    def fail(self, operation: str, table: Optional[str] = None):
        """Make `operation` (optionally only on `table`) raise GatewayError."""
        self.failures.add((operation, table))

    def heal(self):
        self.failures.clear()

    def count(self, operation: str, table: Optional[str] = None) -> int:
        return sum(
            1 for op, tbl in self.calls
            if op == operation and (table is None or tbl == table)
        )

    def writes(self) -> int:
        return sum(1 for op, _ in self.calls if op != "select")

    def _check(self, operation: str, table: str):
        self.calls.append((operation, table))
        if (operation, table) in self.failures or (operation, None) in self.failures:
            raise GatewayError("injected failure", table, operation)

    async def select(self, table, filters=None, order=None):
        self._check("select", table)
        return await self.inner.select(table, filters, order)

    async def insert(self, table, row):
        self._check("insert", table)
        return await self.inner.insert(table, row)

    async def update(self, table, row_id, patch):
        self._check("update", table)
        return await self.inner.update(table, row_id, patch)

    async def delete(self, table, row_id):
        self._check("delete", table)
        return await self.inner.delete(table, row_id)

    async def upsert_batch(self, table, rows):
        self._check("upsert_batch", table)
        return await self.inner.upsert_batch(table, rows)


class StepClock:
    """Returns a strictly increasing datetime on every call."""

    def __init__(self, start: datetime = datetime(2024, 1, 28, 10, 0, 0)):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


async def seed_department(gateway: RemoteGateway, code: str, name: str,
                          sort_order: int, user_id: str = USER_ID) -> Dict[str, Any]:
    return await gateway.insert("departments", {
        "user_id": user_id, "code": code, "name": name, "sort_order": sort_order,
    })


async def seed_customer(gateway: RemoteGateway, name: str,
                        department: str = "uncategorized",
                        department_name: str = "未分類",
                        status: str = "active",
                        user_id: str = USER_ID) -> Dict[str, Any]:
    return await gateway.insert("customers", {
        "user_id": user_id, "name": name, "department": department,
        "department_name": department_name, "status": status,
    })


def snapshot(store) -> List[Dict[str, Any]]:
    """Comparable copy of a store's list() output."""
    return [item.to_dict() for item in store.list()]
