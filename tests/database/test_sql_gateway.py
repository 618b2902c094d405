"""测试 SQLAlchemy 网关

- select 按条件过滤并排序
- insert 返回后端生成的 id 与时间戳
- update / delete 不存在的行时抛出 GatewayError
- upsert_batch 更新已有行、插入新行
- 删除客户时级联删除明细
- 未知的表与字段转换为 GatewayError
"""
import threading
from datetime import date

import pytest

from database.gateway import GatewayError
from database.models import Department
from tests.helpers import USER_ID, seed_customer, seed_department


class TestGatewayInsertSelect:
    """新增与查询测试"""

    @pytest.mark.asyncio
    async def test_insert_generates_id_and_timestamps(self, temp_db):
        row = await seed_customer(temp_db.gateway, "Acme")
        assert len(row["id"]) == 36
        assert row["created_at"] is not None
        assert row["updated_at"] is not None
        assert row["user_id"] == USER_ID

    @pytest.mark.asyncio
    async def test_select_filters_by_user(self, temp_db):
        await seed_customer(temp_db.gateway, "Mine")
        await seed_customer(temp_db.gateway, "Theirs", user_id="user-2")

        rows = await temp_db.gateway.select("customers", {"user_id": USER_ID})
        assert [r["name"] for r in rows] == ["Mine"]

    @pytest.mark.asyncio
    async def test_select_order(self, temp_db):
        await seed_department(temp_db.gateway, "b", "B", 2)
        await seed_department(temp_db.gateway, "a", "A", 1)
        await seed_department(temp_db.gateway, "c", "C", 3)

        rows = await temp_db.gateway.select(
            "departments", {"user_id": USER_ID}, [("sort_order", True)]
        )
        assert [r["code"] for r in rows] == ["a", "b", "c"]

        rows = await temp_db.gateway.select(
            "departments", {"user_id": USER_ID}, [("sort_order", False)]
        )
        assert [r["code"] for r in rows] == ["c", "b", "a"]

    @pytest.mark.asyncio
    async def test_unique_department_code_rejected(self, temp_db):
        await seed_department(temp_db.gateway, "sales", "Sales", 1)
        with pytest.raises(GatewayError) as exc_info:
            await seed_department(temp_db.gateway, "sales", "Sales 2", 2)
        assert exc_info.value.operation == "insert"
        assert exc_info.value.table == "departments"

    @pytest.mark.asyncio
    async def test_unknown_table(self, temp_db):
        with pytest.raises(GatewayError):
            await temp_db.gateway.select("nope")

    @pytest.mark.asyncio
    async def test_unknown_column(self, temp_db):
        with pytest.raises(GatewayError):
            await temp_db.gateway.insert("customers", {
                "user_id": USER_ID, "name": "X", "colour": "red",
            })


class TestGatewayUpdateDelete:
    """修改、删除与批量写入测试"""

    @pytest.mark.asyncio
    async def test_update_returns_full_row(self, temp_db):
        row = await seed_customer(temp_db.gateway, "Acme")
        updated = await temp_db.gateway.update("customers", row["id"], {"notes": "VIP"})
        assert updated["notes"] == "VIP"
        assert updated["name"] == "Acme"

    @pytest.mark.asyncio
    async def test_update_missing_row(self, temp_db):
        with pytest.raises(GatewayError):
            await temp_db.gateway.update("customers", "missing", {"notes": "x"})

    @pytest.mark.asyncio
    async def test_delete_missing_row(self, temp_db):
        with pytest.raises(GatewayError):
            await temp_db.gateway.delete("customers", "missing")

    @pytest.mark.asyncio
    async def test_upsert_batch_updates_and_inserts(self, temp_db):
        a = await seed_department(temp_db.gateway, "a", "A", 1)
        await temp_db.gateway.upsert_batch("departments", [
            {"id": a["id"], "sort_order": 5},
            {"user_id": USER_ID, "code": "b", "name": "B", "sort_order": 6},
        ])

        rows = await temp_db.gateway.select(
            "departments", {"user_id": USER_ID}, [("sort_order", True)]
        )
        assert [(r["code"], r["sort_order"]) for r in rows] == [("a", 5), ("b", 6)]

    @pytest.mark.asyncio
    async def test_upsert_batch_is_all_or_nothing(self, temp_db):
        a = await seed_department(temp_db.gateway, "a", "A", 1)
        with pytest.raises(GatewayError):
            await temp_db.gateway.upsert_batch("departments", [
                {"id": a["id"], "sort_order": 9},
                {"id": "new", "user_id": USER_ID, "code": "a", "name": "dup"},
            ])

        rows = await temp_db.gateway.select("departments", {"user_id": USER_ID})
        assert [r["sort_order"] for r in rows] == [1]

    @pytest.mark.asyncio
    async def test_customer_delete_cascades(self, temp_db):
        customer = await seed_customer(temp_db.gateway, "Acme")
        await temp_db.gateway.insert("payment_records", {
            "user_id": USER_ID, "customer_id": customer["id"],
            "date": date(2024, 1, 1), "payment_method": "cash",
            "amount": 100, "tax_amount": 5, "total_amount": 105,
        })
        await temp_db.gateway.insert("service_plans", {
            "user_id": USER_ID, "customer_id": customer["id"],
            "name": "社群代操", "price": 1000,
        })

        await temp_db.gateway.delete("customers", customer["id"])

        counts = await temp_db.count_rows(USER_ID)
        assert counts["customers"] == 0
        assert counts["payment_records"] == 0
        assert counts["service_plans"] == 0


class TestDatabaseManager:
    """数据库管理器测试"""

    def test_properties(self, temp_db):
        assert temp_db.database_url.startswith("sqlite:///")
        assert temp_db.engine is not None
        assert temp_db.is_async is False
        assert temp_db.gateway is not None

    @pytest.mark.asyncio
    async def test_seed_defaults_is_idempotent(self, temp_db):
        assert await temp_db.seed_defaults(USER_ID) is True
        assert await temp_db.seed_defaults(USER_ID) is False

        rows = await temp_db.gateway.select("departments", {"user_id": USER_ID})
        assert len(rows) == 1
        assert rows[0]["code"] == "uncategorized"
        assert rows[0]["name"] == "未分類"
        assert rows[0]["sort_order"] == 9999

    @pytest.mark.asyncio
    async def test_count_rows_per_user(self, temp_db):
        await seed_customer(temp_db.gateway, "A")
        await seed_customer(temp_db.gateway, "B", user_id="user-2")

        counts = await temp_db.count_rows(USER_ID)
        assert counts["customers"] == 1
        assert counts["departments"] == 0


class TestDatabaseConnectionRun:
    """DatabaseConnection.run 在线程中执行同步会话"""

    @pytest.mark.asyncio
    async def test_sync_work_runs_off_event_loop_thread(self, temp_db):
        loop_thread = threading.get_ident()
        work_thread = await temp_db.conn.run(lambda session: threading.get_ident())
        assert work_thread != loop_thread

    @pytest.mark.asyncio
    async def test_error_is_raised_and_rolled_back(self, temp_db):
        def work(session):
            session.add(Department(user_id=USER_ID, code="x", name="X", sort_order=1))
            session.flush()
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await temp_db.conn.run(work)
        assert await temp_db.gateway.select("departments", {"user_id": USER_ID}) == []
