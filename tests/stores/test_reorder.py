"""测试部门拖拽排序

- compute_order：移动、把“所有客户”放回最前、“未分類”留在最后、重新编号 1..N
- 无效拖放不改变状态
- 每次有效拖放只发一次批量写入
- 批量写入失败时恢复后端顺序
- 随机拖放序列下不变式始终成立
"""
import random

import pytest

from stores.entities import Department
from stores.exceptions import RemoteWriteError
from stores.reorder import DragState, compute_order
from tests.helpers import USER_ID, seed_department


def dept(code, sort_order):
    return Department(id=code, code=code, name=code.upper(), sort_order=sort_order)


ROWS = [
    dept("all", 0), dept("a", 1), dept("b", 2), dept("c", 3),
    dept("uncategorized", 9999),
]


async def load_with(ctx, gateway, codes):
    ids = {}
    for index, code in enumerate(codes, start=1):
        row = await seed_department(gateway, code, code.upper(), index)
        ids[code] = row["id"]
    await ctx.load()
    return ids


def codes(rows):
    return [row.code for row in rows]


async def server_order(gateway):
    rows = await gateway.select(
        "departments", {"user_id": USER_ID}, [("sort_order", True)]
    )
    return [(r["code"], r["sort_order"]) for r in rows]


class TestComputeOrder:
    """排序计算测试"""

    def test_move_down(self):
        result = compute_order(ROWS, "a", "c")
        assert codes(result.rows) == ["all", "b", "c", "a", "uncategorized"]
        assert result.updates == [
            {"id": "b", "sort_order": 1},
            {"id": "c", "sort_order": 2},
            {"id": "a", "sort_order": 3},
        ]

    def test_move_up(self):
        result = compute_order(ROWS, "c", "a")
        assert codes(result.rows) == ["all", "c", "a", "b", "uncategorized"]
        assert [r.sort_order for r in result.rows] == [0, 1, 2, 3, 9999]

    def test_drop_on_uncategorized_keeps_it_last(self):
        result = compute_order(ROWS, "a", "uncategorized")
        assert codes(result.rows) == ["all", "b", "c", "a", "uncategorized"]
        assert [u["sort_order"] for u in result.updates] == [1, 2, 3]
        assert "uncategorized" not in [u["id"] for u in result.updates]

    def test_all_is_relocated_to_front(self):
        rows = [dept("a", 1), dept("all", 0), dept("b", 2)]
        result = compute_order(rows, "b", "a")
        assert codes(result.rows) == ["all", "b", "a"]

    def test_input_is_not_modified(self):
        before = list(ROWS)
        compute_order(ROWS, "a", "c")
        assert ROWS == before

    @pytest.mark.parametrize("active_id, over_id", [
        ("a", "all"),
        ("a", "a"),
        ("a", None),
        ("missing", "b"),
        ("a", "missing"),
        ("uncategorized", "a"),
        ("all", "b"),
    ])
    def test_invalid_drops(self, active_id, over_id):
        assert compute_order(ROWS, active_id, over_id) is None


class TestReorderEngine:
    """排序引擎测试"""

    @pytest.mark.asyncio
    async def test_pinned_rows_cannot_start_drag(self, ctx, gateway):
        await load_with(ctx, gateway, ["a", "b"])
        uncategorized = ctx.departments.find("uncategorized")

        assert ctx.reorder.start_drag("all") is False
        assert ctx.reorder.start_drag(uncategorized.id) is False
        assert ctx.reorder.state == DragState.IDLE

    @pytest.mark.asyncio
    async def test_drop_without_drag_is_ignored(self, ctx, gateway):
        ids = await load_with(ctx, gateway, ["a", "b"])
        assert await ctx.reorder.drop(ids["a"]) is None

    @pytest.mark.asyncio
    async def test_invalid_drop_returns_to_idle(self, ctx, gateway):
        ids = await load_with(ctx, gateway, ["a", "b"])
        before = codes(ctx.departments.list())
        writes = gateway.writes()

        assert ctx.reorder.start_drag(ids["b"]) is True
        assert ctx.reorder.state == DragState.DRAGGING
        assert await ctx.reorder.drop("all") is None

        assert ctx.reorder.state == DragState.IDLE
        assert codes(ctx.departments.list()) == before
        assert gateway.writes() == writes

    @pytest.mark.asyncio
    async def test_valid_drop_persists_one_batch(self, ctx, gateway):
        ids = await load_with(ctx, gateway, ["a", "b", "c"])
        writes = gateway.writes()

        result = await ctx.reorder.move(ids["c"], ids["a"])

        assert codes(result) == ["all", "c", "a", "b", "uncategorized"]
        assert ctx.reorder.state == DragState.IDLE
        assert gateway.writes() == writes + 1
        assert gateway.count("upsert_batch", "departments") == 1
        assert await server_order(gateway) == [
            ("c", 1), ("a", 2), ("b", 3), ("uncategorized", 9999),
        ]

        await ctx.departments.refresh()
        assert codes(ctx.departments.list()) == ["all", "c", "a", "b", "uncategorized"]

    @pytest.mark.asyncio
    async def test_failed_batch_restores_server_order(self, ctx, gateway, presenter):
        ids = await load_with(ctx, gateway, ["a", "b", "c"])
        before = [d.to_dict() for d in ctx.departments.list()]
        server_before = await server_order(gateway)

        gateway.fail("upsert_batch", "departments")
        with pytest.raises(RemoteWriteError):
            await ctx.reorder.move(ids["c"], ids["a"])

        assert [d.to_dict() for d in ctx.departments.list()] == before
        assert await server_order(gateway) == server_before
        assert presenter.errors == ["無法更新部門順序"]
        assert ctx.reorder.state == DragState.IDLE

        await ctx.departments.refresh()
        assert [d.to_dict() for d in ctx.departments.list()] == before

    @pytest.mark.asyncio
    async def test_failed_batch_and_failed_refresh_keeps_snapshot(self, ctx, gateway):
        ids = await load_with(ctx, gateway, ["a", "b"])
        before = codes(ctx.departments.list())

        gateway.fail("upsert_batch")
        gateway.fail("select", "departments")
        with pytest.raises(RemoteWriteError):
            await ctx.reorder.move(ids["b"], ids["a"])

        assert codes(ctx.departments.list()) == before

    @pytest.mark.asyncio
    async def test_invariants_hold_across_random_moves(self, ctx, gateway):
        await load_with(ctx, gateway, ["a", "b", "c", "d", "e"])
        rng = random.Random(20240128)

        for _ in range(25):
            rows = ctx.departments.list()
            movable = [r.id for r in rows if r.code not in ("all", "uncategorized")]
            active_id = rng.choice(movable)
            over_id = rng.choice([r.id for r in rows])
            await ctx.reorder.move(active_id, over_id)

            rows = ctx.departments.list()
            assert rows[0].code == "all"
            assert sum(1 for r in rows if r.code == "uncategorized") == 1

            stored = await server_order(gateway)
            orders = sorted(o for code, o in stored if code != "uncategorized")
            assert orders == list(range(1, len(orders) + 1))
            assert dict(stored)["uncategorized"] == 9999

    @pytest.mark.asyncio
    async def test_drop_on_uncategorized_matches_server_order(self, ctx, gateway):
        await load_with(ctx, gateway, ["a", "b", "c"])
        a = ctx.departments.find("a")
        uncategorized = ctx.departments.find("uncategorized")

        await ctx.reorder.move(a.id, uncategorized.id)
        local = [d.to_dict() for d in ctx.departments.list()]

        await ctx.departments.refresh()
        assert [d.to_dict() for d in ctx.departments.list()] == local
        assert codes(ctx.departments.list()) == ["all", "b", "c", "a", "uncategorized"]

    @pytest.mark.asyncio
    async def test_valid_drop_notifies_success(self, ctx, gateway, presenter):
        ids = await load_with(ctx, gateway, ["a", "b", "c"])

        await ctx.reorder.move(ids["c"], ids["a"])

        assert presenter.successes == ["部門順序已更新"]
        entry = ctx.notifier.activity.entries[0]
        assert entry.type.value == "edit"
        assert entry.message == "部門順序已更新"
