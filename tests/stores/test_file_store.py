"""测试客户文件仓库

- 上传时先写文件内容，再写元数据
- 元数据写入失败时删除已上传的文件
- 下载 / 删除 / 改名
"""
import pytest

from stores.exceptions import RemoteReadError, RemoteWriteError, ValidationError
from tests.helpers import USER_ID, seed_customer, snapshot


async def open_customer(ctx, gateway, name="Acme"):
    row = await seed_customer(gateway, name)
    await ctx.load()
    await ctx.open_customer(row["id"])
    return row["id"]


def stored_files(storage):
    if not storage.root.exists():
        return []
    return sorted(p for p in storage.root.rglob("*") if p.is_file())


class TestUpload:
    """上传测试"""

    @pytest.mark.asyncio
    async def test_upload_stores_blob_and_metadata(self, ctx, gateway, storage, presenter):
        customer_id = await open_customer(ctx, gateway)

        created = await ctx.files.upload(
            customer_id, "Contract.PDF", b"%PDF-1.4", mime_type="application/pdf",
            title="  合約  ",
        )

        assert created.file_name == "Contract.PDF"
        assert created.title == "合約"
        assert created.file_size == 8
        assert created.file_path.startswith(f"{USER_ID}/{customer_id}/")
        assert created.file_path.endswith(".PDF")
        assert await storage.download(created.file_path) == b"%PDF-1.4"

        assert [f.id for f in ctx.files.list()] == [created.id]
        assert presenter.successes == ["檔案上傳成功"]
        entry = ctx.notifier.activity.entries[0]
        assert entry.type.value == "upload"
        assert entry.subject_name == "Acme"

    @pytest.mark.asyncio
    async def test_file_without_extension(self, ctx, gateway):
        customer_id = await open_customer(ctx, gateway)
        created = await ctx.files.upload(customer_id, "README", b"hello")
        assert "." not in created.file_path.rsplit("/", 1)[-1]

    @pytest.mark.asyncio
    async def test_newest_upload_first(self, ctx, gateway):
        customer_id = await open_customer(ctx, gateway)
        first = await ctx.files.upload(customer_id, "a.txt", b"a")
        second = await ctx.files.upload(customer_id, "b.txt", b"b")

        assert first.file_path != second.file_path
        assert {f.id for f in ctx.files.list()} == {first.id, second.id}

    @pytest.mark.asyncio
    async def test_add_delegates_to_upload(self, ctx, gateway, storage):
        await open_customer(ctx, gateway)

        created = await ctx.files.add({"file_name": "logo.png", "data": b"\x89PNG"})

        assert await storage.exists(created.file_path)
        assert ctx.files.list()[0].id == created.id

    @pytest.mark.asyncio
    async def test_upload_validation(self, ctx, gateway, storage):
        customer_id = await open_customer(ctx, gateway)
        writes = gateway.writes()

        with pytest.raises(ValidationError):
            await ctx.files.upload(None, "a.txt", b"a")
        with pytest.raises(ValidationError):
            await ctx.files.upload(customer_id, "  ", b"a")
        with pytest.raises(ValidationError):
            await ctx.files.upload(customer_id, "a.txt", None)

        assert gateway.writes() == writes
        assert stored_files(storage) == []

    @pytest.mark.asyncio
    async def test_failed_metadata_insert_removes_blob(self, ctx, gateway, storage, presenter):
        customer_id = await open_customer(ctx, gateway)
        before = snapshot(ctx.files)

        gateway.fail("insert", "customer_files")
        with pytest.raises(RemoteWriteError):
            await ctx.files.upload(customer_id, "a.txt", b"a")

        assert stored_files(storage) == []
        assert snapshot(ctx.files) == before
        assert presenter.errors == ["檔案上傳失敗"]


class TestDownloadRemove:
    """下载、改名与删除测试"""

    @pytest.mark.asyncio
    async def test_download(self, ctx, gateway, presenter):
        customer_id = await open_customer(ctx, gateway)
        created = await ctx.files.upload(customer_id, "a.txt", b"content")

        assert await ctx.files.download(created.id) == b"content"
        assert presenter.successes[-1] == "檔案下載開始"

    @pytest.mark.asyncio
    async def test_download_missing_blob(self, ctx, gateway, storage, presenter):
        customer_id = await open_customer(ctx, gateway)
        created = await ctx.files.upload(customer_id, "a.txt", b"content")
        await storage.remove(created.file_path)

        with pytest.raises(RemoteReadError):
            await ctx.files.download(created.id)
        assert presenter.errors == ["檔案下載失敗"]

    @pytest.mark.asyncio
    async def test_rename(self, ctx, gateway):
        customer_id = await open_customer(ctx, gateway)
        created = await ctx.files.upload(customer_id, "a.txt", b"a")

        updated = await ctx.files.update(created.id, {"title": "報價單"})
        assert updated.title == "報價單"
        assert ctx.files.get(created.id).title == "報價單"

        with pytest.raises(ValidationError):
            await ctx.files.update(created.id, {"file_path": "elsewhere"})

    @pytest.mark.asyncio
    async def test_remove_deletes_blob_and_row(self, ctx, gateway, storage):
        customer_id = await open_customer(ctx, gateway)
        created = await ctx.files.upload(customer_id, "a.txt", b"a")

        await ctx.files.remove(created.id)

        assert ctx.files.list() == []
        assert await storage.exists(created.file_path) is False
        assert await gateway.select("customer_files", {"customer_id": customer_id}) == []

    @pytest.mark.asyncio
    async def test_remove_failure_keeps_row(self, ctx, gateway):
        customer_id = await open_customer(ctx, gateway)
        created = await ctx.files.upload(customer_id, "a.txt", b"a")
        before = snapshot(ctx.files)

        gateway.fail("delete", "customer_files")
        with pytest.raises(RemoteWriteError):
            await ctx.files.remove(created.id)

        assert snapshot(ctx.files) == before
