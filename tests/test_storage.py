"""Object storage tests."""

import os
import time

import pytest

from parliament.core.exceptions import (
    InvalidObjectPathError,
    ObjectExistsError,
    ObjectNotFoundError,
)
from parliament.services import storage as storage_module
from parliament.services.storage import StorageService

pytestmark = pytest.mark.asyncio


@pytest.fixture
def storage(tmp_path) -> StorageService:
    return StorageService(root=tmp_path)


class TestStorage:
    async def test_upload_and_download(self, storage):
        stored = await storage.upload("minute_book", "holdings/resolutions/r1.pdf", b"%PDF-1.4")

        assert stored.size == 8
        assert stored.name == "holdings/resolutions/r1.pdf"
        assert await storage.exists("minute_book", "holdings/resolutions/r1.pdf")
        assert await storage.download("minute_book", "holdings/resolutions/r1.pdf") == b"%PDF-1.4"

    async def test_download_missing(self, storage):
        with pytest.raises(ObjectNotFoundError):
            await storage.download("minute_book", "nope.pdf")

    async def test_upsert_disabled_refuses_overwrite(self, storage):
        await storage.upload("minute_book", "a.pdf", b"one")
        with pytest.raises(ObjectExistsError):
            await storage.upload("minute_book", "a.pdf", b"two", upsert=False)

        await storage.upload("minute_book", "a.pdf", b"two")
        assert await storage.download("minute_book", "a.pdf") == b"two"

    async def test_traversal_rejected(self, storage):
        with pytest.raises(InvalidObjectPathError):
            await storage.upload("minute_book", "../escape.pdf", b"x")
        assert not await storage.exists("minute_book", "../escape.pdf")

    async def test_list_newest_first(self, storage):
        await storage.upload("minute_book", "holdings/resolutions/old.pdf", b"1")
        await storage.upload("minute_book", "holdings/resolutions/new.pdf", b"2")
        past = time.time() - 3600
        os.utime(storage.root / "minute_book/holdings/resolutions/old.pdf", (past, past))

        names = [obj.name for obj in await storage.list_objects("minute_book")]
        assert names == ["holdings/resolutions/new.pdf", "holdings/resolutions/old.pdf"]
        assert await storage.list_objects("empty_bucket") == []

    async def test_delete(self, storage):
        await storage.upload("minute_book", "a.pdf", b"1")
        assert await storage.delete("minute_book", "a.pdf")
        assert not await storage.delete("minute_book", "a.pdf")

    async def test_listing_walks_in_threadpool(self, storage, monkeypatch):
        await storage.upload("minute_book", "holdings/resolutions/r1.pdf", b"1")
        offloaded = []
        original = storage_module.run_in_threadpool

        async def recording(func, *args):
            offloaded.append(func.__name__)
            return await original(func, *args)

        monkeypatch.setattr(storage_module, "run_in_threadpool", recording)

        objects = await storage.list_objects("minute_book")

        assert offloaded == ["_scan"]
        assert [obj.name for obj in objects] == ["holdings/resolutions/r1.pdf"]
