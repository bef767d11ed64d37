"""Tests for paginated remote listing."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from bucketsync.errors import RemoteListError, SyncCancelledError
from bucketsync.remote.base import ListObjectsPage, RemoteObject
from bucketsync.remote.lister import RemoteObjectLister, normalize_prefix

from conftest import InMemoryObjectStore


def fill(store, keys):
    for key in keys:
        store.put(key, key.encode())
    return store


KEYS = [f"photos/{name}" for name in ("a.jpg", "b.jpg", "c.jpg", "d/e.jpg", "f.jpg")]


class TestRemoteObjectLister:
    """Test listing across continuation tokens."""

    @pytest.mark.asyncio
    async def test_paginated_equals_unpaginated(self):
        lister = RemoteObjectLister(page_delay=0)
        paged = fill(InMemoryObjectStore(page_size=2), KEYS)
        single = fill(InMemoryObjectStore(page_size=1000), KEYS)

        paged_result = await lister.list(paged, "bucket", "photos/")
        single_result = await lister.list(single, "bucket", "photos/")

        assert paged_result == single_result
        assert set(paged_result) == {"a.jpg", "b.jpg", "c.jpg", "d/e.jpg", "f.jpg"}
        assert len(paged.list_calls) == 3
        assert len(single.list_calls) == 1

    @pytest.mark.asyncio
    async def test_prefix_stripped_and_sizes_kept(self, store):
        fill(store, ["docs/readme.md"])

        result = await RemoteObjectLister(page_delay=0).list(store, "bucket", "docs/")

        entry = result["readme.md"]
        assert entry.relative_key == "readme.md"
        assert entry.size_bytes == len(b"docs/readme.md")
        assert entry.last_modified is not None

    @pytest.mark.asyncio
    async def test_prefix_key_and_directory_markers_dropped(self, store):
        fill(store, ["docs/", "docs/sub/", "docs/sub/file.txt", "docs/top.txt"])

        result = await RemoteObjectLister(page_delay=0).list(store, "bucket", "docs/")

        assert set(result) == {"sub/file.txt", "top.txt"}

    @pytest.mark.asyncio
    async def test_excluded_prefixes_dropped(self, store):
        fill(store, [".bucketsync-trash/20240101/x.txt", "keep.txt"])

        lister = RemoteObjectLister(page_delay=0, exclude_prefixes=[".bucketsync-trash/"])
        result = await lister.list(store, "bucket", "")

        assert set(result) == {"keep.txt"}

    @pytest.mark.asyncio
    async def test_failure_carries_resume_token(self, store):
        fill(store, KEYS)
        store.list_failures[2] = ConnectionError("network down")
        lister = RemoteObjectLister(page_delay=0)

        with pytest.raises(RemoteListError) as exc_info:
            await lister.list(store, "bucket", "photos/")

        assert exc_info.value.last_token == "2"

        resumed = await lister.list(store, "bucket", "photos/", continuation_token=exc_info.value.last_token)
        assert set(resumed) == {"c.jpg", "d/e.jpg", "f.jpg"}
        assert store.list_calls[-2:] == ["2", "4"]

    @pytest.mark.asyncio
    async def test_first_page_failure_has_no_token(self, store):
        store.list_failures[1] = TimeoutError("slow")

        with pytest.raises(RemoteListError) as exc_info:
            await RemoteObjectLister(page_delay=0).list(store, "bucket", "")

        assert exc_info.value.last_token is None

    @pytest.mark.asyncio
    async def test_truncated_page_without_token_fails(self):
        store = AsyncMock()
        store.list_objects.return_value = ListObjectsPage(
            objects=[RemoteObject(key="a")], is_truncated=True, next_continuation_token=None
        )

        with pytest.raises(RemoteListError):
            await RemoteObjectLister(page_delay=0).list(store, "bucket", "")

    @pytest.mark.asyncio
    async def test_throttle_between_pages(self, store):
        fill(store, KEYS)
        lister = RemoteObjectLister(page_delay=0.25)

        with patch("bucketsync.remote.lister.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await lister.list(store, "bucket", "photos/")

        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.25)

    @pytest.mark.asyncio
    async def test_cancel_between_pages(self, store):
        fill(store, KEYS)
        cancel_event = asyncio.Event()
        original = store.list_objects

        async def list_then_cancel(bucket, prefix="", continuation_token=None):
            page = await original(bucket, prefix, continuation_token)
            cancel_event.set()
            return page

        store.list_objects = list_then_cancel

        with pytest.raises(SyncCancelledError) as exc_info:
            await RemoteObjectLister(page_delay=0).list(store, "bucket", "photos/", cancel_event=cancel_event)

        assert exc_info.value.last_token == "2"
        assert len(store.list_calls) == 1

    @pytest.mark.asyncio
    async def test_find_empty_objects(self, store):
        store.put("data/empty.txt", b"")
        store.put("data/full.txt", b"content")
        store.put("data/sub/zero.bin", b"")

        keys = await RemoteObjectLister(page_delay=0).find_empty_objects(store, "bucket", "data/")

        assert keys == ["empty.txt", "sub/zero.bin"]


class TestNormalizePrefix:
    """Test remote directory normalisation."""

    def test_empty_stays_empty(self):
        assert normalize_prefix("") == ""

    def test_trailing_slash_added(self):
        assert normalize_prefix("photos") == "photos/"

    def test_leading_slash_and_backslashes(self):
        assert normalize_prefix("/photos\\2024") == "photos/2024/"

    def test_existing_trailing_slash_kept(self):
        assert normalize_prefix("photos/") == "photos/"
