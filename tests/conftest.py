"""Shared fixtures: an in-memory object store, local trees and test settings."""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Tuple

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bucketsync.config.settings import (
    BucketSyncSettings,
    ListingSettings,
    StorageSettings,
    TransferSettings,
)
from bucketsync.errors import NotFoundError
from bucketsync.remote.base import ListObjectsPage, ObjectStore, RemoteObject
from bucketsync.utils.logging import setup_logging


class InMemoryObjectStore(ObjectStore):
    """Object store keeping objects in a dict, with failure injection.

    ``fail(op, key, *errors)`` queues exceptions raised by the next calls of
    ``op`` for ``key``. ``list_failures`` maps a 1-based list call number
    to the exception that call raises.
    """

    def __init__(self, page_size: int = 1000, report_sizes: bool = True, endpoint: str = "memory://test"):
        super().__init__(endpoint)
        self.page_size = page_size
        self.report_sizes = report_sizes
        self.objects: Dict[str, bytes] = {}
        self.modified: Dict[str, datetime] = {}
        self.failures: Dict[Tuple[str, str], List[Exception]] = {}
        self.list_failures: Dict[int, Exception] = {}
        self.list_calls: List[Optional[str]] = []
        self.events: List[Tuple[str, str]] = []

    def put(self, key: str, data: bytes):
        self.objects[key] = data
        self.modified[key] = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def fail(self, op: str, key: str, *errors: Exception):
        self.failures.setdefault((op, key), []).extend(errors)

    def _maybe_fail(self, op: str, key: str):
        pending = self.failures.get((op, key))
        if pending:
            raise pending.pop(0)

    async def list_objects(self, bucket, prefix="", continuation_token=None):
        self.list_calls.append(continuation_token)
        failure = self.list_failures.get(len(self.list_calls))
        if failure is not None:
            raise failure

        keys = sorted(k for k in self.objects if k.startswith(prefix))
        offset = int(continuation_token) if continuation_token else 0
        chunk = keys[offset:offset + self.page_size]
        next_offset = offset + len(chunk)
        truncated = next_offset < len(keys)

        return ListObjectsPage(
            objects=[
                RemoteObject(
                    key=k,
                    size=len(self.objects[k]) if self.report_sizes else None,
                    last_modified=self.modified.get(k),
                )
                for k in chunk
            ],
            is_truncated=truncated,
            next_continuation_token=str(next_offset) if truncated else None,
        )

    async def upload(self, bucket, key, source: BinaryIO, content_type=None):
        self.events.append(("start", key))
        self._maybe_fail("upload", key)
        self.put(key, source.read())
        self.events.append(("end", key))

    async def download(self, bucket, key, sink: BinaryIO):
        self.events.append(("start", key))
        self._maybe_fail("download", key)
        if key not in self.objects:
            raise NotFoundError(f"No such key: {key}")
        sink.write(self.objects[key])
        self.events.append(("end", key))

    async def copy_object(self, bucket, source_key, target_key):
        self._maybe_fail("copy", source_key)
        if source_key not in self.objects:
            raise NotFoundError(f"No such key: {source_key}")
        self.put(target_key, self.objects[source_key])

    async def delete_object(self, bucket, key):
        self._maybe_fail("delete", key)
        self.objects.pop(key, None)

    async def list_buckets(self):
        return ["test-bucket"]


def make_tree(root: Path, files: Dict[str, bytes]) -> Path:
    """Create ``files`` (relative path -> content) under ``root``."""
    for relative, content in files.items():
        path = root.joinpath(*relative.split("/"))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return root


class RecordingTrash:
    """Stand-in for the OS trash that records and removes paths."""

    def __init__(self):
        self.paths: List[str] = []

    def __call__(self, path: str):
        self.paths.append(path)
        os.remove(path)


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    setup_logging(log_level="INFO", log_format="console")


@pytest.fixture
def store():
    return InMemoryObjectStore(page_size=2)


@pytest.fixture
def trash():
    return RecordingTrash()


@pytest.fixture
def test_settings(tmp_path):
    return BucketSyncSettings(
        storage=StorageSettings(data_dir=str(tmp_path / "data")),
        listing=ListingSettings(page_delay_seconds=0),
        transfer=TransferSettings(retry_delay_seconds=0),
    )
