"""Core sync logic package."""

from .diff_engine import DiffEngine, summarize
from .executor import ExecutionController, SyncActionRunner
from .namer import (
    CopyReport,
    HashCopier,
    digest_stream,
    encode_crockford,
    name_for_file,
    target_name
)
from .sync_engine import SyncEngine, SyncResult, SyncStats, SyncEngineError

__all__ = [
    "DiffEngine",
    "summarize",
    "ExecutionController",
    "SyncActionRunner",
    "CopyReport",
    "HashCopier",
    "digest_stream",
    "encode_crockford",
    "name_for_file",
    "target_name",
    "SyncEngine",
    "SyncResult",
    "SyncStats",
    "SyncEngineError",
]
