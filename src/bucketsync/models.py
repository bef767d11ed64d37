"""Data structures exchanged between scanner, lister, diff engine and executor."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class FileEntry:
    """Metadata for one node of the local tree."""

    relative_path: str
    is_directory: bool
    size_bytes: int
    modified_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "relative_path": self.relative_path,
            "is_directory": self.is_directory,
            "size_bytes": self.size_bytes,
            "modified_at": self.modified_at.isoformat(),
        }


@dataclass(frozen=True)
class ObjectEntry:
    """Metadata for one remote object, keyed relative to the sync prefix.

    Size and timestamp are optional because some listing responses omit them.
    """

    relative_key: str
    size_bytes: Optional[int] = None
    last_modified: Optional[datetime] = None


class SyncDirection(str, Enum):
    """Which side is authoritative when the two disagree."""
    MIRROR_TO_REMOTE = "mirror_to_remote"
    MIRROR_TO_LOCAL = "mirror_to_local"


class ActionKind(str, Enum):
    """Kinds of sync actions, declared in execution order."""
    UPLOAD = "upload"
    DOWNLOAD = "download"
    SKIP = "skip"
    DELETE_LOCAL = "delete_local"
    DELETE_REMOTE = "delete_remote"

    @property
    def order(self) -> int:
        return _KIND_ORDER[self]

    @property
    def is_delete(self) -> bool:
        return self in (ActionKind.DELETE_LOCAL, ActionKind.DELETE_REMOTE)


_KIND_ORDER = {kind: index for index, kind in enumerate(ActionKind)}


@dataclass(frozen=True)
class SyncAction:
    """A single planned operation on one relative key."""

    kind: ActionKind
    key: str

    @classmethod
    def upload(cls, key: str) -> "SyncAction":
        return cls(ActionKind.UPLOAD, key)

    @classmethod
    def download(cls, key: str) -> "SyncAction":
        return cls(ActionKind.DOWNLOAD, key)

    @classmethod
    def delete_local(cls, key: str) -> "SyncAction":
        return cls(ActionKind.DELETE_LOCAL, key)

    @classmethod
    def delete_remote(cls, key: str) -> "SyncAction":
        return cls(ActionKind.DELETE_REMOTE, key)

    @classmethod
    def skip(cls, key: str) -> "SyncAction":
        return cls(ActionKind.SKIP, key)

    def sort_key(self) -> Tuple[int, str]:
        return (self.kind.order, self.key)

    def __str__(self) -> str:
        return f"{self.kind.value}({self.key})"


class OutcomeStatus(str, Enum):
    """Result of running one action."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ActionOutcome:
    """Outcome of one action in an execution run."""

    action: SyncAction
    status: OutcomeStatus
    reason: Optional[str] = None
    attempts: int = 0

    @property
    def key(self) -> str:
        return self.action.key


@dataclass
class ExecutionReport:
    """Per-action results of an execution run, in input order."""

    outcomes: List[ActionOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[str]:
        return [o.key for o in self.outcomes if o.status == OutcomeStatus.SUCCEEDED]

    @property
    def failed(self) -> List[Tuple[str, str]]:
        return [(o.key, o.reason or "") for o in self.outcomes if o.status == OutcomeStatus.FAILED]

    @property
    def skipped(self) -> List[str]:
        return [o.key for o in self.outcomes if o.status == OutcomeStatus.SKIPPED]

    @property
    def total_actions(self) -> int:
        return len(self.outcomes)

    @property
    def success_rate(self) -> float:
        """Succeeded actions as a percentage of attempted ones."""
        attempted = len(self.succeeded) + len(self.failed)
        if attempted == 0:
            return 0.0
        return (len(self.succeeded) / attempted) * 100

    @property
    def has_failures(self) -> bool:
        return any(o.status == OutcomeStatus.FAILED for o in self.outcomes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "failed": [list(item) for item in self.failed],
            "skipped": self.skipped,
        }
