"""Exception hierarchy shared by the sync components."""

from typing import Optional


class BucketSyncError(Exception):
    """Base exception for bucketsync errors."""
    pass


class NotFoundError(BucketSyncError):
    """Raised when a local root, plan or store instance does not exist."""
    pass


class SubtreePermissionError(BucketSyncError, PermissionError):
    """Raised when a directory below the scan root cannot be read.

    The scanner records these and keeps going; they never abort a scan.
    """

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot read directory {path}: {reason}")
        self.path = path
        self.reason = reason


class RemoteListError(BucketSyncError):
    """Raised when a page of a remote listing fails.

    ``last_token`` is the continuation token of the last page that was
    consumed successfully (``None`` if the first page failed). Passing it back
    to the lister resumes the listing instead of restarting it.
    """

    def __init__(self, message: str, last_token: Optional[str] = None):
        super().__init__(message)
        self.last_token = last_token


class SyncCancelledError(BucketSyncError):
    """Raised when a listing is aborted through its cancel event."""

    def __init__(self, message: str, last_token: Optional[str] = None):
        super().__init__(message)
        self.last_token = last_token


class TransientStoreError(BucketSyncError):
    """Raised by object stores for failures worth one retry (network, timeout)."""
    pass


class TransferError(BucketSyncError):
    """Failure of a single sync action, recorded in the execution report."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"{key}: {reason}")
        self.key = key
        self.reason = reason


class ConfigurationError(BucketSyncError):
    """Raised when configuration or import files cannot be loaded."""
    pass


class ConfigValidationError(BucketSyncError):
    """Persisted document failed schema validation."""

    def __init__(self, document_key: str, reason: str):
        super().__init__(f"Invalid document '{document_key}': {reason}")
        self.document_key = document_key
        self.reason = reason


class PlanConflictError(BucketSyncError, ValueError):
    """Raised when adding a record whose id already exists."""
    pass


class CacheMiss(BucketSyncError):
    """Cache lookup found nothing for the requested key."""
    pass
