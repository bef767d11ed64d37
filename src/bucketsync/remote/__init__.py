"""Remote object store access package."""

from .base import (
    ObjectStore,
    RemoteObject,
    ListObjectsPage,
    TRANSIENT_ERRORS,
    is_transient
)
from .s3 import S3ObjectStore
from .lister import RemoteObjectLister, normalize_prefix
from .factory import ObjectStoreFactory

__all__ = [
    "ObjectStore",
    "RemoteObject",
    "ListObjectsPage",
    "TRANSIENT_ERRORS",
    "is_transient",
    "S3ObjectStore",
    "RemoteObjectLister",
    "normalize_prefix",
    "ObjectStoreFactory",
]
