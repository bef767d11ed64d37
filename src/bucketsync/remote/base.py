"""Object store interface and the listing wire shape shared by all stores."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, BinaryIO, Dict, List, Optional

from ..errors import TransientStoreError
from ..utils.logging import get_logger


@dataclass
class RemoteObject:
    """One entry of a listing page, with the full object key."""

    key: str
    size: Optional[int] = None
    last_modified: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "size": self.size,
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
        }


@dataclass
class ListObjectsPage:
    """One page of a paginated listing."""

    objects: List[RemoteObject] = field(default_factory=list)
    is_truncated: bool = False
    next_continuation_token: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "objects": [obj.to_dict() for obj in self.objects],
            "is_truncated": self.is_truncated,
            "next_continuation_token": self.next_continuation_token,
        }


# Failures the execution controller retries once
TRANSIENT_ERRORS = (
    TransientStoreError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)


def is_transient(error: BaseException) -> bool:
    """Whether ``error`` is a network or timeout failure worth one retry."""
    return isinstance(error, TRANSIENT_ERRORS)


class ObjectStore(ABC):
    """Abstract S3-compatible object store.

    Implementations are async; blocking SDKs run their calls in an executor.
    """

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        self.logger = get_logger(self.__class__.__name__)

    @abstractmethod
    async def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        continuation_token: Optional[str] = None
    ) -> ListObjectsPage:
        """List one page of objects under ``prefix``.

        Args:
            bucket: Bucket name
            prefix: Key prefix to list
            continuation_token: Token from the previous page, if any

        Returns:
            ListObjectsPage with the page contents and truncation state
        """
        pass

    @abstractmethod
    async def upload(
        self,
        bucket: str,
        key: str,
        source: BinaryIO,
        content_type: Optional[str] = None
    ) -> None:
        """Stream ``source`` into the object at ``key``."""
        pass

    @abstractmethod
    async def download(self, bucket: str, key: str, sink: BinaryIO) -> None:
        """Stream the object at ``key`` into ``sink``."""
        pass

    @abstractmethod
    async def copy_object(self, bucket: str, source_key: str, target_key: str) -> None:
        """Server-side copy within a bucket."""
        pass

    @abstractmethod
    async def delete_object(self, bucket: str, key: str) -> None:
        """Delete the object at ``key``."""
        pass

    async def list_buckets(self) -> List[str]:
        """List bucket names visible to the credentials."""
        raise NotImplementedError(f"{self.__class__.__name__} cannot list buckets")

    def describe(self) -> Dict[str, Any]:
        return {
            "store_type": self.__class__.__name__,
            "endpoint": self.endpoint,
        }
