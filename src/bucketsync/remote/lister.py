"""Paginated remote listing that yields prefix-relative object metadata."""

import asyncio
from typing import Dict, Iterable, List, Optional

from .base import ObjectStore
from ..models import ObjectEntry
from ..errors import RemoteListError, SyncCancelledError
from ..utils.logging import get_logger


DEFAULT_PAGE_DELAY = 0.1


def normalize_prefix(remote_dir: str) -> str:
    """Turn a user supplied remote directory into a listing prefix.

    ``"/photos\\2024"`` becomes ``"photos/2024/"``; an empty directory stays
    empty so that the whole bucket is listed.
    """
    prefix = (remote_dir or "").replace("\\", "/").lstrip("/")
    if prefix and not prefix.endswith("/"):
        prefix += "/"
    return prefix


class RemoteObjectLister:
    """Collects every object under a prefix across continuation tokens."""

    def __init__(self, page_delay: float = DEFAULT_PAGE_DELAY, exclude_prefixes: Iterable[str] = ()):
        """Initialize the lister.

        Args:
            page_delay: Seconds to sleep between pages
            exclude_prefixes: Relative key prefixes left out of results
        """
        self.page_delay = page_delay
        self.exclude_prefixes = tuple(p for p in exclude_prefixes if p)
        self.logger = get_logger(self.__class__.__name__)

    def _relative_key(self, key: str, prefix: str) -> Optional[str]:
        if not key.startswith(prefix):
            return None
        relative = key[len(prefix):]
        if not relative or relative.endswith("/"):
            return None
        if relative.startswith(self.exclude_prefixes):
            return None
        return relative

    async def list(
        self,
        store: ObjectStore,
        bucket: str,
        prefix: str = "",
        continuation_token: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> Dict[str, ObjectEntry]:
        """List all objects under ``prefix``.

        Args:
            store: Object store to list
            bucket: Bucket name
            prefix: Key prefix, stripped from returned keys
            continuation_token: Resume from this token instead of the start
            cancel_event: Checked between pages

        Returns:
            Mapping of relative key to ObjectEntry

        Raises:
            RemoteListError: If any page fails; carries the resume token
            SyncCancelledError: If ``cancel_event`` is set between pages
        """
        objects: Dict[str, ObjectEntry] = {}
        token = continuation_token
        pages = 0

        self.logger.info("Listing remote objects", bucket=bucket, prefix=prefix, resumed=token is not None)

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise SyncCancelledError("Remote listing cancelled", last_token=token)

            try:
                page = await store.list_objects(bucket, prefix, token)
            except Exception as e:
                self.logger.error(
                    "Listing page failed",
                    bucket=bucket,
                    prefix=prefix,
                    page=pages + 1,
                    error=str(e)
                )
                raise RemoteListError(f"Listing {bucket}/{prefix} failed: {e}", last_token=token) from e

            pages += 1
            for obj in page.objects:
                relative = self._relative_key(obj.key, prefix)
                if relative is None:
                    continue
                objects[relative] = ObjectEntry(
                    relative_key=relative,
                    size_bytes=obj.size,
                    last_modified=obj.last_modified,
                )

            if not page.is_truncated:
                break

            if not page.next_continuation_token:
                raise RemoteListError("Truncated page without continuation token", last_token=token)
            token = page.next_continuation_token
            if self.page_delay > 0:
                await asyncio.sleep(self.page_delay)

        self.logger.info("Remote listing completed", bucket=bucket, prefix=prefix, pages=pages, objects=len(objects))
        return objects

    async def find_empty_objects(self, store: ObjectStore, bucket: str, prefix: str = "") -> List[str]:
        """Return sorted relative keys of zero-byte objects under ``prefix``."""
        objects = await self.list(store, bucket, prefix)
        return sorted(key for key, entry in objects.items() if entry.size_bytes == 0)
