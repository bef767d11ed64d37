"""Recursive local tree scanner producing relative-path keyed metadata maps."""

import asyncio
import os
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..models import FileEntry
from ..errors import NotFoundError, SubtreePermissionError
from ..utils.logging import get_logger
from .filesystem import list_directory


def canonical_key(*parts: str) -> str:
    """Join path parts with ``/`` and convert any host separator to ``/``."""
    joined = "/".join(part for part in parts if part)
    return joined.replace("\\", "/")


class LocalTreeScanner:
    """Walks a directory tree and returns one entry per non-directory node.

    Symlinks are not followed. Unreadable subtrees are logged, recorded in
    ``skipped`` and left out; they never abort the scan. When two nodes map
    to the same key the one visited later wins.
    """

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)
        self.skipped: List[SubtreePermissionError] = []

    async def scan(self, root: Union[str, os.PathLike]) -> Dict[str, FileEntry]:
        """Scan ``root`` recursively.

        Args:
            root: Directory to scan

        Returns:
            Mapping of ``/``-separated relative path to FileEntry

        Raises:
            NotFoundError: If ``root`` does not exist or is not a directory
        """
        root_path = Path(root)
        if not root_path.exists():
            raise NotFoundError(f"Local root does not exist: {root_path}")
        if not root_path.is_dir():
            raise NotFoundError(f"Local root is not a directory: {root_path}")

        self.skipped = []
        files: Dict[str, FileEntry] = {}

        self.logger.info("Scanning local tree", root=str(root_path))
        await self._scan_directory(root_path, "", files)
        self.logger.info(
            "Local scan completed",
            root=str(root_path),
            files=len(files),
            skipped_subtrees=len(self.skipped)
        )
        return files

    async def _scan_directory(self, directory: Path, prefix: str, files: Dict[str, FileEntry]):
        loop = asyncio.get_event_loop()
        try:
            entries = await loop.run_in_executor(None, list_directory, directory)
        except PermissionError as e:
            error = SubtreePermissionError(str(directory), str(e))
            self.skipped.append(error)
            self.logger.warning("Skipping unreadable directory", path=str(directory), error=str(e))
            return
        except NotFoundError:
            self.logger.warning("Directory vanished during scan", path=str(directory))
            return

        for entry in entries:
            key = canonical_key(prefix, entry.relative_path)
            if entry.is_directory:
                await self._scan_directory(directory / entry.relative_path, key, files)
                continue

            if key in files:
                self.logger.warning("Duplicate key, later entry wins", key=key)
            files[key] = FileEntry(
                relative_path=key,
                is_directory=False,
                size_bytes=entry.size_bytes,
                modified_at=entry.modified_at,
            )


async def scan(root: Union[str, os.PathLike], scanner: Optional[LocalTreeScanner] = None) -> Dict[str, FileEntry]:
    """Convenience wrapper around :meth:`LocalTreeScanner.scan`."""
    return await (scanner or LocalTreeScanner()).scan(root)
