"""Local filesystem primitives: non-recursive listing, streaming copies and trash."""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional, Union

from send2trash import send2trash

from ..models import FileEntry
from ..errors import NotFoundError
from ..utils.logging import get_logger


logger = get_logger("local.filesystem")

DEFAULT_CHUNK_SIZE = 64 * 1024

PathLike = Union[str, os.PathLike]


def list_directory(path: PathLike) -> List[FileEntry]:
    """List the direct children of ``path`` sorted by name.

    ``relative_path`` of each entry is the bare entry name; callers compose
    deeper paths. Symlinks are reported as leaf files with their own
    ``lstat`` size so that traversal never follows them.

    Raises:
        NotFoundError: if ``path`` does not exist or is not a directory
        PermissionError: if ``path`` cannot be read
    """
    path = Path(path)
    if not path.exists():
        raise NotFoundError(f"Directory does not exist: {path}")
    if not path.is_dir():
        raise NotFoundError(f"Path is not a directory: {path}")

    entries = []
    with os.scandir(path) as iterator:
        for entry in iterator:
            stat = entry.stat(follow_symlinks=False)
            is_directory = entry.is_dir(follow_symlinks=False)
            entries.append(FileEntry(
                relative_path=entry.name,
                is_directory=is_directory,
                size_bytes=0 if is_directory else stat.st_size,
                modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            ))

    entries.sort(key=lambda e: e.relative_path)
    return entries


def copy_stream(source: BinaryIO, sink: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """Copy ``source`` to ``sink`` in bounded chunks, returning bytes written."""
    written = 0
    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            break
        sink.write(chunk)
        written += len(chunk)
    return written


def write_atomically(
    target: PathLike,
    writer: Callable[[BinaryIO], None],
    suffix: str = ".part"
) -> None:
    """Write ``target`` through a sibling temp file, replacing it only on success."""
    target = Path(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    temp_path = target.with_name(target.name + suffix)
    try:
        with open(temp_path, "wb") as sink:
            writer(sink)
        os.replace(temp_path, target)
    except BaseException:
        if temp_path.exists():
            temp_path.unlink()
        raise


def move_to_trash(path: PathLike, trash_func: Optional[Callable[[str], None]] = None) -> None:
    """Move ``path`` to the OS trash / recycle bin.

    Files are never deleted permanently. A missing path is treated as
    already removed.
    """
    path = Path(path)
    if not path.exists() and not path.is_symlink():
        logger.debug("Path already gone, nothing to trash", path=str(path))
        return

    (trash_func or send2trash)(str(path))
    logger.info("Moved to trash", path=str(path))
