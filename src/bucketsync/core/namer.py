"""Content-addressed file naming and the hash-copy tool built on it."""

import asyncio
import base64
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Iterator, List, Optional, Tuple, Union

from blake3 import blake3

from ..errors import BucketSyncError, NotFoundError
from ..local.filesystem import DEFAULT_CHUNK_SIZE, copy_stream, move_to_trash, write_atomically
from ..utils.logging import get_logger, log_async_execution_time


PathLike = Union[str, os.PathLike]

DIGEST_SIZE = 32

_RFC4648 = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_CROCKFORD = "0123456789abcdefghjkmnpqrstvwxyz"
_TO_CROCKFORD = str.maketrans(_RFC4648, _CROCKFORD)


def encode_crockford(digest: bytes) -> str:
    """Lowercase Crockford base32 without padding."""
    return base64.b32encode(digest).decode("ascii").rstrip("=").translate(_TO_CROCKFORD)


def digest_stream(stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """BLAKE3 hash of a byte stream read in bounded chunks, as its encoded name."""
    hasher = blake3()
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        hasher.update(chunk)
    return encode_crockford(hasher.digest(length=DIGEST_SIZE))


def _digest_file(path: PathLike, chunk_size: int) -> str:
    with open(path, "rb") as stream:
        return digest_stream(stream, chunk_size)


async def name_for_file(path: PathLike, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Content name of the file at ``path``; equal content gives an equal name."""
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, _digest_file, path, chunk_size)


def file_extension(path: PathLike) -> str:
    """Lowercased extension without the dot, or ``""``."""
    return Path(path).suffix.lower().lstrip(".")


async def target_name(path: PathLike, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Content name plus the lowercased extension, e.g. ``<hash>.jpg``."""
    name = await name_for_file(path, chunk_size)
    extension = file_extension(path)
    return f"{name}.{extension}" if extension else name


@dataclass
class CopyReport:
    """Per-file results of a hash-copy run."""

    copied: List[Tuple[str, str]] = field(default_factory=list)
    duplicates: List[Tuple[str, str]] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    moved_to_trash: List[str] = field(default_factory=list)

    @property
    def total_files(self) -> int:
        return len(self.copied) + len(self.duplicates) + len(self.failed)

    def to_dict(self) -> dict:
        return {
            "copied": [list(item) for item in self.copied],
            "duplicates": [list(item) for item in self.duplicates],
            "failed": [list(item) for item in self.failed],
            "moved_to_trash": self.moved_to_trash,
        }


class HashCopier:
    """Copies files into a flat directory under their content names.

    Hidden files and directories are skipped. A target that already exists
    holds the same content, so the file is reported as a duplicate.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        trash_func: Optional[Callable[[str], None]] = None
    ):
        self.chunk_size = chunk_size
        self.trash_func = trash_func
        self.logger = get_logger(self.__class__.__name__)

    def iter_source_files(
        self,
        source: Path,
        extensions: Optional[Iterable[str]] = None,
        exclude_dir: Optional[Path] = None
    ) -> Iterator[Path]:
        """Yield non-hidden files under ``source`` matching ``extensions``."""
        wanted = {e.lower().lstrip(".") for e in extensions} if extensions else None
        for dirpath, dirnames, filenames in os.walk(source):
            dirnames[:] = sorted(
                d for d in dirnames
                if not d.startswith(".") and (exclude_dir is None or (Path(dirpath) / d).resolve() != exclude_dir)
            )
            for filename in sorted(filenames):
                if filename.startswith("."):
                    continue
                path = Path(dirpath) / filename
                if wanted is not None and file_extension(path) not in wanted:
                    continue
                yield path

    def _copy_to(self, source: Path, target: Path):
        with open(source, "rb") as stream:
            write_atomically(target, lambda sink: copy_stream(stream, sink, self.chunk_size))

    @log_async_execution_time
    async def copy_files(
        self,
        source: PathLike,
        target: PathLike,
        extensions: Optional[Iterable[str]] = None,
        move_after_copy: bool = False
    ) -> CopyReport:
        """Copy every matching file from ``source`` into ``target``.

        Args:
            source: Directory walked recursively
            target: Flat output directory, created if needed
            extensions: Extensions to include (case-insensitive); all if empty
            move_after_copy: Move each copied source file to the trash

        Returns:
            CopyReport; failures of single files do not stop the run

        Raises:
            NotFoundError: If ``source`` is not a directory
            BucketSyncError: If ``source`` and ``target`` are the same directory
        """
        source = Path(source).expanduser()
        target = Path(target).expanduser()

        if not source.is_dir():
            raise NotFoundError(f"Source directory does not exist: {source}")
        if target.exists() and source.resolve() == target.resolve():
            raise BucketSyncError("Source and target directories must differ")

        target.mkdir(parents=True, exist_ok=True)
        report = CopyReport()
        loop = asyncio.get_event_loop()

        self.logger.info("Hash copy started", source=str(source), target=str(target))

        for path in self.iter_source_files(source, extensions, exclude_dir=target.resolve()):
            try:
                destination = target / await target_name(path, self.chunk_size)
                if destination.exists():
                    report.duplicates.append((str(path), destination.name))
                    self.logger.debug("Already copied", source=str(path), target=destination.name)
                else:
                    await loop.run_in_executor(None, self._copy_to, path, destination)
                    report.copied.append((str(path), destination.name))
                    if move_after_copy:
                        await loop.run_in_executor(None, move_to_trash, path, self.trash_func)
                        report.moved_to_trash.append(str(path))
            except OSError as e:
                report.failed.append((str(path), str(e)))
                self.logger.warning("Hash copy failed for file", source=str(path), error=str(e))

        self.logger.info(
            "Hash copy completed",
            copied=len(report.copied),
            duplicates=len(report.duplicates),
            failed=len(report.failed)
        )
        return report
