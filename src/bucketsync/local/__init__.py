"""Local filesystem access package."""

from .filesystem import (
    list_directory,
    copy_stream,
    write_atomically,
    move_to_trash
)
from .scanner import LocalTreeScanner, canonical_key, scan

__all__ = [
    "list_directory",
    "copy_stream",
    "write_atomically",
    "move_to_trash",
    "LocalTreeScanner",
    "canonical_key",
    "scan",
]
