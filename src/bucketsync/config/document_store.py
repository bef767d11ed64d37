"""Key-value JSON document store backed by a single file."""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..errors import ConfigurationError
from ..utils.logging import get_logger


class JsonDocumentStore:
    """Holds JSON documents under fixed keys in one file.

    The file is read lazily on first access. Writes stay in memory until
    :meth:`save`, which replaces the file atomically. A corrupt file is
    treated as empty so that callers fall back to defaults.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self._documents: Optional[Dict[str, Any]] = None
        self.logger = get_logger(self.__class__.__name__)

    def _load(self) -> Dict[str, Any]:
        if self._documents is not None:
            return self._documents

        if not self.path.exists():
            self._documents = {}
            return self._documents

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning("Unreadable document file, starting empty", path=str(self.path), error=str(e))
            data = {}

        if not isinstance(data, dict):
            self.logger.warning("Document file is not an object, starting empty", path=str(self.path))
            data = {}

        self._documents = data
        return self._documents

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._load()[key] = value

    def delete(self, key: str) -> bool:
        return self._load().pop(key, None) is not None

    def keys(self) -> List[str]:
        return list(self._load().keys())

    def save(self) -> None:
        """Write all documents to disk."""
        documents = self._load()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_name(self.path.name + ".tmp")

        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(documents, f, indent=2, ensure_ascii=False, default=str)
            os.replace(temp_path, self.path)
        except OSError as e:
            raise ConfigurationError(f"Failed to save {self.path}: {e}")

        self.logger.debug("Documents saved", path=str(self.path), keys=list(documents.keys()))

    def reload(self) -> None:
        """Drop in-memory state so the next access re-reads the file."""
        self._documents = None
