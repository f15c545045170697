"""
File store infrastructure for repokeeper.

Provides JSON file persistence with:
- Atomic writes (write to temp, then rename)
- Pretty formatting for human readability
- Thread-safe operations
- Automatic parent directory creation

The repository registry keeps two keys here: "path_root" and
"local_repositories".
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class FileStore:
    """
    JSON file persistence with atomic writes.

    Example:
        store = FileStore(Path("~/.repokeeper/db.json"))
        store.set("path_root", "/home/me/projects")
        root = store.get("path_root")
    """

    def __init__(self, path: Path, auto_create: bool = True):
        """
        Initialize FileStore.

        Args:
            path: Path to JSON file
            auto_create: Create file and parent directories if they don't exist
        """
        self.path = Path(path).expanduser().resolve()
        self._lock = threading.Lock()
        self._cache: Optional[Dict[str, Any]] = None

        if auto_create:
            self._ensure_exists()

    def _ensure_exists(self) -> None:
        """Create file and parent directories if needed."""
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)

        if not self.path.exists():
            self._write_atomic({})

    def _write_atomic(self, data: Dict[str, Any]) -> None:
        """Write data atomically using temp file and rename."""
        fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp"
        )

        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.write('\n')  # Trailing newline

            os.replace(temp_path, self.path)

        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def _load(self) -> Dict[str, Any]:
        """Read the file into the cache. Caller holds the lock."""
        if self._cache is not None:
            return self._cache

        try:
            if self.path.exists():
                with open(self.path, 'r') as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    self._cache = data
                    return self._cache
                logger.warning(f"Ignoring {self.path}: top level is not an object")
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Error reading {self.path}: {e}")

        self._cache = {}
        return self._cache

    def read(self) -> Dict[str, Any]:
        """
        Read entire store.

        Returns:
            Dictionary with all stored data
        """
        with self._lock:
            return dict(self._load())

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get single value.

        Args:
            key: Key to retrieve
            default: Default value if not found

        Returns:
            Value or default
        """
        return self.read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        """
        Set single value.

        Raises:
            OSError: the file could not be written
        """
        self.update({key: value})

    def update(self, updates: Dict[str, Any]) -> None:
        """
        Update multiple keys in one atomic write.

        Args:
            updates: Dictionary of key-value pairs to update

        Raises:
            OSError: the file could not be written
        """
        with self._lock:
            data = dict(self._load())
            data.update(updates)
            self._write_atomic(data)
            self._cache = data

    def invalidate_cache(self) -> None:
        """Invalidate in-memory cache, forcing next read from disk."""
        with self._lock:
            self._cache = None

    def __contains__(self, key: str) -> bool:
        return key in self.read()
