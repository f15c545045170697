"""
Repository registry for repokeeper.

The registry is the process-wide list of RepositoryRecord objects plus
the root directory new clones go into. It is the only shared mutable
state: every read and every mutation holds one asyncio.Lock for its whole
critical section, so two clones finishing together can never be given
the same id.

Each mutation ends by writing both store keys. A failed write is logged
and the in-memory change stands; the running process treats the registry
as the source of truth and the store as a snapshot for the next start.
"""

import asyncio
import logging
import os
import shutil
from typing import Any, Dict, List, Optional, Sequence

from ..domain.repository import RepositoryRecord
from ..domain.tag import TagEntry
from ..exit_codes import RepositoryNotFoundError, ValidationError
from ..infra.file_store import FileStore

logger = logging.getLogger(__name__)

PATH_ROOT_KEY = "path_root"
REPOSITORIES_KEY = "local_repositories"


def _remove_tree(path: str) -> None:
    """Delete a directory tree, logging instead of raising."""
    if not os.path.exists(path):
        logger.info(f"Repository directory already gone: {path}")
        return
    try:
        shutil.rmtree(path)
    except OSError as e:
        logger.warning(f"Failed to delete repository directory {path}: {e}")


class RepositoryRegistry:
    """
    Lock-guarded collection of repository records.

    Example:
        registry = RepositoryRegistry.load(FileStore(store_path))
        repos = await registry.add("https://example.com/game.git", "game")
        record = await registry.get(repos[-1].id)
    """

    def __init__(
        self,
        store: Optional[FileStore] = None,
        root_path: str = "",
        records: Optional[Sequence[RepositoryRecord]] = None,
    ):
        """
        Initialize RepositoryRegistry.

        Args:
            store: Persistence target (None keeps the registry in memory)
            root_path: Directory new clones are placed in
            records: Initial records
        """
        self.store = store
        self._root_path = root_path
        self._records: List[RepositoryRecord] = list(records or [])
        self._lock = asyncio.Lock()

    @classmethod
    def load(cls, store: FileStore) -> 'RepositoryRegistry':
        """
        Build a registry from a store.

        Entries that cannot be parsed are skipped with a warning.
        """
        root_path = store.get(PATH_ROOT_KEY, "")
        if not isinstance(root_path, str):
            logger.warning(f"Ignoring non-string {PATH_ROOT_KEY} in {store.path}")
            root_path = ""

        records = []
        raw_records = store.get(REPOSITORIES_KEY, []) or []
        if not isinstance(raw_records, list):
            logger.warning(f"Ignoring malformed {REPOSITORIES_KEY} in {store.path}")
            raw_records = []

        for data in raw_records:
            try:
                records.append(RepositoryRecord.from_dict(data))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed repository entry {data!r}: {e}")

        return cls(store=store, root_path=root_path, records=records)

    def snapshot(self) -> Dict[str, Any]:
        """Serializable form of the registry, as written to the store."""
        return {
            PATH_ROOT_KEY: self._root_path,
            REPOSITORIES_KEY: [record.to_dict() for record in self._records],
        }

    def _persist(self) -> None:
        """Write-through to the store. Caller holds the lock."""
        if self.store is None:
            return
        try:
            self.store.update(self.snapshot())
        except OSError as e:
            logger.error(f"Failed to save repository registry to {self.store.path}: {e}")

    def _next_id(self) -> int:
        return max((record.id for record in self._records), default=0) + 1

    def _index(self, repo_id: int) -> int:
        for i, record in enumerate(self._records):
            if record.id == repo_id:
                return i
        raise RepositoryNotFoundError(repo_id)

    async def get_root_path(self) -> str:
        async with self._lock:
            return self._root_path

    async def set_root_path(self, path: str) -> str:
        async with self._lock:
            self._root_path = path
            self._persist()
            return path

    async def list(self) -> List[RepositoryRecord]:
        """Return a copy of the record list."""
        async with self._lock:
            return list(self._records)

    async def get(self, repo_id: int) -> RepositoryRecord:
        """
        Raises:
            RepositoryNotFoundError: no record with this id
        """
        async with self._lock:
            return self._records[self._index(repo_id)]

    async def add(self, remote_url: str, name: str) -> List[RepositoryRecord]:
        """
        Register a repository that has not been cloned yet.

        Adding a URL that is already registered, or a blank name, changes
        nothing.

        Returns:
            The record list after the call
        """
        async with self._lock:
            if any(record.remote_url == remote_url for record in self._records):
                logger.debug(f"Not adding {remote_url}: already registered")
                return list(self._records)
            if not name.strip():
                logger.debug(f"Not adding {remote_url}: empty name")
                return list(self._records)

            self._records.append(RepositoryRecord(
                id=self._next_id(),
                name=name,
                remote_url=remote_url,
            ))
            self._persist()
            return list(self._records)

    async def register(
        self,
        name: str,
        remote_url: str,
        path: str,
        branch: str = "main",
        entries: Sequence[TagEntry] = (),
        sync_time: Optional[str] = None,
        unique_url: bool = False,
    ) -> RepositoryRecord:
        """
        Append a record for a repository that exists on disk.

        Raises:
            ValidationError: unique_url is set and the URL is registered
        """
        async with self._lock:
            if unique_url and any(r.remote_url == remote_url for r in self._records):
                raise ValidationError(f"{remote_url} is already registered")
            record = RepositoryRecord(
                id=self._next_id(),
                name=name,
                remote_url=remote_url,
                branch=branch,
                path=path,
            ).with_versions(entries, sync_time)
            self._records.append(record)
            self._persist()
            return record

    async def update_versions(
        self,
        repo_id: int,
        entries: Sequence[TagEntry],
        sync_time: Optional[str] = None,
    ) -> RepositoryRecord:
        """
        Replace a record's version list; the first entry becomes current.

        Raises:
            RepositoryNotFoundError: no record with this id
        """
        async with self._lock:
            i = self._index(repo_id)
            record = self._records[i].with_versions(entries, sync_time)
            self._records[i] = record
            self._persist()
            return record

    async def select_version(
        self,
        repo_id: int,
        raw: str,
        branch: Optional[str] = None,
    ) -> RepositoryRecord:
        """
        Mark the version identified by `raw` as checked out.

        Raises:
            RepositoryNotFoundError: no record with this id
        """
        async with self._lock:
            i = self._index(repo_id)
            record = self._records[i].with_selected(raw, branch)
            self._records[i] = record
            self._persist()
            return record

    async def remove(self, repo_id: int) -> RepositoryRecord:
        """
        Delete a repository's directory and drop its record.

        A directory that is already gone, or that cannot be deleted, does
        not stop the record from being removed.

        Raises:
            RepositoryNotFoundError: no record with this id
        """
        async with self._lock:
            record = self._records[self._index(repo_id)]
            if record.path:
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, _remove_tree, record.path)
            self._records = [r for r in self._records if r.id != repo_id]
            self._persist()
            return record
