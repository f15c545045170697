"""
Repository service for repokeeper.

Implements the operations the host application exposes: clone, add,
import, refresh, checkout, switch branch, delete and list. Every call
into git is blocking, so it runs on the service's thread pool and the
asyncio loop stays free for other operations. A streaming clone holds one
worker for its whole duration and hands progress back through a bounded
ProgressChannel.
"""

import asyncio
import functools
import logging
import os
import re
import shutil
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..config import load_config
from ..domain.progress import (
    CLONE_COMPLETE,
    CLONE_PROGRESS,
    CloneComplete,
    CloneProgress,
    ProgressEvent,
)
from ..domain.repository import RepositoryRecord
from ..domain.tag import BRANCH_PREFIX, TagEntry, branch_of
from ..exit_codes import (
    FilesystemError,
    GitCommandError,
    ValidationError,
)
from ..git_ops.channel import ProgressChannel
from ..git_ops.clone import CloneJob
from ..git_ops.tags import filtered_tags
from ..infra.git_client import GitClient
from .event_sink import EventSink, NullSink
from .registry_service import RepositoryRegistry

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
SYNC_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Overall percent for the steps after git itself finishes (git tops out at 90)
MOVE_PERCENT = 91
FETCH_TAGS_PERCENT = 94
SAVE_PERCENT = 97


def sync_timestamp() -> str:
    """Local time in the format stored as lastSyncTime."""
    return datetime.now().strftime(SYNC_TIME_FORMAT)


def validate_name(name: str) -> bool:
    """
    Check a proposed repository (directory) name.

    Raises:
        ValidationError: name is empty or has characters outside [A-Za-z0-9_-]
    """
    if not name:
        raise ValidationError("Repository name cannot be empty")
    if not NAME_PATTERN.match(name):
        raise ValidationError(
            "Repository name can only contain letters, numbers, underscores, and dashes"
        )
    return True


class RepositoryService:
    """
    Service for managing locally cloned repositories.

    Example:
        registry = RepositoryRegistry.load(FileStore(store_path))
        async with RepositoryService(registry, sink=sink) as service:
            record = await service.clone_repository(url, "game")
            record = await service.change_version(record.id, record.version_tags[0])
    """

    def __init__(
        self,
        registry: RepositoryRegistry,
        git: Optional[GitClient] = None,
        sink: Optional[EventSink] = None,
        config: Optional[Dict[str, Any]] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """
        Initialize RepositoryService.

        Args:
            registry: Shared repository registry
            git: GitClient instance (creates new if None)
            sink: Receiver for clone notifications (discards if None)
            config: Configuration dict (loads default if None)
            executor: Pool for blocking git calls (creates one if None)
        """
        self.config = config or load_config()
        self.registry = registry
        self.git = git or GitClient()
        self.sink = sink or NullSink()

        general = self.config.get("general", {})
        clone = self.config.get("clone", {})
        self.tag_limit = int(general.get("tag_limit", 10))
        self.queue_size = int(clone.get("progress_queue_size", 64))
        self.temp_prefix = clone.get("temp_prefix", ".tmp_")

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=int(general.get("max_concurrent_operations", 4)),
            thread_name_prefix="repokeeper-git",
        )

    async def __aenter__(self) -> 'RepositoryService':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Shut down the worker pool if this service created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    async def _call(self, func, *args):
        """Run a blocking callable on the worker pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(func, *args))

    def _emit(self, name: str, payload: Dict[str, Any]) -> None:
        # A broken sink must not break the clone
        try:
            self.sink.emit(name, payload)
        except Exception as e:
            logger.warning(f"Event sink failed on {name}: {e}")

    def _progress(self, repo_name: str, percent: int, message: str) -> None:
        self._emit(CLONE_PROGRESS, CloneProgress(repo_name, percent, message).to_dict())

    def _complete(self, repo_name: str, success: bool, error: Optional[str] = None) -> None:
        self._emit(CLONE_COMPLETE, CloneComplete(repo_name, success, error).to_dict())

    @staticmethod
    def validate_name(name: str) -> bool:
        return validate_name(name)

    async def get_root_path(self) -> str:
        return await self.registry.get_root_path()

    async def set_root_path(self, path: str) -> str:
        return await self.registry.set_root_path(os.path.abspath(os.path.expanduser(path)))

    async def list_repositories(self) -> List[RepositoryRecord]:
        return await self.registry.list()

    async def add_repository(self, remote_url: str, name: str) -> List[RepositoryRecord]:
        """Register a repository without cloning it."""
        return await self.registry.add(remote_url, name)

    async def get_tags(self, path: str, limit: Optional[int] = None) -> List[TagEntry]:
        """
        List the dev/qa versions of a local repository.

        Raises:
            ValidationError: path does not exist
            GitCommandError: listing tags failed
        """
        if not os.path.isdir(path):
            raise ValidationError("Repository path does not exist")
        if limit is None:
            limit = self.tag_limit
        return await self._call(filtered_tags, self.git, path, limit)

    async def _discover_versions(self, path: str) -> List[TagEntry]:
        """Version list for a freshly cloned or imported repository."""
        if not await self._call(self.git.fetch_tags, path):
            logger.warning(f"Fetching tags failed in {path}")
        try:
            return await self._call(filtered_tags, self.git, path, self.tag_limit)
        except GitCommandError as e:
            logger.warning(f"Could not list tags in {path}: {e.stderr or e}")
            return []

    async def _remove_temp(self, temp_path: str) -> None:
        def remove():
            if os.path.exists(temp_path):
                shutil.rmtree(temp_path, ignore_errors=True)
        await self._call(remove)

    async def clone_repository(self, remote_url: str, project_name: str) -> RepositoryRecord:
        """
        Clone a repository into the root path and register it.

        Progress is reported to the sink as clone-progress events and the
        attempt always ends with exactly one clone-complete event.

        Raises:
            ValidationError: root path unset or missing, bad name, or the
                target directory already exists
            GitCommandError: git clone failed
            FilesystemError: the finished clone could not be moved into place
            GitNotFoundError: git could not be spawned
        """
        try:
            record = await self._clone(remote_url, project_name)
        except asyncio.CancelledError:
            self._complete(project_name, False, "Clone cancelled")
            raise
        except Exception as e:
            self._complete(project_name, False, str(e))
            raise
        self._complete(project_name, True)
        return record

    async def _clone(self, remote_url: str, project_name: str) -> RepositoryRecord:
        root_path = await self.registry.get_root_path()
        if not root_path:
            raise ValidationError("Root path is not set. Please set it in Settings.")
        if not os.path.isdir(root_path):
            raise ValidationError(f"Root path '{root_path}' does not exist")
        validate_name(project_name)

        final_path = os.path.join(root_path, project_name)
        if os.path.exists(final_path):
            raise ValidationError(f"Directory '{project_name}' already exists")

        temp_path = os.path.join(root_path, f"{self.temp_prefix}{project_name}")
        if os.path.exists(temp_path):
            logger.info(f"Removing leftover {temp_path} from an earlier attempt")
            await self._remove_temp(temp_path)

        self._progress(project_name, 0, "Starting...")
        logger.debug(f"Cloning {remote_url} -> {temp_path}")

        loop = asyncio.get_running_loop()
        channel: ProgressChannel[ProgressEvent] = ProgressChannel(loop, self.queue_size)
        job = CloneJob(self.git, remote_url, temp_path, channel, cwd=root_path)
        worker = loop.run_in_executor(self._executor, job.run)

        try:
            async for event in channel:
                self._emit(CLONE_PROGRESS, CloneProgress.from_event(project_name, event).to_dict())
            result = await worker
        except asyncio.CancelledError:
            channel.close()
            job.cancel()
            # git must be gone before its directory is removed
            await asyncio.wait([worker])
            await self._remove_temp(temp_path)
            raise
        except Exception:
            await self._remove_temp(temp_path)
            raise

        if not result.succeeded:
            logger.error(f"git clone of {remote_url} failed: {result.error}")
            await self._remove_temp(temp_path)
            raise GitCommandError("Failed to clone repository", stderr=result.error)

        self._progress(project_name, MOVE_PERCENT, "Moving to final location...")
        try:
            await self._call(os.rename, temp_path, final_path)
        except OSError as e:
            await self._remove_temp(temp_path)
            raise FilesystemError(f"Failed to move repository: {e}") from e

        branch = await self._call(self.git.current_branch, final_path) or "main"

        self._progress(project_name, FETCH_TAGS_PERCENT, "Fetching tags...")
        entries = await self._discover_versions(final_path)

        self._progress(project_name, SAVE_PERCENT, "Saving repository info...")
        record = await self.registry.register(
            name=project_name,
            remote_url=remote_url,
            path=final_path,
            branch=branch,
            entries=entries,
            sync_time=sync_timestamp(),
        )

        self._progress(project_name, 100, "Clone complete!")
        logger.info(f"Cloned {remote_url} into {final_path}")
        return record

    async def import_repository(self, path: str, name: Optional[str] = None) -> RepositoryRecord:
        """
        Register a repository that was cloned outside repokeeper.

        Raises:
            ValidationError: not a git work tree, no origin remote, bad name,
                or the remote is already registered
        """
        path = os.path.abspath(os.path.expanduser(path))
        if not await self._call(self.git.is_git_directory, path):
            raise ValidationError(f"Not a git repository: {path}")

        name = name or os.path.basename(path)
        validate_name(name)

        remote_url = await self._call(self.git.remote_url, path)
        if not remote_url:
            raise ValidationError(f"Repository at {path} has no origin remote")

        branch = await self._call(self.git.current_branch, path) or "main"
        entries = await self._discover_versions(path)

        return await self.registry.register(
            name=name,
            remote_url=remote_url,
            path=path,
            branch=branch,
            entries=entries,
            sync_time=sync_timestamp(),
            unique_url=True,
        )

    async def _existing_path(self, repo_id: int) -> str:
        record = await self.registry.get(repo_id)
        if not record.path or not os.path.isdir(record.path):
            raise ValidationError("Repository path does not exist")
        return record.path

    async def refresh_repository(self, repo_id: int) -> RepositoryRecord:
        """
        Fetch tags and rebuild a repository's version list.

        Raises:
            RepositoryNotFoundError: unknown id
            ValidationError: the repository is not on disk
            GitCommandError: listing tags failed (the record is unchanged)
        """
        path = await self._existing_path(repo_id)

        if not await self._call(self.git.fetch_tags, path):
            logger.warning(f"Fetching tags failed in {path}")

        entries = await self._call(filtered_tags, self.git, path, self.tag_limit)
        return await self.registry.update_versions(repo_id, entries, sync_timestamp())

    async def change_version(self, repo_id: int, raw: str) -> RepositoryRecord:
        """
        Check out a version by its raw identifier, discarding local changes.

        BRANCH:<name> identifiers check out the branch tip.

        Raises:
            RepositoryNotFoundError: unknown id
            ValidationError: the repository is not on disk
            GitCommandError: checkout failed
        """
        branch = branch_of(raw)
        if branch is not None:
            return await self.switch_branch(repo_id, branch)

        path = await self._existing_path(repo_id)
        if not await self._call(self.git.reset_hard, path):
            logger.warning(f"git reset --hard failed in {path}")

        result = await self._call(self.git.checkout_tag, path, raw)
        if not result.succeeded:
            raise GitCommandError("Failed to checkout to tag", stderr=result.error)

        return await self.registry.select_version(repo_id, raw)

    async def switch_branch(self, repo_id: int, branch: str) -> RepositoryRecord:
        """
        Check out a branch, creating a local tracking branch if needed, and
        pull it.

        Raises:
            RepositoryNotFoundError: unknown id
            ValidationError: the repository is not on disk
            GitCommandError: checkout failed
        """
        path = await self._existing_path(repo_id)
        if not await self._call(self.git.reset_hard, path):
            logger.warning(f"git reset --hard failed in {path}")

        result = await self._call(self.git.checkout, path, branch)
        if not result.succeeded:
            result = await self._call(self.git.checkout_tracking_branch, path, branch)
        if not result.succeeded:
            raise GitCommandError(f"Failed to checkout branch '{branch}'", stderr=result.error)

        if not await self._call(self.git.pull, path):
            logger.warning(f"git pull failed in {path}")

        return await self.registry.select_version(repo_id, f"{BRANCH_PREFIX}{branch}", branch=branch)

    async def delete_repository(self, repo_id: int) -> RepositoryRecord:
        """
        Delete a repository from disk and from the registry.

        Raises:
            RepositoryNotFoundError: unknown id
        """
        record = await self.registry.remove(repo_id)
        logger.info(f"Deleted repository {record.name}")
        return record

    async def check_git(self) -> str:
        """
        Return the installed git version string.

        Raises:
            GitNotFoundError: git could not be spawned
            GitCommandError: git --version failed
        """
        version = await self._call(self.git.version)
        if version is None:
            raise GitCommandError("git --version failed")
        return version
