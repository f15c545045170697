"""
repokeeper - Clone, version and switch local git repositories.

repokeeper keeps a registry of locally cloned repositories. It clones with
live progress, offers dev/qa tags as versions, and checks out tags or
branch tips on request.

Quick Start:
    import asyncio
    import repokeeper

    store = repokeeper.FileStore(repokeeper.get_store_path())
    registry = repokeeper.RepositoryRegistry.load(store)

    async def main():
        async with repokeeper.RepositoryService(registry) as service:
            await service.set_root_path("~/games")
            record = await service.clone_repository(url, "game")
            for label, raw in zip(record.versions, record.version_tags):
                print(label, raw)
            await service.change_version(record.id, record.version_tags[-1])

    asyncio.run(main())

Domain Objects:
    RepositoryRecord - One managed repository
    TagEntry - Raw tag or BRANCH: marker with its display label
    ProgressEvent - One decoded line of clone progress

Services:
    RepositoryRegistry - Lock-guarded record list with persistence
    RepositoryService - Clone, import, refresh, checkout, delete

Events:
    clone-progress - {repoName, percent, stageMessage, ...}
    clone-complete - {repoName, success, errorMessage?}
"""

__version__ = "0.3.0"

# Domain objects
from .domain import (
    RepositoryRecord,
    TagEntry,
    ProgressEvent,
    CloneProgress,
    CloneComplete,
    CLONE_PROGRESS,
    CLONE_COMPLETE,
)

# Services
from .services import (
    RepositoryRegistry,
    RepositoryService,
    EventSink,
    CallbackSink,
)

# Infrastructure
from .infra import GitClient, FileStore

# Version labels
from .git_ops import extract_version, format_tag_label

# Configuration
from .config import load_config, save_config, get_store_path

__all__ = [
    # Version
    "__version__",
    # Domain objects
    "RepositoryRecord",
    "TagEntry",
    "ProgressEvent",
    "CloneProgress",
    "CloneComplete",
    "CLONE_PROGRESS",
    "CLONE_COMPLETE",
    # Services
    "RepositoryRegistry",
    "RepositoryService",
    "EventSink",
    "CallbackSink",
    # Infrastructure
    "GitClient",
    "FileStore",
    # Version labels
    "extract_version",
    "format_tag_label",
    # Configuration
    "load_config",
    "save_config",
    "get_store_path",
]
