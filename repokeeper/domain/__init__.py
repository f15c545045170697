"""
Domain layer for repokeeper.

Contains pure domain objects with no I/O or side effects:
- RepositoryRecord: One entry of the repository registry
- TagEntry: Raw tag identifier paired with its display label
- ProgressEvent: One decoded line of clone progress
- CloneProgress / CloneComplete: Notifications for the event sink

These objects are immutable and provide serialization methods for
JSON output and persistence.
"""

from .repository import RepositoryRecord
from .tag import TagEntry, BRANCH_PREFIX, branch_of
from .progress import (
    CloneStage,
    ProgressEvent,
    CloneProgress,
    CloneComplete,
    CLONE_PROGRESS,
    CLONE_COMPLETE,
)

__all__ = [
    'RepositoryRecord',
    'TagEntry',
    'BRANCH_PREFIX',
    'branch_of',
    'CloneStage',
    'ProgressEvent',
    'CloneProgress',
    'CloneComplete',
    'CLONE_PROGRESS',
    'CLONE_COMPLETE',
]
