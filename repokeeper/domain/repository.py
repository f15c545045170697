"""
Repository record domain object for repokeeper.

RepositoryRecord is one entry of the repository registry. It's immutable:
version refreshes and checkouts build a new record with
dataclasses.replace(), so id, path and remote_url can never drift.
"""

from dataclasses import dataclass, replace
from typing import Optional, Dict, Any, Sequence, Tuple

from .tag import TagEntry


@dataclass(frozen=True)
class RepositoryRecord:
    """
    A locally managed repository.

    `versions` holds display labels (most recent first) and `version_tags`
    the raw tag names or BRANCH: markers they were derived from. The two
    tuples are index-aligned: label i checks out identifier i.

    Serialized field names are shared with the front end and the store and
    must not change.
    """

    id: int
    name: str
    remote_url: str
    branch: str = "main"
    path: str = ""
    current_version: str = ""
    versions: Tuple[str, ...] = ()
    version_tags: Tuple[str, ...] = ()
    server: str = ""
    has_warning: bool = False
    last_sync_time: Optional[str] = None

    def __post_init__(self):
        if len(self.versions) != len(self.version_tags):
            raise ValueError(
                f"versions and version_tags differ in length "
                f"({len(self.versions)} != {len(self.version_tags)})"
            )

    def with_versions(
        self,
        entries: Sequence[TagEntry],
        sync_time: Optional[str] = None,
    ) -> 'RepositoryRecord':
        """Create a new record carrying a freshly discovered version list."""
        labels = tuple(entry.label for entry in entries)
        return replace(
            self,
            versions=labels,
            version_tags=tuple(entry.raw for entry in entries),
            current_version=labels[0] if labels else "",
            last_sync_time=sync_time if sync_time is not None else self.last_sync_time,
        )

    def with_selected(self, raw: str, branch: Optional[str] = None) -> 'RepositoryRecord':
        """
        Create a new record whose current version is the label for `raw`.

        The current version is left alone when `raw` is not in the list.
        """
        current = self.current_version
        if raw in self.version_tags:
            current = self.versions[self.version_tags.index(raw)]
        return replace(
            self,
            current_version=current,
            branch=branch if branch is not None else self.branch,
        )

    def label_for(self, raw: str) -> Optional[str]:
        """Return the display label aligned with a raw identifier."""
        if raw in self.version_tags:
            return self.versions[self.version_tags.index(raw)]
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the store/front-end representation."""
        return {
            'id': self.id,
            'name': self.name,
            'remoteUrl': self.remote_url,
            'branch': self.branch,
            'path': self.path,
            'gameVersion': self.current_version,
            'gameVersions': list(self.versions),
            'server': self.server,
            'serverOptions': list(self.version_tags),
            'hasWarning': self.has_warning,
            'lastSyncTime': self.last_sync_time,
        }

    def to_jsonl(self) -> str:
        """Convert to single-line JSON for streaming output."""
        import json
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RepositoryRecord':
        """
        Build a record from its stored representation.

        Older stores wrote remote_url/last_sync_time in snake_case; both
        spellings are accepted.

        Raises:
            KeyError: id or name is missing
            ValueError: versions and serverOptions differ in length
        """
        return cls(
            id=int(data['id']),
            name=data['name'],
            remote_url=data.get('remoteUrl', data.get('remote_url', '')),
            branch=data.get('branch', 'main'),
            path=data.get('path', ''),
            current_version=data.get('gameVersion', ''),
            versions=tuple(data.get('gameVersions') or ()),
            version_tags=tuple(data.get('serverOptions') or ()),
            server=data.get('server', ''),
            has_warning=bool(data.get('hasWarning', False)),
            last_sync_time=data.get('lastSyncTime', data.get('last_sync_time')),
        )

    def __str__(self) -> str:
        return f"{self.name} ({self.path or self.remote_url})"
