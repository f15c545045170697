"""
Tag entry domain object for repokeeper.

A TagEntry pairs the identifier git checks out with the label shown to
the user, e.g. ("v1.2.0-dev", "dev-1.2.0") or ("BRANCH:dev", "dev-latest").
"""

from dataclasses import dataclass
from typing import Dict, Optional

BRANCH_PREFIX = "BRANCH:"


@dataclass(frozen=True)
class TagEntry:
    """A raw tag (or synthetic branch marker) and its display label."""
    raw: str
    label: str

    @classmethod
    def for_branch(cls, branch: str) -> 'TagEntry':
        """Synthetic entry that tracks the tip of a remote branch."""
        return cls(raw=f"{BRANCH_PREFIX}{branch}", label=f"{branch}-latest")

    @property
    def branch(self) -> Optional[str]:
        """Branch name for synthetic entries, None for real tags."""
        return branch_of(self.raw)

    def to_dict(self) -> Dict[str, str]:
        return {
            'originalTag': self.raw,
            'displayName': self.label,
        }

    def __str__(self) -> str:
        return self.label


def branch_of(raw: str) -> Optional[str]:
    """Return the branch named by a BRANCH: marker, or None."""
    if raw.startswith(BRANCH_PREFIX):
        return raw[len(BRANCH_PREFIX):]
    return None
