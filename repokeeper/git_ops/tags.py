"""
Tag filtering and version-label extraction.

Only tags that mention "dev" or "qa" are offered as versions. Each is
shown under a short label built from its marker and its dotted version
number:

    v1.2.0-dev     ->  dev-1.2.0
    qa_build_2024  ->  qa-2024
    dev-nightly    ->  dev-nightly   (no digits, label is the tag)

Remote "dev" and "qa" branches are offered ahead of the tags as
BRANCH:dev / BRANCH:qa so the tip of each branch can be checked out.
"""

import logging
import string
from typing import Iterable, List, Optional, Set

from ..domain.tag import TagEntry
from ..exit_codes import GitCommandError
from ..infra.git_client import GitClient

logger = logging.getLogger(__name__)

TRACKED_BRANCHES = ("dev", "qa")
MAX_VERSION_DOTS = 2


def extract_version(tag: str) -> Optional[str]:
    """
    Extract the first dotted version number from a tag.

    Scanning starts at the first digit. Digits are kept, at most two dots
    are kept, and any other character ends the scan. A trailing dot is
    dropped.

    Example:
        >>> extract_version("dev_v1.2.3-rc")
        '1.2.3'
        >>> extract_version("release") is None
        True
    """
    chars = []
    in_version = False
    dots = 0

    for ch in tag:
        if ch in string.digits:
            in_version = True
            chars.append(ch)
        elif ch == "." and in_version and dots < MAX_VERSION_DOTS:
            chars.append(ch)
            dots += 1
        elif in_version:
            break

    version = "".join(chars).rstrip(".")
    return version or None


def tag_prefix(tag: str) -> Optional[str]:
    """Return "dev" or "qa" for a tag carrying that marker, else None."""
    lower = tag.lower()
    for marker in TRACKED_BRANCHES:
        if marker in lower:
            return marker
    return None


def format_tag_label(tag: str) -> str:
    """Build the display label for a raw tag name."""
    prefix = tag_prefix(tag)
    if prefix is None:
        return tag

    version = extract_version(tag)
    if version is None:
        return tag
    return f"{prefix}-{version}"


def normalize_branch_names(lines: Iterable[str]) -> Set[str]:
    """
    Reduce `git branch -r` output to lowercase branch names.

    "origin/dev" becomes "dev"; symbolic lines such as
    "origin/HEAD -> origin/main" are skipped.
    """
    names = set()
    for line in lines:
        line = line.strip()
        if not line or "->" in line:
            continue
        _, sep, name = line.partition("/")
        names.add((name if sep else line).lower())
    return names


def build_tag_entries(
    tags: Iterable[str],
    remote_branches: Iterable[str],
    limit: int,
) -> List[TagEntry]:
    """
    Combine remote branches and tags into the version list.

    Args:
        tags: Tag names, most recent first
        remote_branches: Lines from `git branch -r`
        limit: Maximum entries, branch entries included

    Returns:
        Branch entries (dev, then qa) followed by tags in input order,
        with duplicate labels dropped (first one wins)
    """
    if limit <= 0:
        return []

    branches = normalize_branch_names(remote_branches)
    entries: List[TagEntry] = []
    seen: Set[str] = set()

    for branch in TRACKED_BRANCHES:
        if branch in branches:
            entry = TagEntry.for_branch(branch)
            entries.append(entry)
            seen.add(entry.label)

    for tag in tags:
        tag = tag.strip()
        if not tag or tag_prefix(tag) is None:
            continue
        label = format_tag_label(tag)
        if label in seen:
            continue
        seen.add(label)
        entries.append(TagEntry(raw=tag, label=label))
        if len(entries) >= limit:
            break

    return entries[:limit]


def filtered_tags(git: GitClient, path: str, limit: int) -> List[TagEntry]:
    """
    List the versions available in a local repository.

    Raises:
        GitCommandError: `git tag` failed
        GitNotFoundError: git could not be spawned
    """
    branches = git.remote_branches(path)
    if branches is None:
        logger.debug(f"Could not list remote branches in {path}")
        branches = []

    result = git.tags(path)
    if not result.succeeded:
        raise GitCommandError("Failed to get tags", stderr=result.error)

    return build_tag_entries(result.lines(), branches, limit)
