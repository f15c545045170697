"""
Version commands: 'tags', 'refresh', 'checkout' and 'switch'.

Versions are dev/qa tags plus the synthetic BRANCH:dev and BRANCH:qa
entries. checkout takes either the raw tag name, the BRANCH: marker or the
display label shown by `repokeeper tags`.
"""

from typing import Optional

import click

from ..cli_utils import standard_command, add_common_options, run_service, use_table
from ..render import render_tags_table


@click.command('tags')
@click.argument('path', type=click.Path(file_okay=False))
@click.option('--limit', type=int, default=None, help='Maximum versions to list (default: general.tag_limit)')
@add_common_options('verbose', 'quiet', 'format', 'fields', 'table')
@standard_command
def tags_handler(path: str, limit: Optional[int], table, progress, **kwargs):
    """List the dev/qa versions of the repository at PATH.

    \b
    Examples:
        repokeeper tags ~/games/game
        repokeeper tags ~/games/game --limit 3 --no-table
    """
    entries = run_service(lambda service: service.get_tags(path, limit))

    if use_table(table):
        render_tags_table(entries)
        return None

    return [entry.to_dict() for entry in entries]


@click.command('refresh')
@click.argument('repo_id', type=int)
@add_common_options('verbose', 'quiet', 'format')
@standard_command
def refresh_handler(repo_id: int, progress, **kwargs):
    """Fetch tags and rebuild the version list of repository REPO_ID.

    The newest version becomes the current one.
    """
    progress("Fetching tags...")
    record = run_service(lambda service: service.refresh_repository(repo_id))
    progress.success(f"{record.name}: {len(record.versions)} versions")
    return record.to_dict()


@click.command('checkout')
@click.argument('repo_id', type=int)
@click.argument('version')
@add_common_options('verbose', 'quiet', 'format')
@standard_command
def checkout_handler(repo_id: int, version: str, progress, **kwargs):
    """Check out VERSION in repository REPO_ID, discarding local changes.

    \b
    Examples:
        repokeeper checkout 1 v1.2.0-dev     # Raw tag name
        repokeeper checkout 1 dev-1.2.0      # Display label
        repokeeper checkout 1 BRANCH:dev     # Tip of the dev branch
    """
    async def checkout(service):
        record = await service.registry.get(repo_id)
        raw = version
        if version not in record.version_tags and version in record.versions:
            raw = record.version_tags[record.versions.index(version)]
        return await service.change_version(repo_id, raw)

    record = run_service(checkout)
    progress.success(f"{record.name} is at {record.current_version or version}")
    return record.to_dict()


@click.command('switch')
@click.argument('repo_id', type=int)
@click.argument('branch')
@add_common_options('verbose', 'quiet', 'format')
@standard_command
def switch_handler(repo_id: int, branch: str, progress, **kwargs):
    """Check out BRANCH in repository REPO_ID and pull it.

    A local branch tracking origin/BRANCH is created when needed.
    """
    record = run_service(lambda service: service.switch_branch(repo_id, branch))
    progress.success(f"{record.name} is on {record.branch}")
    return record.to_dict()
