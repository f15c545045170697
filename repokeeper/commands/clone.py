"""
Handles the 'clone', 'add' and 'import' commands.

clone runs `git clone --progress` into a temporary directory next to the
final one, draws git's progress on stderr and prints the new record as
JSON when it is done.
"""

from typing import Optional

import click

from ..cli_utils import standard_command, add_common_options, run_service


@click.command('clone')
@click.argument('remote_url')
@click.argument('name')
@add_common_options('verbose', 'quiet', 'format')
@standard_command
def clone_handler(remote_url: str, name: str, progress, **kwargs):
    """Clone REMOTE_URL into <root>/NAME and register it.

    Only tags mentioning "dev" or "qa" are offered as versions, together
    with the tips of remote dev and qa branches.

    \b
    Examples:
        repokeeper clone https://example.com/studio/game.git game
        repokeeper clone git@example.com:studio/game.git game-qa -q
    """
    record = run_service(
        lambda service: service.clone_repository(remote_url, name),
        progress,
    )
    return record.to_dict()


@click.command('add')
@click.argument('remote_url')
@click.argument('name')
@add_common_options('quiet', 'format', 'fields')
@standard_command
def add_handler(remote_url: str, name: str, **kwargs):
    """Register REMOTE_URL under NAME without cloning it.

    Adding a URL that is already registered changes nothing.
    """
    records = run_service(lambda service: service.add_repository(remote_url, name))
    return [record.to_dict() for record in records]


@click.command('import')
@click.argument('path', type=click.Path(exists=True, file_okay=False))
@click.option('--name', default=None, help='Registry name (default: directory name)')
@add_common_options('verbose', 'quiet', 'format')
@standard_command
def import_handler(path: str, name: Optional[str], progress, **kwargs):
    """Register an existing clone at PATH.

    The directory must be a git work tree with an origin remote that is not
    registered yet.
    """
    progress(f"Importing {path}...")
    record = run_service(lambda service: service.import_repository(path, name))
    progress.success(f"Imported {record.name} with {len(record.versions)} versions")
    return record.to_dict()
