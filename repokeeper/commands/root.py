"""
Handles the 'root' and 'validate' commands.

The root path is the directory new clones are placed in. It is stored in
the registry store next to the repository list.
"""

import os
from typing import Optional

import click

from ..cli_utils import standard_command, add_common_options, run_service
from ..exit_codes import ValidationError
from ..services.repository_service import validate_name


@click.command('root')
@click.argument('path', required=False, type=click.Path(file_okay=False))
@add_common_options('verbose', 'quiet', 'format')
@standard_command
def root_handler(path: Optional[str], progress, **kwargs):
    """Show or set the directory repositories are cloned into.

    \b
    Examples:
        repokeeper root               # Show the current root path
        repokeeper root ~/games       # Clone new repositories into ~/games
    """
    if path is None:
        root = run_service(lambda service: service.get_root_path())
        return {"path_root": root}

    expanded = os.path.abspath(os.path.expanduser(path))
    if not os.path.isdir(expanded):
        raise ValidationError(f"Directory does not exist: {expanded}")

    root = run_service(lambda service: service.set_root_path(expanded))
    progress.success(f"Root path set to {root}")
    return {"path_root": root}


@click.command('validate')
@click.argument('name')
@add_common_options('quiet', 'format')
@standard_command
def validate_handler(name: str, **kwargs):
    """Check that NAME can be used as a repository directory name.

    Names may contain letters, numbers, underscores and dashes.
    """
    validate_name(name)
    return {"name": name, "valid": True}
