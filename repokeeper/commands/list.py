"""
Handles the 'list' command.

Default output is JSONL, one record per line, with the same field names
the registry store uses. --table renders a rich table instead.
"""

import click

from ..cli_utils import standard_command, add_common_options, run_service, use_table
from ..render import render_repositories_table


@click.command('list')
@add_common_options('verbose', 'quiet', 'format', 'fields', 'table')
@standard_command
def list_handler(table, progress, **kwargs):
    """List managed repositories.

    \b
    Output format:
    - Interactive terminal: Table format by default
    - Piped/redirected: JSONL streaming by default
    - Use --table / --no-table to force either

    \b
    Examples:
        repokeeper list
        repokeeper list --no-table -f csv --fields id,name,gameVersion
    """
    async def load(service):
        return await service.get_root_path(), await service.list_repositories()

    root_path, records = run_service(load)

    if use_table(table):
        render_repositories_table(records, root_path)
        return None

    return [record.to_dict() for record in records]
