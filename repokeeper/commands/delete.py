"""
Handles the 'delete' command.
"""

import click

from ..cli_utils import standard_command, add_common_options, run_service


@click.command('delete')
@click.argument('repo_id', type=int)
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@add_common_options('verbose', 'quiet', 'format')
@standard_command
def delete_handler(repo_id: int, yes: bool, progress, **kwargs):
    """Delete repository REPO_ID from disk and from the registry.

    A directory that was already removed by hand is not an error.
    """
    async def delete(service):
        record = await service.registry.get(repo_id)
        if not yes and record.path:
            click.confirm(f"Delete {record.path}?", abort=True, err=True)
        return await service.delete_repository(repo_id)

    record = run_service(delete)
    progress.success(f"Deleted {record.name}")
    return {"id": record.id, "name": record.name, "deleted": True}
