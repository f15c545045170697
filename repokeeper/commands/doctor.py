"""
Handles the 'doctor' command: checks that git can be run.
"""

import click

from ..cli_utils import standard_command, add_common_options, run_service


@click.command('doctor')
@add_common_options('verbose', 'quiet', 'format')
@standard_command
def doctor_handler(progress, **kwargs):
    """Check that git is installed and report its version."""
    async def check(service):
        return await service.check_git(), await service.get_root_path()

    version, root_path = run_service(check)
    progress.success(version)
    if not root_path:
        progress.warning("Root path is not set; run 'repokeeper root PATH'")
    return {"git": version, "path_root": root_path or None}
