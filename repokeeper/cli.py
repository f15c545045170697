#!/usr/bin/env python3

import click

from repokeeper import __version__
from repokeeper.commands.root import root_handler, validate_handler
from repokeeper.commands.list import list_handler
from repokeeper.commands.clone import clone_handler, add_handler, import_handler
from repokeeper.commands.versions import tags_handler, refresh_handler, checkout_handler, switch_handler
from repokeeper.commands.delete import delete_handler
from repokeeper.commands.doctor import doctor_handler


@click.group()
@click.version_option(__version__)
def cli():
    """repokeeper - Clone, version and switch local git repositories.

    Keeps a registry of cloned repositories, offers their dev/qa tags as
    versions and checks them out on request.
    """
    pass


# Setup
cli.add_command(root_handler, name='root')
cli.add_command(validate_handler, name='validate')
cli.add_command(doctor_handler, name='doctor')

# Registry
cli.add_command(list_handler, name='list')
cli.add_command(add_handler, name='add')
cli.add_command(clone_handler, name='clone')
cli.add_command(import_handler, name='import')
cli.add_command(delete_handler, name='delete')

# Versions
cli.add_command(tags_handler, name='tags')
cli.add_command(refresh_handler, name='refresh')
cli.add_command(checkout_handler, name='checkout')
cli.add_command(switch_handler, name='switch')


def main():
    cli()

if __name__ == "__main__":
    main()
