#!/usr/bin/env python3

import click

from spacchetti.commands.check import check_handler
from spacchetti.commands.show import show_handler, packages_handler


@click.group()
@click.version_option(package_name='spacchetti')
def cli():
    """spacchetti - Read spacchetti.dhall package manifests.

    Decodes a project's name, direct dependencies and package registry,
    and prints them as JSON for resolvers and fetchers.
    """
    pass


cli.add_command(check_handler)
cli.add_command(show_handler)
cli.add_command(packages_handler)


def main():
    cli()

if __name__ == "__main__":
    main()
