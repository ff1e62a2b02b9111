"""
Check command for spacchetti.
"""

import click

from .common import load_manifest, manifest_options


@click.command('check')
@manifest_options
def check_handler(manifest, debug):
    """
    Check that a manifest decodes into a valid config.

    MANIFEST defaults to the configured manifest (spacchetti.dhall).
    Exits non-zero with an explanation if the manifest is invalid.
    """
    config = load_manifest(manifest, debug)
    click.echo(
        f"{config.name}: {len(config.dependencies)} dependencies, "
        f"{len(config.packages)} packages",
        err=True,
    )
