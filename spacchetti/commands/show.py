"""
Commands that print a decoded manifest.
"""

import json

import click

from ..render import render_config, render_packages_table
from .common import load_manifest, manifest_options


@click.command('show')
@manifest_options
@click.option('--pretty', is_flag=True, help='Display as a table instead of single-line JSON')
def show_handler(manifest, debug, pretty):
    """Show the decoded config.

    By default, outputs single-line JSON (the form downstream tools read).
    Use --pretty for a human-readable summary.
    """
    config = load_manifest(manifest, debug)

    if pretty:
        render_config(config)
    else:
        print(config.to_json())


@click.command('packages')
@manifest_options
@click.option('--pretty', is_flag=True, help='Display as a table instead of JSONL')
def packages_handler(manifest, debug, pretty):
    """List the packages defined in the manifest.

    By default, outputs one JSON object per package (JSONL), sorted by name.
    """
    config = load_manifest(manifest, debug)

    if pretty:
        render_packages_table(config, title=config.name)
        return

    for name, package in sorted(config.packages.items()):
        record = {'name': name.to_json()}
        record.update(package.to_dict())
        print(json.dumps(record, ensure_ascii=False))
