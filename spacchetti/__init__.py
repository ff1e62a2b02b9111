"""
spacchetti - Typed reader for spacchetti.dhall package manifests.

A manifest names a project, lists its direct dependencies and defines a
registry of packages (each with its own dependencies, git repository and
version). spacchetti evaluates the Dhall source, checks its shape and
hands back immutable domain objects, or a typed error explaining exactly
what is wrong.

Quick Start:
    import spacchetti

    config = spacchetti.read_config("spacchetti.dhall")
    print(config.name)
    for name, package in config.packages.items():
        print(name, package.repo, package.version)

    # JSON form for downstream tools
    print(config.to_json())

Errors:
    ConfigReadError - base class; one of WrongPackageType,
        ConfigIsNotRecord, PackagesIsNotRecord, KeyIsMissing
    render_error(err) - human-readable explanation of a ConfigReadError
"""

__version__ = "0.1.0"

from .domain import Config, Package, PackageName, Packages
from .errors import (
    ConfigReadError,
    WrongPackageType,
    ConfigIsNotRecord,
    PackagesIsNotRecord,
    KeyIsMissing,
)
from .decoder import decode
from .manifest import parse_config, read_config
from .render import render_error

__all__ = [
    'Config',
    'Package',
    'PackageName',
    'Packages',
    'ConfigReadError',
    'WrongPackageType',
    'ConfigIsNotRecord',
    'PackagesIsNotRecord',
    'KeyIsMissing',
    'decode',
    'parse_config',
    'read_config',
    'render_error',
]
