"""
Domain layer for spacchetti.

Contains pure domain objects with no I/O or side effects:
- PackageName: Identifier of a package in the registry
- Package: Dependencies, git repository and version of one package
- Config: A project's name, direct dependencies and package registry

These objects are immutable and provide serialization methods for the
JSON form consumed by downstream tools.
"""

from .package import PackageName, Package, Packages, Config

__all__ = [
    'PackageName',
    'Package',
    'Packages',
    'Config',
]
