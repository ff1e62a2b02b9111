"""
Package domain objects for spacchetti.

A manifest describes one project (its name and direct dependencies) and
a registry of packages it can draw from. These are immutable value
objects: the decoder builds them once and downstream tools only read them.

The JSON form produced by ``to_dict``/``to_json`` is the contract handed
to resolvers and fetchers.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple


@dataclass(frozen=True, order=True)
class PackageName:
    """
    Name of a package in the registry.

    Compared, ordered and hashed on the raw text. No case folding or
    other normalization happens: "Prelude" and "prelude" are two packages.
    """
    value: str

    def to_json(self) -> str:
        """A package name is a bare string in JSON."""
        return self.value

    @classmethod
    def from_json(cls, data: Any) -> 'PackageName':
        if not isinstance(data, str):
            raise ValueError(f"Package name must be a string, got {type(data).__name__}")
        return cls(data)

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"PackageName({self.value!r})"


def _names_from_json(data: Any, what: str) -> Tuple[PackageName, ...]:
    if not isinstance(data, list):
        raise ValueError(f"'{what}' must be a list of package names")
    return tuple(PackageName.from_json(item) for item in data)


def _require(data: Dict[str, Any], key: str, kind: type, owner: str) -> Any:
    if key not in data:
        raise ValueError(f"{owner} is missing required field '{key}'")
    value = data[key]
    if not isinstance(value, kind):
        raise ValueError(f"{owner} field '{key}' must be a {kind.__name__}")
    return value


@dataclass(frozen=True)
class Package:
    """A package available in the registry."""
    dependencies: Tuple[PackageName, ...] = ()  # order kept, duplicates kept
    repo: str = ""      # git repository URL
    version: str = ""   # git ref or tag

    def to_dict(self) -> Dict[str, Any]:
        return {
            'dependencies': [dep.to_json() for dep in self.dependencies],
            'repo': self.repo,
            'version': self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Package':
        """
        Build a Package from its JSON object form.

        Raises:
            ValueError: If a field is missing or has the wrong JSON type
        """
        if not isinstance(data, dict):
            raise ValueError("Package must be a JSON object")
        return cls(
            dependencies=_names_from_json(
                _require(data, 'dependencies', list, 'Package'), 'dependencies'
            ),
            repo=_require(data, 'repo', str, 'Package'),
            version=_require(data, 'version', str, 'Package'),
        )

    def to_json(self, indent=None) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> 'Package':
        return cls.from_dict(json.loads(text))


Packages = Dict[PackageName, Package]


@dataclass(frozen=True)
class Config:
    """
    A decoded spacchetti.dhall manifest.

    ``dependencies`` are not checked against ``packages`` here; that is
    left to whichever resolver consumes the config.
    """
    name: str
    dependencies: Tuple[PackageName, ...] = ()
    packages: Packages = field(default_factory=dict, hash=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'name': self.name,
            'dependencies': [dep.to_json() for dep in self.dependencies],
            'packages': {
                name.to_json(): package.to_dict()
                for name, package in sorted(self.packages.items())
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """
        Build a Config from its JSON object form.

        Raises:
            ValueError: If a field is missing or has the wrong JSON type
        """
        if not isinstance(data, dict):
            raise ValueError("Config must be a JSON object")
        packages = _require(data, 'packages', dict, 'Config')
        return cls(
            name=_require(data, 'name', str, 'Config'),
            dependencies=_names_from_json(
                _require(data, 'dependencies', list, 'Config'), 'dependencies'
            ),
            packages={
                PackageName.from_json(key): Package.from_dict(value)
                for key, value in packages.items()
            },
        )

    def to_json(self, indent=None) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> 'Config':
        return cls.from_dict(json.loads(text))

    def get_package(self, name: str):
        """Look up a package by its name, or None."""
        return self.packages.get(PackageName(name))

    def __repr__(self) -> str:
        return (
            f"Config(name={self.name!r}, dependencies={len(self.dependencies)}, "
            f"packages={len(self.packages)})"
        )
