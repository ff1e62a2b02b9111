"""
Decode a normal-form Dhall expression into a spacchetti Config.

The manifest is expected to have the shape::

    { name : Text
    , dependencies : List Text
    , packages : { <name> : { dependencies : List Text, repo : Text, version : Text }, ... }
    }

Decoding stops at the first problem and raises the matching
``ConfigReadError``. Type errors from the expression layer are not
wrapped; the only place one is caught is while decoding a package entry,
where it becomes ``WrongPackageType``.

The lifted tree cannot tell ``Text`` from ``Optional Text``, so when the
decoder is given the ``DhallSource`` the tree came from it lets the
evaluator confirm each type. One query checks the whole manifest; only
when that fails is each step checked on its own, to report the first
failure.
"""

from typing import Callable, Dict, Optional, Tuple, TypeVar

from .config import logger
from .domain import Config, Package, PackageName
from .errors import ConfigIsNotRecord, KeyIsMissing, PackagesIsNotRecord, WrongPackageType
from .expr import (
    Annot, Expr, ListLit, ListType, RecordLit, RecordType, TEXT, TextLit,
    TypeCheckError, normalize, type_of,
)

T = TypeVar('T')

PACKAGE_TYPE = RecordType((
    ('dependencies', ListType(TEXT)),
    ('repo', TEXT),
    ('version', TEXT),
))


class ExtractError(Exception):
    """An expression does not have the shape a typed view expects."""

    def __init__(self, reason: str, expr: Expr):
        super().__init__(reason)
        self.reason = reason
        self.expr = expr


# =============================================================================
# TYPED VIEWS
# =============================================================================

def as_record(expr: Expr) -> Dict[str, Expr]:
    if not isinstance(expr, RecordLit):
        raise ExtractError("expected a record", expr)
    return dict(expr.fields)


def as_text(expr: Expr) -> str:
    if not isinstance(expr, TextLit):
        raise ExtractError("expected Text", expr)
    return expr.value


def as_list(expr: Expr, item: Callable[[Expr], T]) -> Tuple[T, ...]:
    if not isinstance(expr, ListLit):
        raise ExtractError("expected a List", expr)
    return tuple(item(element) for element in expr.items)


def as_package_name(expr: Expr) -> PackageName:
    return PackageName(as_text(expr))


def as_package(expr: Expr) -> Package:
    fields = as_record(expr)
    for key in ('dependencies', 'repo', 'version'):
        if key not in fields:
            raise ExtractError(f"package has no field '{key}'", expr)
    return Package(
        dependencies=as_list(fields['dependencies'], as_package_name),
        repo=as_text(fields['repo']),
        version=as_text(fields['version']),
    )


# =============================================================================
# DECODING
# =============================================================================

def _required(fields: Dict[str, Expr], key: str, view: Callable[[Expr], T],
              checker=None, expected: Optional[Expr] = None) -> T:
    if key not in fields:
        raise KeyIsMissing(key)
    if checker is not None and not checker.has_type((key,), expected):
        # A wrongly typed key is reported the same way as a missing one
        logger.debug(f"Key '{key}' is not of type {expected}")
        raise KeyIsMissing(key)
    try:
        return view(fields[key])
    except ExtractError as e:
        logger.debug(f"Key '{key}' could not be read: {e.reason}")
        raise KeyIsMissing(key) from e


def decode_package(expr: Expr, checker=None, path: Tuple[str, ...] = ()) -> Package:
    """
    Decode one entry of the ``packages`` record.

    The entry is annotated with the package type and checked before its
    fields are read. With a ``checker`` the evaluator checks the entry at
    ``path`` first, which catches ``Optional`` fields the lifted tree
    cannot show.

    Raises:
        WrongPackageType: Carrying the entry as written, not the annotated form
    """
    if checker is not None and not checker.has_type(path, PACKAGE_TYPE):
        logger.debug(f"Not a package: evaluator rejected {'.'.join(path)} : {PACKAGE_TYPE}")
        raise WrongPackageType(checker.refine(path, expr))
    annotated = Annot(expr, PACKAGE_TYPE)
    try:
        type_of(annotated)
        return as_package(normalize(annotated))
    except (TypeCheckError, ExtractError) as e:
        logger.debug(f"Not a package: {e}")
        raise WrongPackageType(expr) from e


def manifest_type(expr: Expr) -> Optional[RecordType]:
    """The type a well-formed manifest with the packages of ``expr`` has."""
    packages = expr.get('packages') if isinstance(expr, RecordLit) else None
    if not isinstance(packages, RecordLit):
        return None
    return RecordType((
        ('name', TEXT),
        ('dependencies', ListType(TEXT)),
        ('packages', RecordType(tuple((key, PACKAGE_TYPE) for key in packages.keys()))),
    ))


def decode(expr: Expr, checker=None) -> Config:
    """
    Decode a normal-form manifest expression into a Config.

    Args:
        expr: The manifest, as produced by ``spacchetti.evaluator``
        checker: Optional ``DhallSource`` the manifest was evaluated from.
            Its answers take precedence over the shape of ``expr``, which
            has lost ``Optional`` wrappers and annotations.

    Returns:
        The decoded Config

    Raises:
        ConfigIsNotRecord: The manifest is not a record
        KeyIsMissing: ``name``, ``dependencies`` or ``packages`` is absent
            (or, for the first two, not of the expected type)
        PackagesIsNotRecord: ``packages`` is not a record
        WrongPackageType: An entry of ``packages`` is not a package
        TypeCheckError: The manifest is not a record and its type could
            not be inferred
    """
    if checker is not None:
        expected = manifest_type(expr)
        if expected is not None and checker.has_type((), expected, project=True):
            # Confirmed as a whole; the lifted tree is now faithful
            checker = None

    if not isinstance(expr, RecordLit) or (checker is not None and not checker.is_record(())):
        if checker is not None:
            raise ConfigIsNotRecord(checker.infer_type((), expr))
        raise ConfigIsNotRecord(type_of(expr))

    fields = as_record(expr)
    name = _required(fields, 'name', as_text, checker, TEXT)
    dependencies = _required(
        fields, 'dependencies', lambda e: as_list(e, as_package_name), checker, ListType(TEXT)
    )

    if 'packages' not in fields:
        raise KeyIsMissing('packages')
    packages_expr = fields['packages']
    if checker is not None and not checker.is_record(('packages',)):
        raise PackagesIsNotRecord(checker.refine(('packages',), packages_expr))
    if not isinstance(packages_expr, RecordLit):
        raise PackagesIsNotRecord(packages_expr)

    packages = {}
    for key, entry in packages_expr.fields:
        packages[PackageName(key)] = decode_package(entry, checker, ('packages', key))

    logger.debug(f"Decoded config '{name}' with {len(packages)} packages")
    return Config(name=name, dependencies=dependencies, packages=packages)
