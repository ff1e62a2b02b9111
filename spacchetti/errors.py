"""
Errors raised while decoding a spacchetti.dhall manifest.

The set of failures is closed: every way a well-typed Dhall value can fail
to be a spacchetti config is one of the four classes below. Each carries
only what is needed to explain the failure; turning that into a message
for the user is ``spacchetti.render.render_error``.
"""

from .expr import Expr


class ConfigReadError(Exception):
    """Base class for manifest decoding failures."""

    def __eq__(self, other):
        return type(self) is type(other) and self.args == other.args

    __hash__ = Exception.__hash__


class WrongPackageType(ConfigReadError):
    """An entry under ``packages`` is not a package."""

    def __init__(self, expr: Expr):
        super().__init__(expr)
        self.expr = expr

    def __str__(self) -> str:
        return f"Not a package: {self.expr}"


class ConfigIsNotRecord(ConfigReadError):
    """The manifest is not a record. Carries the type it has instead."""

    def __init__(self, type_expr: Expr):
        super().__init__(type_expr)
        self.type_expr = type_expr

    def __str__(self) -> str:
        return f"Config is not a record, its type is: {self.type_expr}"


class PackagesIsNotRecord(ConfigReadError):
    """The value under ``packages`` is not a record."""

    def __init__(self, expr: Expr):
        super().__init__(expr)
        self.expr = expr

    def __str__(self) -> str:
        return f"Packages is not a record: {self.expr}"


class KeyIsMissing(ConfigReadError):
    """A required top-level key is absent."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Missing key: {self.key}"
