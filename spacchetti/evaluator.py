"""
Bridge to the Dhall evaluator.

Parsing, import resolution, normalization and type checking are done by
the ``dhall`` library. This module hands it source text and lifts the
result into ``spacchetti.expr`` nodes.

The library only returns plain Python values, so the lifted tree cannot
say whether a string was ``Text`` or ``Optional Text``. ``DhallSource``
keeps the source around and answers such questions by asking the
evaluator again with an annotation, e.g.
``(<manifest>).packages.`prelude` : { dependencies : List Text, ... }``.
"""

from itertools import islice
from pathlib import Path
from typing import Sequence, Union

from .config import logger
from .expr import Expr, RecordLit, RecordType, TypeCheckError, candidate_types, from_python, pretty, retype

# Upper bound on annotations tried when inferring one type
MAX_CANDIDATES = 64


class EvaluationError(Exception):
    """Raised when the Dhall evaluator rejects a manifest."""

    def __init__(self, message: str, source: str = "<text>"):
        super().__init__(message)
        self.message = message
        self.source = source

    def __str__(self) -> str:
        return f"{self.source}: {self.message}"


def _import_expression(path: Path) -> str:
    """
    Dhall import of an absolute path, with every component quoted.

    Raises:
        EvaluationError: If a component cannot appear in a quoted Dhall
            path (a double quote or a control character)
    """
    parts = path.resolve().parts[1:]
    for part in parts:
        if '"' in part or any(ord(c) < 0x20 or ord(c) == 0x7f for c in part):
            raise EvaluationError(
                f"Path component {part!r} cannot be written as a Dhall import", str(path)
            )
    return ''.join(f'/"{part}"' for part in parts)


def _label(name: str) -> str:
    return f"`{name}`"


class DhallSource:
    """
    A Dhall expression that can be evaluated and queried.

    ``text`` is handed to the evaluator verbatim; relative imports in it
    resolve against the working directory.
    """

    def __init__(self, text: str, source: str = "<text>"):
        self.text = text
        self.source = source

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'DhallSource':
        """
        Source for the Dhall file at ``path``.

        The file is imported by absolute path so its own relative imports
        resolve against its directory rather than the working directory.

        Raises:
            FileNotFoundError: If the file does not exist
            EvaluationError: If the path cannot be written as an import
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Manifest not found: {path}")
        return cls(_import_expression(path), source=str(path))

    def evaluate(self) -> Expr:
        """
        Resolve imports and reduce the expression to normal form.

        Raises:
            EvaluationError: If the Dhall library fails to parse, resolve,
                type-check or normalize the expression
        """
        import dhall

        logger.debug(f"Evaluating Dhall expression from {self.source}")
        try:
            value = dhall.loads(self.text)
        except Exception as e:
            raise EvaluationError(str(e), self.source) from e
        try:
            return from_python(value)
        except ValueError as e:
            raise EvaluationError(str(e), self.source) from e

    # Queries. The expression itself already evaluated, so any failure
    # here is the evaluator refusing the query, i.e. a type error.

    def _accepts(self, query: str) -> bool:
        import dhall

        try:
            dhall.loads(query)
        except Exception as e:
            logger.debug(f"Evaluator rejected query on {self.source}: {e}")
            return False
        return True

    def _select(self, path: Sequence[str]) -> str:
        # Newlines keep a trailing line comment from swallowing the paren
        return f"(\n{self.text}\n)" + ''.join(f".{_label(key)}" for key in path)

    def is_record(self, path: Sequence[str] = ()) -> bool:
        """Whether the value at ``path`` is a record (projecting no fields type-checks)."""
        return self._accepts(f"{self._select(path)}.{{}}")

    def has_type(self, path: Sequence[str], annotation: Expr, project: bool = False) -> bool:
        """
        Whether the value at ``path`` type-checks against ``annotation``.

        With ``project`` the value is first narrowed to the fields of the
        record type ``annotation``, so extra fields are allowed.
        """
        selected = self._select(path)
        if project and isinstance(annotation, RecordType):
            selected += '.{ ' + ', '.join(_label(name) for name, _ in annotation.fields) + ' }'
        return self._accepts(f"{selected} : {pretty(annotation)}")

    def infer_type(self, path: Sequence[str], expr: Expr) -> Expr:
        """
        The type of the value at ``path``, whose lifted form is ``expr``.

        Raises:
            TypeCheckError: If none of the candidate types is accepted
        """
        for candidate in islice(candidate_types(expr), MAX_CANDIDATES):
            if self.has_type(path, candidate):
                return candidate
        raise TypeCheckError("Cannot infer the type of this expression", expr)

    def refine(self, path: Sequence[str], expr: Expr) -> Expr:
        """
        The value at ``path`` as it was written, as far as it can be
        recovered from its lifted form ``expr``.

        Records are refined field by field; anything whose type cannot be
        inferred is returned as lifted.
        """
        if isinstance(expr, RecordLit) and self.is_record(path):
            return RecordLit(tuple(
                (name, self.refine(tuple(path) + (name,), value)) for name, value in expr.fields
            ))
        try:
            return retype(expr, self.infer_type(path, expr))
        except TypeCheckError:
            return expr


def evaluate(text: str, source: str = "<text>") -> Expr:
    """
    Resolve imports in ``text`` and reduce it to normal form.

    Relative imports resolve against the working directory.

    Raises:
        EvaluationError: If the Dhall library rejects the expression
    """
    return DhallSource(text, source).evaluate()


def evaluate_file(path: Union[str, Path]) -> Expr:
    """
    Evaluate the Dhall file at ``path``.

    Raises:
        FileNotFoundError: If the file does not exist
        EvaluationError: If the Dhall library rejects it
    """
    return DhallSource.from_file(path).evaluate()
