"""
Normal-form Dhall expressions for spacchetti.

The ``dhall`` library parses the manifest, resolves its imports and
reduces it to normal form. What comes back is plain Python data, which
this module lifts into a small expression tree so the decoder can tell a
record from a list and report the type of a value that has the wrong
shape.

The lift is lossy: the library returns ``Some x`` as ``x``, every ``None``
as ``None``, ``+1`` as ``1`` and ``[] : List Text`` as ``[]``.
``candidate_types`` lists the types such a value may have had and
``retype`` restores the literal once the evaluator has confirmed one of
them.

Primitives:
    type_of   - infer the type of an expression
    check     - check an expression against an expected type
    normalize - strip annotations from a type-checked expression
    pretty    - render an expression in Dhall syntax
"""

import json
from dataclasses import dataclass
from itertools import islice, product
from typing import Any, Dict, Iterator, Optional, Tuple


class TypeCheckError(Exception):
    """Raised when an expression does not type-check."""

    def __init__(self, message: str, expr: 'Expr', expected: Optional['Expr'] = None):
        super().__init__(message)
        self.message = message
        self.expr = expr
        self.expected = expected

    def __eq__(self, other):
        return (
            isinstance(other, TypeCheckError)
            and (self.message, self.expr, self.expected)
            == (other.message, other.expr, other.expected)
        )

    __hash__ = Exception.__hash__


class Expr:
    """Base class of all expression nodes."""

    def __str__(self) -> str:
        return pretty(self)


# =============================================================================
# TERMS
# =============================================================================

@dataclass(frozen=True)
class TextLit(Expr):
    value: str


@dataclass(frozen=True)
class NaturalLit(Expr):
    value: int


@dataclass(frozen=True)
class IntegerLit(Expr):
    value: int


@dataclass(frozen=True)
class DoubleLit(Expr):
    value: float


@dataclass(frozen=True)
class BoolLit(Expr):
    value: bool


@dataclass(frozen=True)
class ListLit(Expr):
    """A list literal. ``element_type`` is only known for annotated lists."""
    items: Tuple[Expr, ...] = ()
    element_type: Optional[Expr] = None


@dataclass(frozen=True)
class RecordLit(Expr):
    """A record literal. Field order is the order of the source."""
    fields: Tuple[Tuple[str, Expr], ...] = ()

    def get(self, key: str) -> Optional[Expr]:
        for name, value in self.fields:
            if name == key:
                return value
        return None

    def keys(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.fields)


@dataclass(frozen=True)
class SomeLit(Expr):
    value: Expr


@dataclass(frozen=True)
class NoneLit(Expr):
    element_type: Optional[Expr] = None


@dataclass(frozen=True)
class Annot(Expr):
    """``expr : annotation``"""
    expr: Expr
    annotation: Expr


# =============================================================================
# TYPES
# =============================================================================

@dataclass(frozen=True)
class Builtin(Expr):
    """A builtin type or universe constant (Text, Natural, Type, Kind...)."""
    name: str


@dataclass(frozen=True)
class ListType(Expr):
    element: Expr


@dataclass(frozen=True)
class OptionalType(Expr):
    element: Expr


@dataclass(frozen=True)
class RecordType(Expr):
    fields: Tuple[Tuple[str, Expr], ...] = ()

    def as_dict(self) -> Dict[str, Expr]:
        return dict(self.fields)


TEXT = Builtin('Text')
NATURAL = Builtin('Natural')
INTEGER = Builtin('Integer')
DOUBLE = Builtin('Double')
BOOL = Builtin('Bool')
TYPE = Builtin('Type')
KIND = Builtin('Kind')
SORT = Builtin('Sort')

_SCALAR_TYPES = {
    TextLit: TEXT,
    NaturalLit: NATURAL,
    IntegerLit: INTEGER,
    DoubleLit: DOUBLE,
    BoolLit: BOOL,
}

_UNIVERSES = {TYPE: KIND, KIND: SORT}


def from_python(value: Any) -> Expr:
    """
    Lift a value returned by the ``dhall`` library into an expression.

    Raises:
        ValueError: If the value has no Dhall counterpart
    """
    # bool before int: bool is a subclass of int
    if isinstance(value, bool):
        return BoolLit(value)
    if isinstance(value, int):
        return NaturalLit(value) if value >= 0 else IntegerLit(value)
    if isinstance(value, float):
        return DoubleLit(value)
    if isinstance(value, str):
        return TextLit(value)
    if value is None:
        return NoneLit()
    if isinstance(value, (list, tuple)):
        return ListLit(tuple(from_python(item) for item in value))
    if isinstance(value, dict):
        return RecordLit(tuple((str(k), from_python(v)) for k, v in value.items()))
    raise ValueError(f"Cannot represent {type(value).__name__} as a Dhall expression")


# =============================================================================
# TYPE CHECKING
# =============================================================================

def equivalent(left: Expr, right: Expr) -> bool:
    """Judgmental equality of two normal-form types (record fields are unordered)."""
    if isinstance(left, RecordType) and isinstance(right, RecordType):
        lfields, rfields = left.as_dict(), right.as_dict()
        if lfields.keys() != rfields.keys():
            return False
        return all(equivalent(lfields[k], rfields[k]) for k in lfields)
    if isinstance(left, ListType) and isinstance(right, ListType):
        return equivalent(left.element, right.element)
    if isinstance(left, OptionalType) and isinstance(right, OptionalType):
        return equivalent(left.element, right.element)
    return left == right


def _is_type(expr: Expr) -> bool:
    try:
        return type_of(expr) == TYPE
    except TypeCheckError:
        return False


def type_of(expr: Expr) -> Expr:
    """
    Infer the type of an expression.

    Raises:
        TypeCheckError: If the expression is ill-typed or its type cannot
            be inferred (e.g. an unannotated empty list)
    """
    scalar = _SCALAR_TYPES.get(type(expr))
    if scalar is not None:
        return scalar

    if isinstance(expr, Builtin):
        if expr in _UNIVERSES:
            return _UNIVERSES[expr]
        if expr == SORT:
            raise TypeCheckError("Sort has no type", expr)
        return TYPE

    if isinstance(expr, (ListType, OptionalType)):
        if not _is_type(expr.element):
            raise TypeCheckError("Invalid type argument", expr)
        return TYPE

    if isinstance(expr, RecordType):
        for _, field_type in expr.fields:
            if not _is_type(field_type):
                raise TypeCheckError("Invalid field type", field_type)
        return TYPE

    if isinstance(expr, ListLit):
        if expr.element_type is not None:
            return check(expr, ListType(expr.element_type))
        if not expr.items:
            raise TypeCheckError("An empty list requires a type annotation", expr)
        first = type_of(expr.items[0])
        for item in expr.items[1:]:
            if not equivalent(type_of(item), first):
                raise TypeCheckError("List elements should all have the same type", item, first)
        return ListType(first)

    if isinstance(expr, RecordLit):
        return RecordType(tuple((name, type_of(value)) for name, value in expr.fields))

    if isinstance(expr, SomeLit):
        return OptionalType(type_of(expr.value))

    if isinstance(expr, NoneLit):
        if expr.element_type is None:
            raise TypeCheckError("Cannot infer the type of None", expr)
        return check(expr, OptionalType(expr.element_type))

    if isinstance(expr, Annot):
        if not _is_type(expr.annotation):
            raise TypeCheckError("Annotation is not a type", expr.annotation)
        return check(expr.expr, expr.annotation)

    raise TypeCheckError(f"Unknown expression {type(expr).__name__}", expr)


def check(expr: Expr, expected: Expr) -> Expr:
    """
    Check ``expr`` against ``expected`` and return ``expected``.

    Unlike ``type_of`` this accepts unannotated empty lists and ``None``
    values, since the expected type supplies the missing element type.

    Raises:
        TypeCheckError: If the expression does not have the expected type
    """
    if isinstance(expr, ListLit) and isinstance(expected, ListType):
        if expr.element_type is not None and not equivalent(expr.element_type, expected.element):
            raise TypeCheckError("Expression doesn't match annotation", expr, expected)
        for item in expr.items:
            check(item, expected.element)
        return expected

    if isinstance(expr, RecordLit) and isinstance(expected, RecordType):
        wanted = expected.as_dict()
        present = set(expr.keys())
        missing = [name for name in wanted if name not in present]
        if missing:
            raise TypeCheckError(f"Missing record field: {missing[0]}", expr, expected)
        extra = [name for name in expr.keys() if name not in wanted]
        if extra:
            raise TypeCheckError(f"Unexpected record field: {extra[0]}", expr, expected)
        for name, value in expr.fields:
            check(value, wanted[name])
        return expected

    if isinstance(expr, NoneLit) and isinstance(expected, OptionalType):
        if expr.element_type is not None and not equivalent(expr.element_type, expected.element):
            raise TypeCheckError("Expression doesn't match annotation", expr, expected)
        return expected

    if isinstance(expr, SomeLit) and isinstance(expected, OptionalType):
        check(expr.value, expected.element)
        return expected

    actual = type_of(expr)
    if not equivalent(actual, expected):
        raise TypeCheckError("Expression doesn't match annotation", expr, expected)
    return expected


def normalize(expr: Expr) -> Expr:
    """Reduce a type-checked expression to normal form."""
    if isinstance(expr, Annot):
        return normalize(expr.expr)
    if isinstance(expr, ListLit):
        items = tuple(normalize(item) for item in expr.items)
        # Only an empty list keeps its annotation in normal form
        return ListLit(items, expr.element_type if not items else None)
    if isinstance(expr, RecordLit):
        return RecordLit(tuple((name, normalize(value)) for name, value in expr.fields))
    if isinstance(expr, SomeLit):
        return SomeLit(normalize(expr.value))
    return expr


# =============================================================================
# RECOVERING ERASED TYPES
# =============================================================================

_SCALARS = (TEXT, NATURAL, INTEGER, DOUBLE, BOOL)

# Per-field alternatives considered when guessing a record type
_FIELD_CANDIDATES = 8


def _bare_candidates(expr: Expr) -> Iterator[Expr]:
    if isinstance(expr, NaturalLit):
        # +1 and 1 both come back as the int 1
        yield NATURAL
        yield INTEGER
    elif type(expr) in _SCALAR_TYPES:
        yield _SCALAR_TYPES[type(expr)]
    elif isinstance(expr, NoneLit):
        if expr.element_type is not None:
            yield OptionalType(expr.element_type)
        else:
            for scalar in _SCALARS:
                yield OptionalType(scalar)
    elif isinstance(expr, SomeLit):
        for candidate in candidate_types(expr.value):
            yield OptionalType(candidate)
    elif isinstance(expr, ListLit):
        if expr.element_type is not None:
            yield ListType(expr.element_type)
        elif not expr.items:
            for scalar in _SCALARS:
                yield ListType(scalar)
        else:
            for candidate in candidate_types(expr.items[0]):
                yield ListType(candidate)
    elif isinstance(expr, RecordLit):
        names = expr.keys()
        choices = [list(islice(candidate_types(value), _FIELD_CANDIDATES)) for _, value in expr.fields]
        for combination in product(*choices):
            yield RecordType(tuple(zip(names, combination)))


def candidate_types(expr: Expr) -> Iterator[Expr]:
    """
    Yield the types ``expr`` may have had before the evaluator's output
    was lifted, most likely first.

    Every candidate is followed by its ``Optional`` form, since ``Some x``
    reaches us as ``x``. Unannotated ``None`` and ``[]`` only try scalar
    element types. The sequence can be long for records; callers bound it.
    """
    for candidate in _bare_candidates(expr):
        yield candidate
        if not isinstance(expr, NoneLit):
            yield OptionalType(candidate)


def retype(expr: Expr, type_: Expr) -> Expr:
    """
    Rebuild a lifted expression so that it has ``type_``.

    Restores ``Some``, ``None T``, Integer literals and empty-list
    annotations. Parts that already agree with ``type_`` are unchanged.
    """
    if isinstance(type_, OptionalType):
        if isinstance(expr, NoneLit):
            return NoneLit(type_.element)
        if isinstance(expr, SomeLit):
            return SomeLit(retype(expr.value, type_.element))
        return SomeLit(retype(expr, type_.element))
    if type_ == INTEGER and isinstance(expr, NaturalLit):
        return IntegerLit(expr.value)
    if isinstance(type_, ListType) and isinstance(expr, ListLit):
        items = tuple(retype(item, type_.element) for item in expr.items)
        return ListLit(items, None if items else type_.element)
    if isinstance(type_, RecordType) and isinstance(expr, RecordLit):
        types = type_.as_dict()
        return RecordLit(tuple(
            (name, retype(value, types[name]) if name in types else value)
            for name, value in expr.fields
        ))
    return expr


# =============================================================================
# PRETTY PRINTING
# =============================================================================

_RESERVED_LABELS = {
    'if', 'then', 'else', 'let', 'in', 'as', 'using', 'merge', 'missing',
    'Infinity', 'NaN', 'Some', 'toMap', 'assert', 'forall', 'with', 'showConstructor',
}


def _label(name: str) -> str:
    if name and (name[0].isalpha() or name[0] == '_') and name not in _RESERVED_LABELS \
            and all(c.isalnum() or c in '_-/' for c in name):
        return name
    return f"`{name}`"


def _text(value: str) -> str:
    # JSON escaping, plus `$` so interpolation is never triggered
    return json.dumps(value, ensure_ascii=False).replace('$', '\\u0024')


def _double(value: float) -> str:
    if value != value:
        return 'NaN'
    if value in (float('inf'), float('-inf')):
        return 'Infinity' if value > 0 else '-Infinity'
    return repr(value)


def _argument(expr: Expr) -> str:
    """Render an expression in function-argument position."""
    flat = _flat(expr)
    if isinstance(expr, (ListType, OptionalType, SomeLit, Annot)) or \
            (isinstance(expr, (ListLit, NoneLit)) and ' : ' in flat):
        return f"({flat})"
    return flat


def _flat(expr: Expr) -> str:
    if isinstance(expr, TextLit):
        return _text(expr.value)
    if isinstance(expr, NaturalLit):
        return str(expr.value)
    if isinstance(expr, IntegerLit):
        return f"{expr.value:+d}"
    if isinstance(expr, DoubleLit):
        return _double(expr.value)
    if isinstance(expr, BoolLit):
        return 'True' if expr.value else 'False'
    if isinstance(expr, Builtin):
        return expr.name
    if isinstance(expr, ListType):
        return f"List {_argument(expr.element)}"
    if isinstance(expr, OptionalType):
        return f"Optional {_argument(expr.element)}"
    if isinstance(expr, SomeLit):
        return f"Some {_argument(expr.value)}"
    if isinstance(expr, NoneLit):
        if expr.element_type is None:
            return 'None'
        return f"None {_argument(expr.element_type)}"
    if isinstance(expr, ListLit):
        if not expr.items:
            if expr.element_type is None:
                return '[]'
            return f"[] : List {_argument(expr.element_type)}"
        return '[ ' + ', '.join(_flat(item) for item in expr.items) + ' ]'
    if isinstance(expr, RecordLit):
        if not expr.fields:
            return '{=}'
        return '{ ' + ', '.join(f"{_label(k)} = {_flat(v)}" for k, v in expr.fields) + ' }'
    if isinstance(expr, RecordType):
        if not expr.fields:
            return '{}'
        return '{ ' + ', '.join(f"{_label(k)} : {_flat(v)}" for k, v in expr.fields) + ' }'
    if isinstance(expr, Annot):
        return f"{_flat(expr.expr)} : {_flat(expr.annotation)}"
    return repr(expr)


def _layout(expr: Expr, indent: int, width: int) -> str:
    """
    Lay out ``expr`` starting at column ``indent``.

    The first line carries no leading padding; continuation lines are
    padded to ``indent``.
    """
    flat = _flat(expr)
    if indent + len(flat) <= width:
        return flat

    pad = ' ' * indent

    if isinstance(expr, ListLit) and expr.items:
        lines = []
        for i, item in enumerate(expr.items):
            lead = '[ ' if i == 0 else ', '
            body = _layout(item, indent + 2, width)
            lines.append((pad if i else '') + lead + body)
        lines.append(pad + ']')
        return '\n'.join(lines)

    if isinstance(expr, (RecordLit, RecordType)) and expr.fields:
        separator = ' = ' if isinstance(expr, RecordLit) else ' : '
        lines = []
        for i, (name, value) in enumerate(expr.fields):
            lead = ('{ ' if i == 0 else ', ') + _label(name) + separator
            body = _layout(value, indent + len(lead), width)
            lines.append((pad if i else '') + lead + body)
        lines.append(pad + '}')
        return '\n'.join(lines)

    if isinstance(expr, Annot):
        body = _layout(expr.expr, indent, width)
        return body + '\n' + pad + ': ' + _layout(expr.annotation, indent + 2, width)

    return flat


def pretty(expr: Expr, width: int = 80, indent: int = 0) -> str:
    """
    Render an expression in Dhall syntax.

    Values that fit in ``width`` columns stay on one line; longer records
    and lists are broken one entry per line, with continuation lines
    indented by ``indent`` columns. Nothing is ever elided.
    """
    return _layout(expr, indent, width)
