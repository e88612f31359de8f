"""
Abstract syntax tree for tagfinder queries.

The tree is made of frozen dataclasses and is strictly owned: no node is
shared between parents. Every node remembers the offset of the token that
started it so later stages can report positioned errors; offsets are
excluded from equality, so two trees compare equal when their structure
and values match.

The validator produces a tree of the same node types whose values are the
annotated variants (TagIdsValue, PatternValue, TimeRangeValue) and which
contains no FunctionCall nodes.
"""

from dataclasses import dataclass, field as dc_field
from enum import Enum
from typing import FrozenSet, Iterator, Optional, Tuple, Union


class Unit(Enum):
    """Unit a numeric literal was normalized to at lex time."""
    BYTES = "bytes"
    SECONDS = "seconds"


class Field(Enum):
    """Queryable item attributes."""
    TAG = "tag"
    NAME = "name"
    SIZE = "size"
    MODIFIED = "modified"
    CREATED = "created"
    PATH = "path"
    TYPE = "type"

    @classmethod
    def from_name(cls, name: str) -> Optional['Field']:
        """Look up a field by its (case-insensitive) name or alias."""
        lowered = name.lower()
        if lowered in FIELD_ALIASES:
            return FIELD_ALIASES[lowered]
        try:
            return cls(lowered)
        except ValueError:
            return None


FIELD_ALIASES = {
    'filename': Field.NAME,
}


class Comparator(Enum):
    """Comparison operators, valued by their query-language spelling."""
    EQ = "="
    NOT_EQ = "!="
    LIKE = "~"
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    IN = "IN"

    @classmethod
    def from_symbol(cls, symbol: str) -> Optional['Comparator']:
        try:
            return cls(symbol)
        except ValueError:
            return None


FUNCTION_NAMES = ('contains', 'startsWith', 'endsWith')

# Sizes and epoch seconds are stored as SQLite INTEGER (signed 64-bit)
INTEGER_MIN = -2 ** 63
INTEGER_MAX = 2 ** 63 - 1


def fits_integer(number: float) -> bool:
    """Whether a numeric literal lies within the storage integer range."""
    return INTEGER_MIN <= number < INTEGER_MAX + 1


# Values

@dataclass(frozen=True)
class StringValue:
    text: str


@dataclass(frozen=True)
class NumberValue:
    number: float
    unit: Optional[Unit] = None


@dataclass(frozen=True)
class ListValue:
    items: Tuple['Value', ...]


@dataclass(frozen=True)
class TagIdsValue:
    """Tag ids a tag comparison resolved to; matched with OR semantics."""
    ids: FrozenSet[int]


@dataclass(frozen=True)
class PatternValue:
    """A LIKE pattern using `%`, `_` and `\\` as the escape character."""
    pattern: str


@dataclass(frozen=True)
class TimeRangeValue:
    """Half-open interval [start, end) of Unix epoch seconds."""
    start: int
    end: int


Value = Union[StringValue, NumberValue, ListValue, TagIdsValue, PatternValue, TimeRangeValue]


# Nodes

@dataclass(frozen=True)
class Comparison:
    field: Field
    comparator: Comparator
    value: Value
    offset: int = dc_field(default=0, compare=False)


@dataclass(frozen=True)
class And:
    left: 'Node'
    right: 'Node'
    offset: int = dc_field(default=0, compare=False)


@dataclass(frozen=True)
class Or:
    left: 'Node'
    right: 'Node'
    offset: int = dc_field(default=0, compare=False)


@dataclass(frozen=True)
class Not:
    inner: 'Node'
    offset: int = dc_field(default=0, compare=False)


@dataclass(frozen=True)
class FunctionCall:
    name: str
    field: Field
    value: Value
    offset: int = dc_field(default=0, compare=False)


Node = Union[Comparison, And, Or, Not, FunctionCall]


def iter_nodes(node: Node) -> Iterator[Node]:
    """Yield every node of the tree in pre-order, left to right."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        if isinstance(current, (And, Or)):
            stack.append(current.right)
            stack.append(current.left)
        elif isinstance(current, Not):
            stack.append(current.inner)
        elif not isinstance(current, (Comparison, FunctionCall)):
            raise TypeError(f"Unknown AST node: {type(current).__name__}")


def count_nodes(node: Node) -> int:
    """Number of nodes in the tree."""
    return sum(1 for _ in iter_nodes(node))
