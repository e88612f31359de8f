"""
In-memory backend: compiles validated queries to Python predicates.

The predicate is the reference semantics for the relational backend. Each
comparison reads item columns the same way the SQL does: missing sizes and
times count as 0, names and paths are folded with ASCII-only lowering, and
LIKE patterns are matched with the same escape rules.
"""

import logging
from typing import AbstractSet, Callable, List

from ..models.catalog import Item
from .ast import (
    And,
    Comparator,
    Comparison,
    Field,
    ListValue,
    Node,
    Not,
    NumberValue,
    Or,
    PatternValue,
    TagIdsValue,
    TimeRangeValue,
)
from .patterns import ascii_lower, file_name, like_to_regex
from .validator import DIRECTORY_TYPE, TYPE_EXTENSIONS, ValidatedQuery


logger = logging.getLogger(__name__)


Predicate = Callable[[Item, AbstractSet[int]], bool]

_TEXT_READERS = {
    Field.NAME: lambda item: ascii_lower(file_name(item.path)),
    Field.PATH: lambda item: ascii_lower(item.path),
}

_NUMERIC_READERS = {
    Field.SIZE: lambda item: item.size or 0,
    Field.MODIFIED: lambda item: item.modified_time or 0,
    Field.CREATED: lambda item: item.created_at or 0,
}

_NUMBER_TESTS = {
    Comparator.EQ: lambda v, n: v == n,
    Comparator.NOT_EQ: lambda v, n: v != n,
    Comparator.GT: lambda v, n: v > n,
    Comparator.LT: lambda v, n: v < n,
    Comparator.GTE: lambda v, n: v >= n,
    Comparator.LTE: lambda v, n: v <= n,
}

# Half-open [start, end) range semantics for each comparator
_RANGE_TESTS = {
    Comparator.EQ: lambda v, start, end: start <= v < end,
    Comparator.NOT_EQ: lambda v, start, end: not (start <= v < end),
    Comparator.GT: lambda v, start, end: v >= end,
    Comparator.GTE: lambda v, start, end: v >= start,
    Comparator.LT: lambda v, start, end: v < start,
    Comparator.LTE: lambda v, start, end: v < end,
}


def _always(result: bool) -> Predicate:
    return lambda item, tag_ids: result


def _compile(node: Node) -> Predicate:
    if isinstance(node, Comparison):
        return _compile_comparison(node)

    if isinstance(node, And):
        left, right = _compile(node.left), _compile(node.right)
        return lambda item, tag_ids: left(item, tag_ids) and right(item, tag_ids)

    if isinstance(node, Or):
        left, right = _compile(node.left), _compile(node.right)
        return lambda item, tag_ids: left(item, tag_ids) or right(item, tag_ids)

    if isinstance(node, Not):
        inner = _compile(node.inner)
        return lambda item, tag_ids: not inner(item, tag_ids)

    raise TypeError(f"Cannot compile node: {type(node).__name__}")


def _compile_comparison(node: Comparison) -> Predicate:
    field, comparator, value = node.field, node.comparator, node.value

    if field == Field.TAG:
        if not isinstance(value, TagIdsValue):
            raise TypeError("Tag comparison was not validated")
        wanted = value.ids
        if comparator == Comparator.NOT_EQ:
            return lambda item, tag_ids: wanted.isdisjoint(tag_ids)
        return lambda item, tag_ids: not wanted.isdisjoint(tag_ids)

    if field in _TEXT_READERS:
        read = _TEXT_READERS[field]
        if comparator == Comparator.LIKE:
            if not isinstance(value, PatternValue):
                raise TypeError("LIKE comparison was not validated")
            regex = like_to_regex(value.pattern)
            return lambda item, tag_ids: regex.fullmatch(read(item)) is not None
        if comparator == Comparator.IN:
            texts = frozenset(v.text for v in value.items)
            return lambda item, tag_ids: read(item) in texts
        text = value.text
        if comparator == Comparator.NOT_EQ:
            return lambda item, tag_ids: read(item) != text
        return lambda item, tag_ids: read(item) == text

    if field in _NUMERIC_READERS:
        read = _NUMERIC_READERS[field]
        if isinstance(value, NumberValue):
            test = _NUMBER_TESTS[comparator]
            number = value.number
            return lambda item, tag_ids: test(read(item), number)
        if not isinstance(value, TimeRangeValue):
            raise TypeError("Numeric comparison was not validated")
        range_test = _RANGE_TESTS[comparator]
        start, end = value.start, value.end
        return lambda item, tag_ids: range_test(read(item), start, end)

    if field == Field.TYPE:
        return _compile_type(node)

    raise TypeError(f"Cannot compile field: {field}")


def _compile_type(node: Comparison) -> Predicate:
    value = node.value
    kinds = [v.text for v in value.items] if isinstance(value, ListValue) else [value.text]

    checks: List[Predicate] = []
    for kind in kinds:
        if kind == DIRECTORY_TYPE:
            checks.append(lambda item, tag_ids: item.is_directory)
        elif TYPE_EXTENSIONS.get(kind):
            extensions = TYPE_EXTENSIONS[kind]
            checks.append(
                lambda item, tag_ids, extensions=extensions: (
                    not item.is_directory and ascii_lower(item.path).endswith(extensions)
                )
            )

    if not checks:
        matched = _always(False)
    else:
        matched = lambda item, tag_ids: any(check(item, tag_ids) for check in checks)

    if node.comparator == Comparator.NOT_EQ:
        return lambda item, tag_ids: not matched(item, tag_ids)
    return matched


def compile_predicate(query: ValidatedQuery) -> Predicate:
    """
    Compile a validated query into an in-memory predicate.

    Args:
        query: Output of QueryValidator.validate()

    Returns:
        Callable taking an item and the set of tag ids attached to it
    """
    predicate = _compile(query.root)
    logger.debug(f"Compiled in-memory predicate for {query.node_count} nodes")
    return predicate


def evaluate(query: ValidatedQuery, item: Item, tag_ids: AbstractSet[int]) -> bool:
    """Evaluate a validated query against a single item."""
    return compile_predicate(query)(item, tag_ids)
