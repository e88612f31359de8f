"""
Semantic validation of parsed queries.

The validator walks a parsed tree once and produces an equivalent tree the
compilers can consume without further checks:

- field/comparator pairs are checked against a fixed compatibility table
- values are checked for type; no coercion happens between strings and
  numbers
- tag text is resolved to tag ids through the tag catalog
- globs become LIKE patterns and dates become epoch-second ranges
- contains/startsWith/endsWith calls become LIKE comparisons

Complexity limits are enforced before any of that, so oversized queries
fail fast.
"""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from ..models.config import EngineConfig, UnresolvedTagPolicy
from .ast import (
    And,
    Comparator,
    Comparison,
    Field,
    FunctionCall,
    ListValue,
    Node,
    Not,
    NumberValue,
    Or,
    PatternValue,
    StringValue,
    TagIdsValue,
    TimeRangeValue,
    Unit,
    Value,
    fits_integer,
    iter_nodes,
)
from .errors import ErrorKind, QueryError, ValidationError
from .patterns import ascii_lower, escape_like, glob_to_like
from .temporal import Clock, DateParseError, resolve_time_range


logger = logging.getLogger(__name__)


_ORDERED = frozenset({
    Comparator.EQ, Comparator.NOT_EQ,
    Comparator.GT, Comparator.LT, Comparator.GTE, Comparator.LTE,
})
_TEXTUAL = frozenset({Comparator.EQ, Comparator.NOT_EQ, Comparator.LIKE, Comparator.IN})

FIELD_COMPARATORS: Dict[Field, FrozenSet[Comparator]] = {
    Field.TAG: _TEXTUAL,
    Field.NAME: _TEXTUAL,
    Field.PATH: _TEXTUAL,
    Field.SIZE: _ORDERED,
    Field.MODIFIED: _ORDERED,
    Field.CREATED: _ORDERED,
    Field.TYPE: frozenset({Comparator.EQ, Comparator.NOT_EQ, Comparator.IN}),
}

# Affixes wrapped around the literal text of each function's argument
FUNCTION_AFFIXES = {
    'contains': ('%', '%'),
    'startsWith': ('', '%'),
    'endsWith': ('%', ''),
}

TYPE_EXTENSIONS: Dict[str, Tuple[str, ...]] = {
    'image': ('.jpg', '.jpeg', '.png', '.gif', '.bmp', '.webp', '.svg', '.ico', '.tiff', '.tif'),
    'video': ('.mp4', '.avi', '.mkv', '.mov', '.wmv', '.flv', '.webm', '.m4v'),
    'document': ('.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx', '.txt', '.csv', '.rtf'),
    'audio': ('.mp3', '.wav', '.flac', '.aac', '.ogg', '.wma', '.m4a'),
    'archive': ('.zip', '.rar', '.7z', '.tar', '.gz', '.bz2', '.xz'),
}
DIRECTORY_TYPE = 'directory'


@dataclass(frozen=True)
class ValidatedQuery:
    """
    A query that passed semantic validation.

    Attributes:
        root: Validated tree (annotated values, no function calls)
        source: The original query text
        node_count: Number of nodes in the parsed tree
        unresolved_tags: Tag texts that matched no tag
    """
    root: Node
    source: str
    node_count: int
    unresolved_tags: Tuple[str, ...] = ()


class QueryValidator:
    """
    Validates parsed trees against the tag catalog.

    The catalog only needs list_tags_matching() and list_tags_like(); see
    tagfinder.tools.base.TagCatalog. A validator keeps no state between
    validate() calls.
    """

    def __init__(
        self,
        catalog,
        config: Optional[EngineConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.catalog = catalog
        self.config = config or EngineConfig()
        self.clock = clock
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def validate(self, node: Node, source: str = '') -> ValidatedQuery:
        """
        Validate a parsed tree.

        Args:
            node: Root of the parsed tree
            source: Query text, used for error snippets

        Returns:
            ValidatedQuery wrapping the annotated tree

        Raises:
            ValidationError: On limit violations, incompatible comparators,
                type mismatches, malformed dates, or unresolved tags when
                the policy is 'error'
        """
        try:
            node_count = self._check_limits(node)
            unresolved: List[str] = []
            root = self._bind(node, unresolved)
        except QueryError as e:
            raise e.with_source(source)

        self.logger.debug(f"Validated query with {node_count} nodes")
        return ValidatedQuery(
            root=root,
            source=source,
            node_count=node_count,
            unresolved_tags=tuple(unresolved),
        )

    # Limits

    def _check_limits(self, node: Node) -> int:
        limits = self.config.limits
        count = 0
        for current in iter_nodes(node):
            count += 1
            if count > limits.max_nodes:
                raise ValidationError(
                    ErrorKind.QUERY_TOO_COMPLEX,
                    f"Query has more than {limits.max_nodes} nodes",
                    current.offset,
                )
            if isinstance(current, Comparison) and isinstance(current.value, ListValue):
                if len(current.value.items) > limits.max_in_list:
                    raise ValidationError(
                        ErrorKind.QUERY_TOO_COMPLEX,
                        f"IN list has {len(current.value.items)} values; the limit is {limits.max_in_list}",
                        current.offset,
                    )
        return count

    # Tree walk

    def _bind(self, node: Node, unresolved: List[str]) -> Node:
        if isinstance(node, Comparison):
            return self._bind_comparison(node, unresolved)
        if isinstance(node, FunctionCall):
            return self._bind_function(node, unresolved)
        if isinstance(node, And):
            return And(self._bind(node.left, unresolved), self._bind(node.right, unresolved), offset=node.offset)
        if isinstance(node, Or):
            return Or(self._bind(node.left, unresolved), self._bind(node.right, unresolved), offset=node.offset)
        if isinstance(node, Not):
            return Not(self._bind(node.inner, unresolved), offset=node.offset)
        raise TypeError(f"Unknown AST node: {type(node).__name__}")

    def _bind_comparison(self, node: Comparison, unresolved: List[str]) -> Comparison:
        field, comparator = node.field, node.comparator
        if comparator not in FIELD_COMPARATORS[field]:
            raise ValidationError(
                ErrorKind.INCOMPATIBLE_COMPARATOR,
                f"Comparator '{comparator.value}' cannot be used with field '{field.value}'",
                node.offset,
            )

        if field == Field.TAG:
            texts = self._string_values(node)
            if comparator == Comparator.LIKE:
                ids = self._resolve_tag_pattern(texts[0], glob_to_like, node.offset, unresolved)
            else:
                ids = set()
                for text in texts:
                    ids |= self._resolve_tag_text(text, node.offset, unresolved)
            value: Value = TagIdsValue(frozenset(ids))

        elif field in (Field.NAME, Field.PATH):
            texts = self._string_values(node)
            if comparator == Comparator.LIKE:
                value = PatternValue(ascii_lower(glob_to_like(texts[0])))
            elif comparator == Comparator.IN:
                value = ListValue(tuple(StringValue(ascii_lower(t)) for t in texts))
            else:
                value = StringValue(ascii_lower(texts[0]))

        elif field == Field.TYPE:
            texts = [t.strip().lower() for t in self._string_values(node)]
            for text in texts:
                if text != DIRECTORY_TYPE and text not in TYPE_EXTENSIONS:
                    self.logger.info(f"Unknown item type '{text}' matches no items")
            if comparator == Comparator.IN:
                value = ListValue(tuple(StringValue(t) for t in texts))
            else:
                value = StringValue(texts[0])

        elif field == Field.SIZE:
            value = self._size_value(node)

        elif field in (Field.MODIFIED, Field.CREATED):
            value = self._time_value(node)

        else:
            raise TypeError(f"Unknown field: {field}")

        return Comparison(field, comparator, value, offset=node.offset)

    def _bind_function(self, node: FunctionCall, unresolved: List[str]) -> Comparison:
        if Comparator.LIKE not in FIELD_COMPARATORS[node.field]:
            raise ValidationError(
                ErrorKind.INCOMPATIBLE_COMPARATOR,
                f"{node.name}() cannot be used with field '{node.field.value}'",
                node.offset,
            )
        if not isinstance(node.value, StringValue):
            raise ValidationError(
                ErrorKind.TYPE_MISMATCH,
                f"{node.name}() expects a string value",
                node.offset,
            )

        prefix, suffix = FUNCTION_AFFIXES[node.name]

        def to_pattern(text: str) -> str:
            return prefix + escape_like(text) + suffix

        if node.field == Field.TAG:
            ids = self._resolve_tag_pattern(node.value.text, to_pattern, node.offset, unresolved)
            value: Value = TagIdsValue(frozenset(ids))
        else:
            value = PatternValue(ascii_lower(to_pattern(node.value.text)))

        return Comparison(node.field, Comparator.LIKE, value, offset=node.offset)

    # Value checks

    def _string_values(self, node: Comparison) -> List[str]:
        values = node.value.items if isinstance(node.value, ListValue) else (node.value,)
        texts = []
        for value in values:
            if not isinstance(value, StringValue):
                raise ValidationError(
                    ErrorKind.TYPE_MISMATCH,
                    f"Field '{node.field.value}' expects string values",
                    node.offset,
                )
            texts.append(value.text)
        return texts

    def _size_value(self, node: Comparison) -> NumberValue:
        value = node.value
        if not isinstance(value, NumberValue) or value.unit not in (None, Unit.BYTES):
            raise ValidationError(
                ErrorKind.TYPE_MISMATCH,
                "Field 'size' expects a number, optionally with a B/KB/MB/GB/TB suffix",
                node.offset,
            )
        if not fits_integer(value.number):
            raise ValidationError(
                ErrorKind.TYPE_MISMATCH,
                f"Size {value.number:g} bytes is out of range",
                node.offset,
            )
        return NumberValue(value.number, Unit.BYTES)

    def _time_value(self, node: Comparison) -> TimeRangeValue:
        try:
            start, end = resolve_time_range(node.value, self.clock)
        except DateParseError as e:
            byte_size = isinstance(node.value, NumberValue) and node.value.unit == Unit.BYTES
            kind = ErrorKind.TYPE_MISMATCH if byte_size else ErrorKind.MALFORMED_DATE
            raise ValidationError(kind, f"Field '{node.field.value}': {e}", node.offset) from e
        return TimeRangeValue(start, end)

    # Tag resolution

    def _resolve_tag_text(self, text: str, offset: int, unresolved: List[str]) -> Set[int]:
        refs = []
        separator = self.config.validation.group_separator
        if separator in text:
            group, _, tag_value = text.partition(separator)
            refs = self.catalog.list_tags_matching(tag_value.strip(), group.strip())
        if not refs:
            refs = self.catalog.list_tags_matching(text)
        return self._collect(refs, text, offset, unresolved)

    def _resolve_tag_pattern(self, text: str, to_pattern, offset: int, unresolved: List[str]) -> Set[int]:
        refs = []
        separator = self.config.validation.group_separator
        if separator in text:
            group, _, tag_value = text.partition(separator)
            refs = self.catalog.list_tags_like(to_pattern(tag_value.strip()), group.strip())
        if not refs:
            refs = self.catalog.list_tags_like(to_pattern(text))
        return self._collect(refs, text, offset, unresolved)

    def _collect(self, refs, text: str, offset: int, unresolved: List[str]) -> Set[int]:
        if refs:
            return {ref.tag_id for ref in refs}

        if self.config.validation.unresolved_tags == UnresolvedTagPolicy.ERROR:
            raise ValidationError(
                ErrorKind.UNRESOLVED_TAG,
                f"No tag matches '{text}'",
                offset,
            )
        self.logger.warning(f"Tag '{text}' matches no tags; comparison resolves to an empty set")
        unresolved.append(text)
        return set()
