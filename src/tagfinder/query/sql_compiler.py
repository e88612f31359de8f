"""
Relational backend: compiles validated queries to SQL filter expressions.

The output is a boolean expression over the items table (aliased `i`)
plus its positional parameters, in left-to-right tree order. Tag membership
is always an EXISTS / NOT EXISTS subquery against item_tags, which stays
correct under any nesting of AND, OR and NOT.
"""

import logging
from dataclasses import dataclass
from typing import List, Tuple, Union

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
from .patterns import LIKE_ESCAPE
from .validator import DIRECTORY_TYPE, TYPE_EXTENSIONS, ValidatedQuery


logger = logging.getLogger(__name__)


SqlParam = Union[int, float, str]

ITEM_COLUMNS = ('id', 'path', 'is_directory', 'size', 'modified_time', 'created_at')

# File name of i.path: RTRIM strips every non-separator character from the
# right, leaving the directory prefix; SUBSTR takes what follows it.
FILE_NAME_EXPR = (
    "SUBSTR(i.path, LENGTH(RTRIM(i.path, REPLACE(REPLACE(i.path, '\\', ''), '/', ''))) + 1)"
)

_TEXT_COLUMNS = {
    Field.NAME: f"LOWER({FILE_NAME_EXPR})",
    Field.PATH: "LOWER(i.path)",
}

_NUMERIC_COLUMNS = {
    Field.SIZE: "COALESCE(i.size, 0)",
    Field.MODIFIED: "COALESCE(i.modified_time, 0)",
    Field.CREATED: "COALESCE(i.created_at, 0)",
}

_SQL_OPERATORS = {
    Comparator.EQ: '=',
    Comparator.NOT_EQ: '!=',
    Comparator.GT: '>',
    Comparator.LT: '<',
    Comparator.GTE: '>=',
    Comparator.LTE: '<=',
}

TRUE_SQL = '1'
FALSE_SQL = '0'


@dataclass(frozen=True)
class CompiledFilter:
    """
    A SQL boolean expression and its bound parameters.

    Attributes:
        sql: Expression usable in a WHERE clause over `items i`
        params: Positional parameters, in placeholder order
    """
    sql: str
    params: Tuple[SqlParam, ...]

    def to_select(self) -> str:
        """Full statement returning the matching items ordered by path."""
        columns = ', '.join(f"i.{c}" for c in ITEM_COLUMNS)
        return f"SELECT {columns} FROM items i WHERE {self.sql} ORDER BY i.path ASC"


class SqlCompiler:
    """
    Compiles one validated tree into a CompiledFilter.

    A compiler instance owns the parameter list and the subquery alias
    counter for a single compile() call.
    """

    def __init__(self):
        self.params: List[SqlParam] = []
        self._alias_counter = 0

    def compile(self, query: ValidatedQuery) -> CompiledFilter:
        """
        Compile a validated query.

        Args:
            query: Output of QueryValidator.validate()

        Returns:
            CompiledFilter with SQL text and parameters
        """
        self.params = []
        self._alias_counter = 0
        sql = self._compile(query.root)
        compiled = CompiledFilter(sql=sql, params=tuple(self.params))
        logger.debug(f"Compiled filter: {compiled.sql} with {len(compiled.params)} parameters")
        return compiled

    def _compile(self, node: Node) -> str:
        if isinstance(node, Comparison):
            return self._comparison(node)
        if isinstance(node, And):
            left = self._compile(node.left)
            right = self._compile(node.right)
            return f"({left} AND {right})"
        if isinstance(node, Or):
            left = self._compile(node.left)
            right = self._compile(node.right)
            return f"({left} OR {right})"
        if isinstance(node, Not):
            if isinstance(node.inner, Comparison) and node.inner.field == Field.TAG:
                return self._tag_membership(node.inner, negated=node.inner.comparator != Comparator.NOT_EQ)
            return f"NOT ({self._compile(node.inner)})"
        raise TypeError(f"Cannot compile node: {type(node).__name__}")

    def _comparison(self, node: Comparison) -> str:
        field = node.field
        if field == Field.TAG:
            return self._tag_membership(node, negated=node.comparator == Comparator.NOT_EQ)
        if field in _TEXT_COLUMNS:
            return self._text_comparison(node)
        if field in _NUMERIC_COLUMNS:
            return self._numeric_comparison(node)
        if field == Field.TYPE:
            return self._type_comparison(node)
        raise TypeError(f"Cannot compile field: {field}")

    def _tag_membership(self, node: Comparison, negated: bool) -> str:
        value = node.value
        if not isinstance(value, TagIdsValue):
            raise TypeError("Tag comparison was not validated")

        if not value.ids:
            return TRUE_SQL if negated else FALSE_SQL

        alias = f"it_{self._alias_counter}"
        self._alias_counter += 1

        ids = sorted(value.ids)
        self.params.extend(ids)
        placeholders = ', '.join('?' for _ in ids)
        prefix = 'NOT EXISTS' if negated else 'EXISTS'
        return (
            f"{prefix} (SELECT 1 FROM item_tags {alias} "
            f"WHERE {alias}.item_id = i.id AND {alias}.tag_id IN ({placeholders}))"
        )

    def _text_comparison(self, node: Comparison) -> str:
        column = _TEXT_COLUMNS[node.field]
        value = node.value

        if node.comparator == Comparator.LIKE:
            if not isinstance(value, PatternValue):
                raise TypeError("LIKE comparison was not validated")
            self.params.append(value.pattern)
            return f"{column} LIKE ? ESCAPE '{LIKE_ESCAPE}'"

        if node.comparator == Comparator.IN:
            texts = [item.text for item in value.items]
            self.params.extend(texts)
            return f"{column} IN ({', '.join('?' for _ in texts)})"

        self.params.append(value.text)
        return f"{column} {_SQL_OPERATORS[node.comparator]} ?"

    def _numeric_comparison(self, node: Comparison) -> str:
        column = _NUMERIC_COLUMNS[node.field]
        value = node.value

        if isinstance(value, NumberValue):
            number = value.number
            self.params.append(int(number) if float(number).is_integer() else number)
            return f"{column} {_SQL_OPERATORS[node.comparator]} ?"

        if not isinstance(value, TimeRangeValue):
            raise TypeError("Numeric comparison was not validated")

        comparator = node.comparator
        if comparator == Comparator.EQ:
            self.params.extend([value.start, value.end])
            return f"({column} >= ? AND {column} < ?)"
        if comparator == Comparator.NOT_EQ:
            self.params.extend([value.start, value.end])
            return f"({column} < ? OR {column} >= ?)"
        if comparator == Comparator.GT:
            self.params.append(value.end)
            return f"{column} >= ?"
        if comparator == Comparator.GTE:
            self.params.append(value.start)
            return f"{column} >= ?"
        if comparator == Comparator.LT:
            self.params.append(value.start)
            return f"{column} < ?"
        if comparator == Comparator.LTE:
            self.params.append(value.end)
            return f"{column} < ?"
        raise TypeError(f"Cannot compile comparator {comparator} for a time range")

    def _type_comparison(self, node: Comparison) -> str:
        value = node.value
        kinds = [item.text for item in value.items] if isinstance(value, ListValue) else [value.text]

        conditions = []
        for kind in kinds:
            if kind == DIRECTORY_TYPE:
                conditions.append("i.is_directory = 1")
                continue
            extensions = TYPE_EXTENSIONS.get(kind, ())
            if not extensions:
                continue
            self.params.extend(f"%{ext}" for ext in extensions)
            matches = ' OR '.join("LOWER(i.path) LIKE ?" for _ in extensions)
            conditions.append(f"(i.is_directory = 0 AND ({matches}))")

        if not conditions:
            matched = FALSE_SQL
        elif len(conditions) == 1:
            matched = conditions[0]
        else:
            matched = f"({' OR '.join(conditions)})"

        if node.comparator == Comparator.NOT_EQ:
            return f"NOT ({matched})"
        return matched


def compile_sql(query: ValidatedQuery) -> CompiledFilter:
    """
    Convenience function to compile a validated query to SQL.

    Args:
        query: Output of QueryValidator.validate()

    Returns:
        CompiledFilter with SQL text and parameters
    """
    return SqlCompiler().compile(query)
