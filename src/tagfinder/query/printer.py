"""
Canonical text rendering of parsed queries.

to_query_string() is the inverse of parse() up to formatting: re-parsing its
output yields a tree equal to the input. Only parsed trees can be printed;
validated trees carry values that have no surface syntax.
"""

from decimal import Decimal

from .ast import (
    And,
    Comparator,
    Comparison,
    FunctionCall,
    ListValue,
    Node,
    Not,
    NumberValue,
    Or,
    StringValue,
    Unit,
    Value,
)


_UNIT_SUFFIXES = {
    None: '',
    Unit.BYTES: 'B',
    Unit.SECONDS: 's',
}

# Binding strength used to decide where parentheses are needed
_PRECEDENCE = {
    Or: 1,
    And: 2,
    Not: 3,
    Comparison: 4,
    FunctionCall: 4,
}


def quote_string(text: str) -> str:
    """Quote a string so the lexer decodes it back to the same text."""
    escaped = text.replace('\\', '\\\\').replace('"', '\\"')
    return f'"{escaped}"'


def format_number(number: float) -> str:
    """Render a float in plain positional notation the lexer accepts."""
    if number == int(number):
        return str(int(number))
    return format(Decimal(repr(number)), 'f')


def format_value(value: Value) -> str:
    if isinstance(value, StringValue):
        return quote_string(value.text)
    if isinstance(value, NumberValue):
        return format_number(value.number) + _UNIT_SUFFIXES[value.unit]
    if isinstance(value, ListValue):
        return '(' + ', '.join(format_value(item) for item in value.items) + ')'
    raise TypeError(f"Value has no query syntax: {type(value).__name__}")


def to_query_string(node: Node) -> str:
    """
    Render a parsed AST as canonical query text.

    Args:
        node: Root of a parsed (not validated) tree

    Returns:
        Query text that parses back to an equal tree
    """
    if isinstance(node, Comparison):
        if node.comparator == Comparator.IN:
            return f"{node.field.value} IN {format_value(node.value)}"
        return f"{node.field.value} {node.comparator.value} {format_value(node.value)}"

    if isinstance(node, FunctionCall):
        return f"{node.name}({node.field.value}, {format_value(node.value)})"

    if isinstance(node, Not):
        return f"NOT {_wrap(node.inner, _PRECEDENCE[Not], right_side=True)}"

    if isinstance(node, (And, Or)):
        keyword = 'AND' if isinstance(node, And) else 'OR'
        level = _PRECEDENCE[type(node)]
        left = _wrap(node.left, level, right_side=False)
        right = _wrap(node.right, level, right_side=True)
        return f"{left} {keyword} {right}"

    raise TypeError(f"Unknown AST node: {type(node).__name__}")


def _wrap(child: Node, parent_level: int, right_side: bool) -> str:
    text = to_query_string(child)
    child_level = _PRECEDENCE[type(child)]
    # Chains are left-associative, so an equal-precedence right child needs parentheses
    if child_level < parent_level or (right_side and child_level == parent_level and parent_level < 3):
        return f"({text})"
    return text
