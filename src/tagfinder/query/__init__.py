"""
The tagfinder query language.

lexer -> parser -> validator -> sql_compiler | predicate
"""

from .ast import Comparator, Field, Unit
from .errors import (
    ErrorKind,
    ExecutionError,
    LexError,
    ParseError,
    QueryError,
    ValidationError,
)
from .lexer import Token, TokenKind, tokenize
from .parser import parse
from .predicate import compile_predicate
from .printer import to_query_string
from .sql_compiler import CompiledFilter, compile_sql
from .validator import QueryValidator, ValidatedQuery

__all__ = [
    'Comparator',
    'Field',
    'Unit',
    'ErrorKind',
    'ExecutionError',
    'LexError',
    'ParseError',
    'QueryError',
    'ValidationError',
    'Token',
    'TokenKind',
    'tokenize',
    'parse',
    'compile_predicate',
    'to_query_string',
    'CompiledFilter',
    'compile_sql',
    'QueryValidator',
    'ValidatedQuery',
]
