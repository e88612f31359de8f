"""
Error types for the tagfinder query language.

Every stage of query evaluation raises a subclass of QueryError. Lexing,
parsing and validation errors are raised before anything touches the
storage collaborator; execution errors wrap the storage failure that
caused them.
"""

from enum import Enum
from typing import Any, Dict, Optional, Sequence


class ErrorKind(Enum):
    """Specific failure kinds, grouped by the stage that reports them."""
    # Lexer
    UNTERMINATED_STRING = "unterminated_string"
    UNKNOWN_UNIT = "unknown_unit"
    ILLEGAL_CHARACTER = "illegal_character"
    QUERY_TOO_LONG = "query_too_long"
    # Parser
    EMPTY_EXPRESSION = "empty_expression"
    UNEXPECTED_TOKEN = "unexpected_token"
    UNEXPECTED_END = "unexpected_end"
    UNMATCHED_PAREN = "unmatched_paren"
    UNKNOWN_FIELD = "unknown_field"
    UNKNOWN_FUNCTION = "unknown_function"
    # Validator
    INCOMPATIBLE_COMPARATOR = "incompatible_comparator"
    TYPE_MISMATCH = "type_mismatch"
    MALFORMED_DATE = "malformed_date"
    QUERY_TOO_COMPLEX = "query_too_complex"
    UNRESOLVED_TAG = "unresolved_tag"
    # Execution
    STORAGE_FAILURE = "storage_failure"
    TIMEOUT = "timeout"


def format_snippet(source: Optional[str], offset: Optional[int]) -> Optional[str]:
    """
    Render the query with a caret under the offending character.

    Args:
        source: The original query text
        offset: Character offset into the query

    Returns:
        Two-line snippet, or None if either input is missing
    """
    if source is None or offset is None:
        return None

    # Keep the caret aligned when the query spans several lines
    line_start = source.rfind('\n', 0, offset) + 1
    line_end = source.find('\n', offset)
    if line_end == -1:
        line_end = len(source)

    line = source[line_start:line_end].replace('\t', ' ')
    return f"{line}\n{' ' * (offset - line_start)}^"


class QueryError(Exception):
    """
    Base class for all query failures.

    Attributes:
        kind: The specific failure kind
        message: Human-readable description
        offset: Character offset in the query (None when not positional)
        source: The query text the offset refers to
    """

    category = "query"

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        offset: Optional[int] = None,
        source: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.offset = offset
        self.source = source

    @property
    def snippet(self) -> Optional[str]:
        """Caret-style excerpt for UI display."""
        return format_snippet(self.source, self.offset)

    @property
    def byte_offset(self) -> Optional[int]:
        """The offset counted in UTF-8 bytes of the query text."""
        if self.source is None or self.offset is None:
            return None
        return len(self.source[:self.offset].encode('utf-8', 'surrogatepass'))

    def with_source(self, source: str) -> 'QueryError':
        """Attach the query text if the raising stage did not know it."""
        if self.source is None:
            self.source = source
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a dictionary for the calling layer."""
        return {
            'kind': self.kind.value,
            'category': self.category,
            'message': self.message,
            'offset': self.offset,
            'byte_offset': self.byte_offset,
            'snippet': self.snippet,
        }

    def __str__(self) -> str:
        if self.offset is None:
            return self.message
        return f"{self.message} (at offset {self.offset})"


class LexError(QueryError):
    """Raised when the query text cannot be split into tokens."""

    category = "lex"


class ParseError(QueryError):
    """
    Raised when the token stream does not match the grammar.

    Attributes:
        expected: Descriptions of the tokens that would have been accepted
        actual: The token that was found instead
    """

    category = "parse"

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        offset: Optional[int] = None,
        source: Optional[str] = None,
        expected: Sequence[str] = (),
        actual: Optional[str] = None,
    ):
        super().__init__(kind, message, offset, source)
        self.expected = tuple(expected)
        self.actual = actual

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['expected'] = list(self.expected)
        data['actual'] = self.actual
        return data


class ValidationError(QueryError):
    """Raised when a well-formed query is semantically invalid."""

    category = "validation"


class ExecutionError(QueryError):
    """
    Raised when the storage collaborator fails to run a compiled filter.

    Attributes:
        origin: Name of the collaborator that failed (e.g. 'sqlite')
    """

    category = "execution"

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        origin: str,
        source: Optional[str] = None,
    ):
        super().__init__(kind, message, None, source)
        self.origin = origin

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['origin'] = self.origin
        return data

    def __str__(self) -> str:
        return f"[{self.origin}] {self.message}"
