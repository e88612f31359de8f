"""
Lexer for the tagfinder query language.

Turns a query string into a list of immutable tokens terminated by an END
token. Numeric literals are normalized here: size suffixes become bytes and
duration suffixes become seconds, so later stages only ever see plain
numbers tagged with a unit.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from .ast import Unit
from .errors import ErrorKind, LexError


logger = logging.getLogger(__name__)


DEFAULT_MAX_QUERY_LENGTH = 4096

KEYWORDS = frozenset({'AND', 'OR', 'NOT', 'IN'})

SIZE_UNITS = {
    'B': 1,
    'KB': 1024,
    'MB': 1024 ** 2,
    'GB': 1024 ** 3,
    'TB': 1024 ** 4,
}

# Duration suffixes are lowercase only so that `10M` is never read as minutes
DURATION_UNITS = {
    's': 1,
    'm': 60,
    'h': 3600,
    'd': 86400,
    'w': 604800,
}

_NUMBER_RE = re.compile(r'-?(\d+(?:\.\d+)?)([A-Za-z]*)')

_STRING_ESCAPES = {
    '"': '"',
    '\\': '\\',
    'n': '\n',
    't': '\t',
}

_IDENTIFIER_PUNCTUATION = '_-.:'
# Characters allowed in a digit-led run such as 2024-01-01T10:00:00+02:00
_WORD_PUNCTUATION = '_-.:+'


class TokenKind(Enum):
    """Token categories."""
    IDENTIFIER = "identifier"
    STRING = "string"
    NUMBER = "number"
    OPERATOR = "operator"
    KEYWORD = "keyword"
    PAREN = "paren"
    COMMA = "comma"
    END = "end"


@dataclass(frozen=True)
class Token:
    """
    A single lexical token.

    Attributes:
        kind: Token category
        text: The exact source text of the token
        offset: Character offset of the token's first character
        value: Decoded payload: unescaped text for strings, a
            (number, unit) pair for numbers, None otherwise
    """
    kind: TokenKind
    text: str
    offset: int
    value: Union[None, str, tuple] = None

    def describe(self) -> str:
        """Short description used in parse error messages."""
        if self.kind == TokenKind.END:
            return "end of input"
        return f"'{self.text}'"


class Lexer:
    """
    Single-pass scanner over a query string.

    The lexer is stateless between calls; create one per query or use the
    module-level tokenize() helper.
    """

    def __init__(self, max_length: int = DEFAULT_MAX_QUERY_LENGTH):
        self.max_length = max_length

    def tokenize(self, text: str) -> List[Token]:
        """
        Split a query into tokens.

        Args:
            text: The raw query string

        Returns:
            Ordered list of tokens ending with an END token at len(text)

        Raises:
            LexError: On an unterminated string, an unknown unit suffix,
                an illegal character or an over-long query
        """
        if len(text) > self.max_length:
            raise LexError(
                ErrorKind.QUERY_TOO_LONG,
                f"Query exceeds the maximum length of {self.max_length} characters",
                self.max_length,
                text,
            )

        tokens: List[Token] = []
        pos = 0
        length = len(text)

        while pos < length:
            ch = text[pos]

            if ch.isspace():
                pos += 1
                continue

            if ch == '"':
                token, pos = self._read_string(text, pos)
            elif ch.isdigit() or (ch == '-' and pos + 1 < length and text[pos + 1].isdigit()):
                token, pos = self._read_number_or_word(text, pos)
            elif ch.isalpha() or ch == '_':
                token, pos = self._read_identifier(text, pos)
            elif ch in '()':
                token, pos = Token(TokenKind.PAREN, ch, pos), pos + 1
            elif ch == ',':
                token, pos = Token(TokenKind.COMMA, ch, pos), pos + 1
            elif ch in '<>':
                if text.startswith('=', pos + 1):
                    token, pos = Token(TokenKind.OPERATOR, ch + '=', pos), pos + 2
                else:
                    token, pos = Token(TokenKind.OPERATOR, ch, pos), pos + 1
            elif ch in '=~':
                token, pos = Token(TokenKind.OPERATOR, ch, pos), pos + 1
            elif ch == '!' and text.startswith('=', pos + 1):
                token, pos = Token(TokenKind.OPERATOR, '!=', pos), pos + 2
            else:
                raise LexError(
                    ErrorKind.ILLEGAL_CHARACTER,
                    f"Illegal character '{ch}'",
                    pos,
                    text,
                )

            tokens.append(token)

        tokens.append(Token(TokenKind.END, '', length))
        logger.debug(f"Lexed {len(tokens) - 1} tokens from query of length {length}")
        return tokens

    def _read_string(self, text: str, start: int) -> tuple[Token, int]:
        """Read a double-quoted string literal starting at `start`."""
        chars = []
        pos = start + 1

        while pos < len(text):
            ch = text[pos]
            if ch == '"':
                return Token(TokenKind.STRING, text[start:pos + 1], start, ''.join(chars)), pos + 1
            if ch == '\\' and pos + 1 < len(text):
                escaped = text[pos + 1]
                if escaped in _STRING_ESCAPES:
                    chars.append(_STRING_ESCAPES[escaped])
                else:
                    chars.append(ch + escaped)
                pos += 2
                continue
            chars.append(ch)
            pos += 1

        raise LexError(
            ErrorKind.UNTERMINATED_STRING,
            "Unterminated string literal",
            start,
            text,
        )

    def _read_identifier(self, text: str, start: int) -> tuple[Token, int]:
        pos = start + 1
        while pos < len(text) and (text[pos].isalnum() or text[pos] in _IDENTIFIER_PUNCTUATION):
            pos += 1

        word = text[start:pos]
        kind = TokenKind.KEYWORD if word in KEYWORDS else TokenKind.IDENTIFIER
        return Token(kind, word, start), pos

    def _read_number_or_word(self, text: str, start: int) -> tuple[Token, int]:
        """
        Read a digit-led run.

        A run shaped like a number with an optional letter suffix is a NUMBER
        (or an unknown-unit error); anything else, such as an unquoted date,
        is returned as a bare IDENTIFIER for the validator to interpret.
        """
        pos = start + 1
        while pos < len(text) and (text[pos].isalnum() or text[pos] in _WORD_PUNCTUATION):
            pos += 1

        word = text[start:pos]
        match = _NUMBER_RE.fullmatch(word)
        if match is None:
            return Token(TokenKind.IDENTIFIER, word, start), pos

        suffix = match.group(2)
        number = float(word[:len(word) - len(suffix)]) if suffix else float(word)
        unit = None

        if suffix:
            scale, unit = self._resolve_unit(suffix)
            if scale is None:
                raise LexError(
                    ErrorKind.UNKNOWN_UNIT,
                    f"Unknown unit suffix '{suffix}'",
                    start + len(word) - len(suffix),
                    text,
                )
            number *= scale

        return Token(TokenKind.NUMBER, word, start, (number, unit)), pos

    @staticmethod
    def _resolve_unit(suffix: str) -> tuple[Optional[int], Optional[Unit]]:
        if suffix.upper() in SIZE_UNITS:
            return SIZE_UNITS[suffix.upper()], Unit.BYTES
        if suffix in DURATION_UNITS:
            return DURATION_UNITS[suffix], Unit.SECONDS
        return None, None


def tokenize(text: str, max_length: int = DEFAULT_MAX_QUERY_LENGTH) -> List[Token]:
    """
    Convenience function to tokenize a query.

    Args:
        text: The raw query string
        max_length: Maximum accepted query length in characters

    Returns:
        List of tokens ending with an END token
    """
    return Lexer(max_length=max_length).tokenize(text)
