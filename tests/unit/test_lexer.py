"""
Unit tests for the query lexer.

Tests tokenization of operators, strings, numbers with units, identifiers
and keywords, plus positioned lexing errors.
"""

import pytest

from tagfinder.query.ast import Unit
from tagfinder.query.errors import ErrorKind, LexError
from tagfinder.query.lexer import Lexer, Token, TokenKind, tokenize


def kinds(query):
    return [token.kind for token in tokenize(query)]


def texts(query):
    return [token.text for token in tokenize(query)[:-1]]


class TestBasicTokens:
    """Test cases for simple token categories."""

    def test_simple_comparison(self):
        """Test a field, operator and string value."""
        tokens = tokenize('tag = "Work"')

        assert [t.kind for t in tokens] == [
            TokenKind.IDENTIFIER, TokenKind.OPERATOR, TokenKind.STRING, TokenKind.END
        ]
        assert [t.offset for t in tokens] == [0, 4, 6, 12]
        assert tokens[2].value == "Work"

    def test_end_token_at_query_length(self):
        """Test the END token is positioned at len(query)."""
        query = "  tag = x  "
        end = tokenize(query)[-1]

        assert end.kind == TokenKind.END
        assert end.offset == len(query)

    def test_empty_input(self):
        """Test empty and blank input yield only the END token."""
        assert kinds("") == [TokenKind.END]
        assert kinds("   \t\n") == [TokenKind.END]

    @pytest.mark.parametrize("operator", ["=", "!=", "~", ">", "<", ">=", "<="])
    def test_operators(self, operator):
        """Test every comparison operator is a single token."""
        tokens = tokenize(f"size {operator} 1")
        assert tokens[1].kind == TokenKind.OPERATOR
        assert tokens[1].text == operator

    def test_operators_without_spaces(self):
        """Test operators split correctly when not surrounded by spaces."""
        assert texts("size>=10") == ["size", ">=", "10"]
        assert texts("name!=x") == ["name", "!=", "x"]

    def test_parens_and_commas(self):
        """Test punctuation tokens."""
        assert kinds('tag IN (a, "b")') == [
            TokenKind.IDENTIFIER, TokenKind.KEYWORD, TokenKind.PAREN, TokenKind.IDENTIFIER,
            TokenKind.COMMA, TokenKind.STRING, TokenKind.PAREN, TokenKind.END,
        ]


class TestKeywordsAndIdentifiers:
    """Test cases for keywords and identifiers."""

    def test_uppercase_keywords(self):
        """Test AND, OR, NOT and IN are keywords."""
        tokens = tokenize("NOT a AND b OR c IN")
        keywords = [t.text for t in tokens if t.kind == TokenKind.KEYWORD]
        assert keywords == ["NOT", "AND", "OR", "IN"]

    def test_lowercase_keywords_are_identifiers(self):
        """Test keywords are only recognized in upper case."""
        tokens = tokenize("and or not in")
        assert all(t.kind == TokenKind.IDENTIFIER for t in tokens[:-1])

    def test_identifier_characters(self):
        """Test identifiers may contain underscores, dashes, dots and colons."""
        assert texts("Status:in-progress") == ["Status:in-progress"]
        assert texts("_private.name") == ["_private.name"]

    def test_unicode_identifier(self):
        """Test identifiers may use non-ASCII letters."""
        tokens = tokenize("tag = Überprüfung")
        assert tokens[2].kind == TokenKind.IDENTIFIER
        assert tokens[2].text == "Überprüfung"

    def test_unquoted_date_is_identifier(self):
        """Test a digit-led date is a bare identifier, not a number."""
        tokens = tokenize("modified > 2024-01-01")
        assert tokens[2].kind == TokenKind.IDENTIFIER
        assert tokens[2].text == "2024-01-01"

    def test_unquoted_datetime_is_identifier(self):
        """Test a digit-led date-time with offset is a single identifier."""
        tokens = tokenize("modified < 2024-01-01T10:30:00+02:00")
        assert tokens[2].kind == TokenKind.IDENTIFIER
        assert tokens[2].text == "2024-01-01T10:30:00+02:00"


class TestStrings:
    """Test cases for string literals."""

    def test_escapes(self):
        """Test supported escape sequences."""
        tokens = tokenize(r'name = "say \"hi\" \\ done\n\t"')
        assert tokens[2].value == 'say "hi" \\ done\n\t'

    def test_unknown_escape_kept_literally(self):
        """Test unknown escapes keep the backslash."""
        tokens = tokenize(r'path = "C:\Users\me"')
        assert tokens[2].value == r'C:\Users\me'

    def test_string_text_keeps_quotes(self):
        """Test the token text is the raw source including quotes."""
        tokens = tokenize('tag = "a b"')
        assert tokens[2].text == '"a b"'
        assert tokens[2].value == 'a b'

    def test_unterminated_string(self):
        """Test an unterminated string reports the opening quote offset."""
        with pytest.raises(LexError) as exc_info:
            tokenize('tag = "Work')

        assert exc_info.value.kind == ErrorKind.UNTERMINATED_STRING
        assert exc_info.value.offset == 6

    def test_trailing_backslash_is_unterminated(self):
        """Test an escaped closing quote leaves the string open."""
        with pytest.raises(LexError, match="Unterminated string"):
            tokenize('tag = "Work\\"')


class TestNumbers:
    """Test cases for numeric literals and unit normalization."""

    def test_plain_number(self):
        """Test unit-less numbers."""
        token = tokenize("size > 42")[2]
        assert token.kind == TokenKind.NUMBER
        assert token.value == (42.0, None)

    def test_fraction(self):
        """Test numbers with a fractional part."""
        assert tokenize("size > 1.5")[2].value == (1.5, None)

    def test_negative_number(self):
        """Test a leading minus sign binds to the number."""
        token = tokenize("modified > -3")[2]
        assert token.value == (-3.0, None)
        assert token.text == "-3"

    @pytest.mark.parametrize("literal,expected", [
        ("1B", 1),
        ("2KB", 2 * 1024),
        ("10MB", 10 * 1024 ** 2),
        ("3GB", 3 * 1024 ** 3),
        ("1TB", 1024 ** 4),
        ("10mb", 10 * 1024 ** 2),
        ("1.5KB", 1536),
    ])
    def test_size_units(self, literal, expected):
        """Test size suffixes are powers of 1024, case-insensitive."""
        assert tokenize(f"size > {literal}")[2].value == (expected, Unit.BYTES)

    @pytest.mark.parametrize("literal,expected", [
        ("30s", 30),
        ("5m", 300),
        ("12h", 43200),
        ("-7d", -604800),
        ("2w", 1209600),
    ])
    def test_duration_units(self, literal, expected):
        """Test duration suffixes normalize to seconds."""
        assert tokenize(f"modified > {literal}")[2].value == (expected, Unit.SECONDS)

    def test_uppercase_duration_is_unknown(self):
        """Test duration suffixes are lowercase only."""
        with pytest.raises(LexError) as exc_info:
            tokenize("modified > 7D")
        assert exc_info.value.kind == ErrorKind.UNKNOWN_UNIT

    def test_unknown_unit_offset(self):
        """Test an unknown suffix reports the offset of the suffix."""
        with pytest.raises(LexError) as exc_info:
            tokenize("size > 10XB")

        assert exc_info.value.kind == ErrorKind.UNKNOWN_UNIT
        assert exc_info.value.offset == 9
        assert "XB" in exc_info.value.message


class TestLexErrors:
    """Test cases for lexing failures."""

    @pytest.mark.parametrize("query,offset", [
        ("tag = a & b", 8),
        ("size ! 3", 5),
        ("name = ;", 7),
    ])
    def test_illegal_character(self, query, offset):
        """Test illegal characters are reported at their offset."""
        with pytest.raises(LexError) as exc_info:
            tokenize(query)

        assert exc_info.value.kind == ErrorKind.ILLEGAL_CHARACTER
        assert exc_info.value.offset == offset

    def test_query_too_long(self):
        """Test queries over the configured length are rejected."""
        with pytest.raises(LexError) as exc_info:
            Lexer(max_length=10).tokenize("tag = abcdefgh")

        assert exc_info.value.kind == ErrorKind.QUERY_TOO_LONG
        assert exc_info.value.offset == 10

    def test_query_at_limit_accepted(self):
        """Test a query of exactly the maximum length is accepted."""
        tokens = tokenize("tag = abcd", max_length=10)
        assert tokens[-1].offset == 10

    def test_error_snippet(self):
        """Test lexing errors carry a caret snippet."""
        with pytest.raises(LexError) as exc_info:
            tokenize("tag = a & b")

        assert exc_info.value.snippet == "tag = a & b\n        ^"


class TestToken:
    """Test cases for the Token record."""

    def test_describe(self):
        """Test token descriptions for error messages."""
        assert Token(TokenKind.END, '', 3).describe() == "end of input"
        assert Token(TokenKind.OPERATOR, '>=', 0).describe() == "'>='"

    def test_tokens_are_immutable(self):
        """Test tokens cannot be modified."""
        token = Token(TokenKind.COMMA, ',', 0)
        with pytest.raises(AttributeError):
            token.offset = 4
