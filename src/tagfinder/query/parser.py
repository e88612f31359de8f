"""
Recursive-descent parser for the tagfinder query language.

Grammar, lowest precedence first:

    expression   := orExpr
    orExpr       := andExpr ( "OR" andExpr )*
    andExpr      := notExpr ( "AND" notExpr )*
    notExpr      := "NOT" notExpr | primary
    primary      := "(" expression ")" | comparison | functionCall
    comparison   := field comparator value
                  | field "IN" "(" value ( "," value )* ")"
    functionCall := name "(" field "," value ")"
    value        := STRING | NUMBER | IDENTIFIER

Adjacent comparisons need an explicit operator. The parser does not
recover: the first mismatch raises a ParseError naming what was expected.
"""

import logging
from typing import List, Optional, Sequence, Union

from .ast import (
    FUNCTION_NAMES,
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
    StringValue,
    Value,
)
from .errors import ErrorKind, ParseError, ValidationError
from .lexer import DEFAULT_MAX_QUERY_LENGTH, Token, TokenKind, tokenize


logger = logging.getLogger(__name__)


FIELD_NAMES = tuple(f.value for f in Field)
COMPARATOR_SYMBOLS = tuple(c.value for c in Comparator if c != Comparator.IN)
_FUNCTIONS_BY_LOWER_NAME = {name.lower(): name for name in FUNCTION_NAMES}
_VALUE_DESCRIPTION = ('string', 'number', 'identifier')

# Bounds recursion for deeply nested parentheses and NOT chains
MAX_NESTING_DEPTH = 128


class Parser:
    """
    Parser over a token list produced by the lexer.

    A Parser instance holds the cursor for one parse; use parse() for the
    common case.
    """

    def __init__(self, tokens: List[Token], source: Optional[str] = None):
        self.tokens = tokens
        self.source = source
        self.pos = 0
        self.depth = 0

    def parse(self) -> Node:
        """
        Parse the full token stream.

        Returns:
            Root node of the AST

        Raises:
            ParseError: If the tokens do not form a complete expression
        """
        if self._peek().kind == TokenKind.END:
            raise ParseError(
                ErrorKind.EMPTY_EXPRESSION,
                "Query is empty",
                0,
                self.source,
                expected=('expression',),
                actual='end of input',
            )

        node = self._parse_or()

        token = self._peek()
        if token.kind != TokenKind.END:
            if token.kind == TokenKind.PAREN and token.text == ')':
                raise self._error(
                    ErrorKind.UNMATCHED_PAREN,
                    "Unmatched closing parenthesis",
                    token,
                    ('AND', 'OR', 'end of input'),
                )
            raise self._error(
                ErrorKind.UNEXPECTED_TOKEN,
                f"Expected AND, OR or end of input, found {token.describe()}",
                token,
                ('AND', 'OR', 'end of input'),
            )

        return node

    # Token helpers

    def _peek(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind != TokenKind.END:
            self.pos += 1
        return token

    def _is_keyword(self, word: str) -> bool:
        token = self._peek()
        return token.kind == TokenKind.KEYWORD and token.text == word

    def _is_paren(self, paren: str) -> bool:
        token = self._peek()
        return token.kind == TokenKind.PAREN and token.text == paren

    def _error(
        self,
        kind: ErrorKind,
        message: str,
        token: Token,
        expected: Sequence[str],
    ) -> ParseError:
        if token.kind == TokenKind.END and kind == ErrorKind.UNEXPECTED_TOKEN:
            kind = ErrorKind.UNEXPECTED_END
        return ParseError(
            kind,
            message,
            token.offset,
            self.source,
            expected=expected,
            actual=token.describe(),
        )

    def _enter(self, token: Token) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING_DEPTH:
            raise ValidationError(
                ErrorKind.QUERY_TOO_COMPLEX,
                f"Query nests deeper than {MAX_NESTING_DEPTH} levels",
                token.offset,
                self.source,
            )

    def _expect_paren(self, paren: str, context: str) -> Token:
        token = self._peek()
        if token.kind == TokenKind.PAREN and token.text == paren:
            return self._advance()
        raise self._error(
            ErrorKind.UNEXPECTED_TOKEN,
            f"Expected '{paren}' {context}, found {token.describe()}",
            token,
            (f"'{paren}'",),
        )

    # Grammar rules

    def _parse_or(self) -> Node:
        left = self._parse_and()
        while self._is_keyword('OR'):
            self._advance()
            right = self._parse_and()
            left = Or(left, right, offset=left.offset)
        return left

    def _parse_and(self) -> Node:
        left = self._parse_not()
        while self._is_keyword('AND'):
            self._advance()
            right = self._parse_not()
            left = And(left, right, offset=left.offset)
        return left

    def _parse_not(self) -> Node:
        if self._is_keyword('NOT'):
            token = self._advance()
            self._enter(token)
            inner = self._parse_not()
            self.depth -= 1
            return Not(inner, offset=token.offset)
        return self._parse_primary()

    def _parse_primary(self) -> Node:
        token = self._peek()

        if self._is_paren('('):
            self._advance()
            self._enter(token)
            node = self._parse_or()
            closing = self._peek()
            if closing.kind == TokenKind.END:
                raise ParseError(
                    ErrorKind.UNEXPECTED_END,
                    f"Missing ')' for the parenthesis opened at offset {token.offset}",
                    closing.offset,
                    self.source,
                    expected=("')'",),
                    actual=closing.describe(),
                )
            self._expect_paren(')', 'to close the group')
            self.depth -= 1
            return node

        if token.kind == TokenKind.IDENTIFIER:
            following = self.tokens[self.pos + 1] if self.pos + 1 < len(self.tokens) else token
            if following.kind == TokenKind.PAREN and following.text == '(':
                return self._parse_function_call()
            return self._parse_comparison()

        if self._is_paren(')'):
            raise self._error(
                ErrorKind.UNMATCHED_PAREN,
                "Unmatched closing parenthesis",
                token,
                ('field', 'function', "'('", 'NOT'),
            )

        raise self._error(
            ErrorKind.UNEXPECTED_TOKEN,
            f"Expected a comparison, function call or '(', found {token.describe()}",
            token,
            ('field', 'function', "'('", 'NOT'),
        )

    def _parse_field(self) -> tuple[Field, Token]:
        token = self._peek()
        if token.kind != TokenKind.IDENTIFIER:
            raise self._error(
                ErrorKind.UNEXPECTED_TOKEN,
                f"Expected a field name, found {token.describe()}",
                token,
                FIELD_NAMES,
            )

        field = Field.from_name(token.text)
        if field is None:
            raise ParseError(
                ErrorKind.UNKNOWN_FIELD,
                f"Unknown field '{token.text}'",
                token.offset,
                self.source,
                expected=FIELD_NAMES,
                actual=token.describe(),
            )

        self._advance()
        return field, token

    def _parse_comparison(self) -> Comparison:
        field, field_token = self._parse_field()

        if self._is_keyword('IN'):
            self._advance()
            self._expect_paren('(', 'after IN')
            values: List[Value] = [self._parse_value()]
            while self._peek().kind == TokenKind.COMMA:
                self._advance()
                values.append(self._parse_value())

            closing = self._peek()
            if closing.kind == TokenKind.END:
                raise self._error(
                    ErrorKind.UNEXPECTED_END,
                    "Missing ')' to close the IN list",
                    closing,
                    ("','", "')'"),
                )
            if not (closing.kind == TokenKind.PAREN and closing.text == ')'):
                raise self._error(
                    ErrorKind.UNEXPECTED_TOKEN,
                    f"Expected ',' or ')' in IN list, found {closing.describe()}",
                    closing,
                    ("','", "')'"),
                )
            self._advance()
            return Comparison(field, Comparator.IN, ListValue(tuple(values)), offset=field_token.offset)

        token = self._peek()
        comparator = Comparator.from_symbol(token.text) if token.kind == TokenKind.OPERATOR else None
        if comparator is None:
            raise self._error(
                ErrorKind.UNEXPECTED_TOKEN,
                f"Expected a comparator after '{field_token.text}', found {token.describe()}",
                token,
                COMPARATOR_SYMBOLS + ('IN',),
            )
        self._advance()

        value = self._parse_value()
        return Comparison(field, comparator, value, offset=field_token.offset)

    def _parse_function_call(self) -> FunctionCall:
        name_token = self._advance()
        name = _FUNCTIONS_BY_LOWER_NAME.get(name_token.text.lower())
        if name is None:
            raise ParseError(
                ErrorKind.UNKNOWN_FUNCTION,
                f"Unknown function '{name_token.text}'",
                name_token.offset,
                self.source,
                expected=FUNCTION_NAMES,
                actual=name_token.describe(),
            )

        self._expect_paren('(', f"after {name}")
        field, _ = self._parse_field()

        comma = self._peek()
        if comma.kind != TokenKind.COMMA:
            raise self._error(
                ErrorKind.UNEXPECTED_TOKEN,
                f"Expected ',' after the field in {name}(), found {comma.describe()}",
                comma,
                ("','",),
            )
        self._advance()

        value = self._parse_value()
        self._expect_paren(')', f"to close {name}()")
        return FunctionCall(name, field, value, offset=name_token.offset)

    def _parse_value(self) -> Union[StringValue, NumberValue]:
        token = self._peek()

        if token.kind == TokenKind.STRING:
            self._advance()
            return StringValue(token.value)

        if token.kind == TokenKind.IDENTIFIER:
            self._advance()
            return StringValue(token.text)

        if token.kind == TokenKind.NUMBER:
            self._advance()
            number, unit = token.value
            return NumberValue(number, unit)

        raise self._error(
            ErrorKind.UNEXPECTED_TOKEN,
            f"Expected a value, found {token.describe()}",
            token,
            _VALUE_DESCRIPTION,
        )


def parse(query: Union[str, Sequence[Token]], max_length: int = DEFAULT_MAX_QUERY_LENGTH) -> Node:
    """
    Parse a query string, or a token list produced by tokenize().

    Args:
        query: The raw query string or its tokens
        max_length: Maximum accepted query length in characters

    Returns:
        Root node of the AST

    Raises:
        LexError: If the query cannot be tokenized
        ParseError: If the tokens do not match the grammar
        ValidationError: If the query nests too deeply
    """
    if isinstance(query, str):
        tokens, source = tokenize(query, max_length=max_length), query
    else:
        tokens, source = list(query), None
    node = Parser(tokens, source).parse()
    logger.debug(f"Parsed query into {type(node).__name__} root")
    return node
