"""
Star Script Parser
Parses line-oriented Star/Pine-like source into a Program AST
"""
import re
from typing import Callable, List, Optional, Tuple
from dataclasses import dataclass
from enum import Enum
from loguru import logger

from .ast_nodes import (
    ASTNode, Array, Assignment, Binary, Call, CALL_SENTINEL, Identifier,
    Index, Number, Program, String, Unary
)


class TokenType(Enum):
    # Literals
    NUMBER = "NUMBER"
    STRING = "STRING"

    # Identifiers (dotted names are a single token)
    IDENTIFIER = "IDENTIFIER"

    # Operators
    PLUS = "PLUS"
    MINUS = "MINUS"
    MULTIPLY = "MULTIPLY"
    DIVIDE = "DIVIDE"
    POWER = "POWER"
    ASSIGN = "ASSIGN"
    COLON = "COLON"

    # Brackets
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    LBRACKET = "LBRACKET"
    RBRACKET = "RBRACKET"
    LBRACE = "LBRACE"
    RBRACE = "RBRACE"

    # Other
    COMMA = "COMMA"
    EOF = "EOF"


@dataclass
class Token:
    type: TokenType
    value: object
    column: int


class ParseError(Exception):
    """Raised when a single line cannot be tokenized or parsed"""

    def __init__(self, message: str, column: Optional[int] = None):
        self.column = column
        if column is not None:
            message = f"{message} (col {column})"
        super().__init__(message)


ESCAPES = {'"': '"', "'": "'", 'n': '\n', 't': '\t', '\\': '\\'}


def unescape_string(body: str) -> str:
    """Resolve the escape sequences allowed inside string literals"""
    out = []
    i = 0
    while i < len(body):
        char = body[i]
        if char == '\\' and i + 1 < len(body):
            nxt = body[i + 1]
            out.append(ESCAPES.get(nxt, '\\' + nxt))
            i += 2
            continue
        out.append(char)
        i += 1
    return ''.join(out)


def number_value(text: str):
    """Numeric literal text -> int or float"""
    return float(text) if '.' in text else int(text)


class StarLexer:
    """Tokenizer for a single line of Star Script"""

    SINGLE_CHAR_OPS = {
        '+': TokenType.PLUS,
        '-': TokenType.MINUS,
        '*': TokenType.MULTIPLY,
        '/': TokenType.DIVIDE,
        '^': TokenType.POWER,
        '=': TokenType.ASSIGN,
        ':': TokenType.COLON,
        '(': TokenType.LPAREN,
        ')': TokenType.RPAREN,
        '[': TokenType.LBRACKET,
        ']': TokenType.RBRACKET,
        '{': TokenType.LBRACE,
        '}': TokenType.RBRACE,
        ',': TokenType.COMMA,
    }

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.tokens = []

    def tokenize(self) -> List[Token]:
        """Convert source text into tokens"""
        while self.pos < len(self.source):
            self._skip_whitespace()
            if self.pos >= len(self.source):
                break

            char = self.source[self.pos]

            # Trailing comment
            if char == '/' and self._peek(1) == '/':
                break

            if char.isdigit() or (char == '.' and self._peek(1).isdigit()):
                self._read_number()
                continue

            if char in '"\'':
                self._read_string(char)
                continue

            if char.isalpha() or char == '_':
                self._read_identifier()
                continue

            self._read_operator()

        self.tokens.append(Token(TokenType.EOF, None, self.pos + 1))
        return self.tokens

    def _advance(self) -> str:
        char = self.source[self.pos]
        self.pos += 1
        return char

    def _peek(self, offset: int = 0) -> str:
        pos = self.pos + offset
        if pos < len(self.source):
            return self.source[pos]
        return ''

    def _skip_whitespace(self):
        while self.pos < len(self.source) and self.source[self.pos] in ' \t\r':
            self._advance()

    def _read_digits(self):
        while self.pos < len(self.source) and self.source[self.pos].isdigit():
            self._advance()

    def _read_number(self):
        start = self.pos
        self._read_digits()
        if self._peek() == '.' and self._peek(1).isdigit():
            self._advance()
            self._read_digits()

        value = self.source[start:self.pos]
        self.tokens.append(Token(TokenType.NUMBER, number_value(value), start + 1))

    def _read_string(self, quote: str):
        start = self.pos
        self._advance()  # Skip opening quote
        body_start = self.pos

        while self.pos < len(self.source) and self.source[self.pos] != quote:
            if self.source[self.pos] == '\\':
                self._advance()  # Skip escape char
            if self.pos < len(self.source):
                self._advance()

        if self.pos >= len(self.source):
            raise ParseError("Unterminated string literal", start + 1)

        body = self.source[body_start:self.pos]
        self._advance()  # Skip closing quote

        self.tokens.append(Token(TokenType.STRING, unescape_string(body), start + 1))

    def _read_name_segment(self):
        while self.pos < len(self.source) and (self.source[self.pos].isalnum() or self.source[self.pos] == '_'):
            self._advance()

    def _read_identifier(self):
        start = self.pos
        self._read_name_segment()

        # Dotted path: ta.sma, request.security, syminfo.tickerid
        while self._peek() == '.' and (self._peek(1).isalpha() or self._peek(1) == '_'):
            self._advance()
            self._read_name_segment()

        self.tokens.append(Token(TokenType.IDENTIFIER, self.source[start:self.pos], start + 1))

    def _read_operator(self):
        char = self.source[self.pos]
        token_type = self.SINGLE_CHAR_OPS.get(char)
        if token_type is None:
            raise ParseError(f"Unexpected character {char!r}", self.pos + 1)
        self.tokens.append(Token(token_type, char, self.pos + 1))
        self._advance()


class ExpressionParser:
    """
    Recursive descent parser for a single expression.

    Precedence, lowest to highest: additive, multiplicative, power (right
    associative), unary sign, postfix indexing, primary.
    """

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    def parse(self) -> ASTNode:
        """Parse the whole token stream as one expression"""
        node = self._parse_expression()
        if self._current().type != TokenType.EOF:
            token = self._current()
            raise ParseError(f"Unexpected trailing {token.type.value}", token.column)
        return node

    def _current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return Token(TokenType.EOF, None, 0)

    def _peek(self, offset: int = 1) -> Token:
        pos = self.pos + offset
        if pos < len(self.tokens):
            return self.tokens[pos]
        return Token(TokenType.EOF, None, 0)

    def _advance(self) -> Token:
        token = self._current()
        self.pos += 1
        return token

    def _check(self, *token_types: TokenType) -> bool:
        return self._current().type in token_types

    def _expect(self, token_type: TokenType) -> Token:
        token = self._current()
        if token.type != token_type:
            raise ParseError(f"Expected {token_type.value}, got {token.type.value}", token.column)
        return self._advance()

    def _parse_expression(self) -> ASTNode:
        return self._parse_additive()

    def _parse_additive(self) -> ASTNode:
        left = self._parse_multiplicative()

        while self._check(TokenType.PLUS, TokenType.MINUS):
            op = self._advance().value
            right = self._parse_multiplicative()
            left = Binary(op, left, right)

        return left

    def _parse_multiplicative(self) -> ASTNode:
        left = self._parse_power()

        while self._check(TokenType.MULTIPLY, TokenType.DIVIDE):
            op = self._advance().value
            right = self._parse_power()
            left = Binary(op, left, right)

        return left

    def _parse_power(self) -> ASTNode:
        base = self._parse_unary()
        if self._check(TokenType.POWER):
            self._advance()
            return Binary('^', base, self._parse_power())
        return base

    def _parse_unary(self) -> ASTNode:
        if self._check(TokenType.PLUS, TokenType.MINUS):
            op = self._advance().value
            return Unary(op, self._parse_unary())
        return self._parse_postfix()

    def _parse_postfix(self) -> ASTNode:
        node = self._parse_primary()
        # Chained indexing: ta.hma(close, 12)[2], x[1][0]
        while self._check(TokenType.LBRACKET):
            self._advance()
            index = self._parse_expression()
            self._expect(TokenType.RBRACKET)
            node = Index(node, index)
        return node

    def _parse_primary(self) -> ASTNode:
        token = self._current()

        if token.type == TokenType.NUMBER:
            self._advance()
            return Number(token.value)

        if token.type == TokenType.STRING:
            self._advance()
            return String(token.value)

        if token.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._expect(TokenType.RPAREN)
            return expr

        if token.type == TokenType.LBRACKET:
            return self._parse_array()

        if token.type == TokenType.IDENTIFIER:
            name = self._advance().value
            if self._check(TokenType.LPAREN):
                return self._parse_call(name)
            return Identifier(name)

        raise ParseError(f"Unexpected {token.type.value}", token.column)

    def _parse_array(self) -> Array:
        self._expect(TokenType.LBRACKET)
        items = []
        if not self._check(TokenType.RBRACKET):
            items.append(self._parse_expression())
            while self._check(TokenType.COMMA):
                self._advance()
                items.append(self._parse_expression())
        self._expect(TokenType.RBRACKET)
        return Array(tuple(items))

    def _parse_call(self, callee: str) -> Call:
        """Parse callee(args); named arguments become keyword Identifier + value"""
        self._expect(TokenType.LPAREN)
        args = []

        if not self._check(TokenType.RPAREN):
            while True:
                if self._check(TokenType.LBRACE):
                    # Trailing options object, only valid as the last argument
                    args.extend(self._parse_options_object())
                    break
                args.extend(self._parse_argument())
                if not self._check(TokenType.COMMA):
                    break
                self._advance()

        self._expect(TokenType.RPAREN)
        return Call(callee, tuple(args))

    def _parse_argument(self) -> List[ASTNode]:
        token = self._current()
        if token.type == TokenType.IDENTIFIER and self._peek().type == TokenType.ASSIGN:
            self._advance()
            self._advance()
            return [Identifier(token.value, keyword=True), self._parse_expression()]
        return [self._parse_expression()]

    def _parse_options_object(self) -> List[ASTNode]:
        """Parse { name: expr, ... } into interleaved keyword pairs"""
        self._expect(TokenType.LBRACE)
        pairs = []
        if not self._check(TokenType.RBRACE):
            while True:
                name = self._expect(TokenType.IDENTIFIER).value
                self._expect(TokenType.COLON)
                pairs.extend([Identifier(name, keyword=True), self._parse_expression()])
                if not self._check(TokenType.COMMA):
                    break
                self._advance()
        self._expect(TokenType.RBRACE)
        return pairs


def parse_expression(text: str) -> Optional[ASTNode]:
    """Parse one expression; returns None when the text is not a valid expression"""
    try:
        tokens = StarLexer(text).tokenize()
        return ExpressionParser(tokens).parse()
    except ParseError as e:
        logger.debug(f"Expression rejected: {text!r}: {e}")
        return None
    except RecursionError:
        logger.debug(f"Expression nested too deeply: {text[:40]!r}...")
        return None


class StarScriptParser:
    """
    Parser for Star Script source.

    Works line by line; a line that matches none of the statement forms is
    dropped rather than reported, so parse() never raises.
    """

    LINE_SPLIT = re.compile(r'\r?\n')
    INDICATOR_PATTERN = re.compile(r'^indicator\b')
    ASSIGNMENT_PATTERN = re.compile(r'^([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.+)$')
    CALL_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_.]*\s*\(')

    def __init__(self):
        self.statement_attempts: Tuple[Callable[[str], Optional[Assignment]], ...] = (
            self._try_assignment,
            self._try_bare_call,
        )

    def parse(self, source: str) -> Program:
        """Parse Star Script source code"""
        indicators = []
        assignments = []

        for line_no, raw in enumerate(self.LINE_SPLIT.split(source), start=1):
            line = raw.strip()
            if not line or line.startswith('//') or line.startswith('/*'):
                continue

            indicator = self._try_indicator(line)
            if indicator is not None:
                indicators.append(indicator)
                continue

            statement = self._first_statement(line)
            if statement is None:
                logger.debug(f"Skipping unrecognized line {line_no}: {line!r}")
                continue
            assignments.append(statement)

        return Program(indicators=tuple(indicators), assignments=tuple(assignments))

    def _first_statement(self, line: str) -> Optional[Assignment]:
        for attempt in self.statement_attempts:
            statement = attempt(line)
            if statement is not None:
                return statement
        return None

    def _try_indicator(self, line: str) -> Optional[str]:
        if self.INDICATOR_PATTERN.match(line):
            return line
        return None

    def _try_assignment(self, line: str) -> Optional[Assignment]:
        match = self.ASSIGNMENT_PATTERN.match(line)
        if not match or match.group(1) == CALL_SENTINEL:
            return None
        expr = parse_expression(match.group(2))
        if expr is None:
            return None
        return Assignment(match.group(1), expr)

    def _try_bare_call(self, line: str) -> Optional[Assignment]:
        if not self.CALL_PATTERN.match(line):
            return None
        expr = parse_expression(line)
        if isinstance(expr, Call):
            return Assignment(CALL_SENTINEL, expr)
        return None


def parse(source: str) -> Program:
    """Parse Star Script source into a Program"""
    return StarScriptParser().parse(source)
