"""
Grammar-generated Star Script parser
LALR parser built with Lark, used as the reference for conformance checks.

Produces a raw program dictionary whose nodes carry `loc` metadata and use
their own field names (`operator`, `argument`, `object`, `NamedArg`); see
`adapt_generated_program` for the conversion to the hand-parser AST.
"""
from functools import lru_cache
from typing import Any, Dict, List, Optional

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import LarkError, VisitError

from .ast_nodes import (
    ASTNode, Array, Assignment, Binary, Call, CALL_SENTINEL, Identifier, Index, Number, Program, String, Unary
)
from .parser import number_value, unescape_string

STAR_GRAMMAR = r"""
    start: (_statement? _NL)* _statement?

    _statement: indicator
              | assignment
              | call_stmt

    indicator: INDICATOR_LINE
    assignment: NAME "=" expr
    call_stmt: _name "(" [arguments] ")"

    ?expr: sum

    ?sum: product
        | sum "+" product   -> add
        | sum "-" product   -> sub

    ?product: power
        | product "*" power -> mul
        | product "/" power -> div

    ?power: unary
        | unary "^" power   -> pow

    ?unary: postfix
        | "-" unary         -> neg
        | "+" unary         -> pos

    ?postfix: atom
        | postfix "[" expr "]" -> index

    ?atom: NUMBER           -> number
        | STRING            -> string
        | "(" expr ")"
        | "[" [expr ("," expr)*] "]" -> array
        | _name "(" [arguments] ")"  -> call
        | _name             -> identifier

    arguments: argument ("," argument)* ("," options)?
             | options

    ?argument: _name "=" expr -> named_arg
             | expr

    options: "{" [pair ("," pair)*] "}"
    pair: _name ":" expr

    _name: NAME | DOTTED_NAME

    INDICATOR_LINE.2: /indicator\b[^\n]*/
    DOTTED_NAME: /[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)+/
    NAME: /[A-Za-z_][A-Za-z0-9_]*/
    NUMBER: /\d+(\.\d+)?|\.\d+/
    STRING: /"(\\.|[^"\\\n])*"|'(\\.|[^'\\\n])*'/

    COMMENT: /\/\/[^\n]*/
    BLOCK_COMMENT_LINE: /\/\*[^\n]*/
    WS: /[ \t\f\r]+/
    _NL: /\n/

    %ignore COMMENT
    %ignore BLOCK_COMMENT_LINE
    %ignore WS
"""


class GrammarParseError(ValueError):
    """Source rejected by the generated parser"""


def _loc(meta) -> Dict[str, Optional[int]]:
    return {
        'line': getattr(meta, 'line', None),
        'column': getattr(meta, 'column', None),
        'end_line': getattr(meta, 'end_line', None),
        'end_column': getattr(meta, 'end_column', None),
    }


def _token_loc(token: Token) -> Dict[str, Optional[int]]:
    return {
        'line': token.line,
        'column': token.column,
        'end_line': token.end_line,
        'end_column': token.end_column,
    }


@v_args(meta=True, inline=True)
class RawProgramBuilder(Transformer):
    """Builds the raw (generated-shape) program dictionary"""

    def start(self, meta, *statements):
        indicators = [s['text'] for s in statements if s['type'] == 'Indicator']
        assignments = [s for s in statements if s['type'] == 'Assignment']
        return {'type': 'Program', 'indicators': indicators, 'assignments': assignments, 'loc': _loc(meta)}

    def indicator(self, meta, line):
        return {'type': 'Indicator', 'text': str(line).strip(), 'loc': _loc(meta)}

    def assignment(self, meta, name, expr):
        if str(name) == CALL_SENTINEL:
            raise GrammarParseError(f"Reserved assignment target {CALL_SENTINEL!r} at line {meta.line}")
        return {'type': 'Assignment', 'id': str(name), 'expr': expr, 'loc': _loc(meta)}

    def call_stmt(self, meta, name, arguments=None):
        call = self.call(meta, name, arguments)
        return {'type': 'Assignment', 'id': None, 'expr': call, 'loc': _loc(meta)}

    def _binary(self, meta, operator, left, right):
        return {'type': 'Binary', 'operator': operator, 'left': left, 'right': right, 'loc': _loc(meta)}

    def add(self, meta, left, right):
        return self._binary(meta, '+', left, right)

    def sub(self, meta, left, right):
        return self._binary(meta, '-', left, right)

    def mul(self, meta, left, right):
        return self._binary(meta, '*', left, right)

    def div(self, meta, left, right):
        return self._binary(meta, '/', left, right)

    def pow(self, meta, left, right):
        return self._binary(meta, '^', left, right)

    def neg(self, meta, argument):
        return {'type': 'Unary', 'operator': '-', 'argument': argument, 'loc': _loc(meta)}

    def pos(self, meta, argument):
        return {'type': 'Unary', 'operator': '+', 'argument': argument, 'loc': _loc(meta)}

    def index(self, meta, target, index):
        return {'type': 'Index', 'object': target, 'index': index, 'loc': _loc(meta)}

    def number(self, meta, token):
        return {'type': 'Number', 'value': number_value(str(token)), 'loc': _token_loc(token)}

    def string(self, meta, token):
        return {'type': 'String', 'value': unescape_string(str(token)[1:-1]), 'loc': _token_loc(token)}

    def identifier(self, meta, name):
        return {'type': 'Identifier', 'name': str(name), 'loc': _token_loc(name)}

    def array(self, meta, *items):
        return {'type': 'Array', 'items': list(items), 'loc': _loc(meta)}

    def call(self, meta, name, arguments=None):
        return {'type': 'Call', 'callee': str(name), 'args': arguments or [], 'loc': _loc(meta)}

    def arguments(self, meta, *args):
        flat = []
        for arg in args:
            if isinstance(arg, list):
                flat.extend(arg)  # options object
            else:
                flat.append(arg)
        return flat

    def named_arg(self, meta, name, value):
        return {'type': 'NamedArg', 'name': str(name), 'value': value, 'loc': _loc(meta)}

    def options(self, meta, *pairs):
        return list(pairs)

    def pair(self, meta, name, value):
        return {'type': 'NamedArg', 'name': str(name), 'value': value, 'loc': _loc(meta)}


@lru_cache(maxsize=1)
def get_grammar_parser() -> Lark:
    """Compiled LALR parser, built once per process"""
    return Lark(STAR_GRAMMAR, start='start', parser='lalr', propagate_positions=True,
                maybe_placeholders=False)


def parse_generated(source: str) -> Dict[str, Any]:
    """Parse with the grammar-generated parser; raises GrammarParseError"""
    try:
        tree = get_grammar_parser().parse(source)
        return RawProgramBuilder().transform(tree)
    except VisitError as e:
        if isinstance(e.orig_exc, GrammarParseError):
            raise e.orig_exc from e
        raise GrammarParseError(str(e)) from e
    except LarkError as e:
        raise GrammarParseError(str(e)) from e


def _adapt_expr(raw: Dict[str, Any]) -> ASTNode:
    node_type = raw.get('type')

    if node_type == 'Number':
        return Number(raw['value'])
    if node_type == 'String':
        return String(raw['value'])
    if node_type == 'Identifier':
        return Identifier(raw['name'])
    if node_type == 'Array':
        return Array(tuple(_adapt_expr(item) for item in raw.get('items', [])))
    if node_type == 'Index':
        return Index(_adapt_expr(raw['object']), _adapt_expr(raw['index']))
    if node_type == 'Unary':
        return Unary(raw['operator'], _adapt_expr(raw['argument']))
    if node_type == 'Binary':
        return Binary(raw['operator'], _adapt_expr(raw['left']), _adapt_expr(raw['right']))
    if node_type == 'Call':
        args: List[ASTNode] = []
        for arg in raw.get('args', []):
            if arg.get('type') == 'NamedArg':
                args.extend([Identifier(arg['name'], keyword=True), _adapt_expr(arg['value'])])
            else:
                args.append(_adapt_expr(arg))
        return Call(raw['callee'], tuple(args))

    raise ValueError(f"Unknown generated node type: {node_type!r}")


def adapt_generated_program(raw: Dict[str, Any]) -> Program:
    """Convert a raw generated program into the hand-parser Program"""
    assignments = []
    for statement in raw.get('assignments', []):
        target = statement.get('id') or CALL_SENTINEL
        assignments.append(Assignment(target, _adapt_expr(statement['expr'])))
    return Program(indicators=tuple(raw.get('indicators', [])), assignments=tuple(assignments))
