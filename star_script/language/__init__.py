# Language front end: AST, parsers, transformer and transpiler
from .ast_nodes import (
    ASTNode, Array, Assignment, Binary, Call, CALL_SENTINEL, Identifier, Index, Number, Program,
    String, Unary, node_from_dict
)
from .parser import StarScriptParser, parse, parse_expression
from .transform import normalize_callee, transform_program
from .transpiler import render_expr, transpile_pine_to_star, transpile_to_module
