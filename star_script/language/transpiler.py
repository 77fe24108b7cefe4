"""
Star Transpiler
Renders transformed programs as Star source text or as a runnable Python unit
"""
import json

import numpy as np

from .ast_nodes import (
    ASTNode, Array, Assignment, Binary, Call, Identifier, Index, Number, Program, String, Unary
)
from .parser import parse
from .transform import STAR_ALIASES, transform_program

# Binding strength used to decide where parentheses are needed
PRECEDENCE = {'+': 1, '-': 1, '*': 2, '/': 2, '^': 3}
UNARY_PRECEDENCE = 4
ATOM_PRECEDENCE = 5

STRING_ESCAPES = {'\\': '\\\\', '"': '\\"', '\n': '\\n', '\t': '\\t'}

MODULE_TEMPLATE = '''"""
Generated by star-transpile from Star Script source.

Requires the star_script package for the AST classes. `run` takes any
runtime exposing evaluate(node, env) and make_default_env().
"""
import json

from star_script.language.ast_nodes import Program

STAR_ALIASES = {aliases!r}

PROGRAM_JSON = {program_json}


def run(runtime, op_limit=None, config=None):
    """Replay the program against a fresh environment from `runtime`"""
    program = Program.from_dict(json.loads(PROGRAM_JSON))
    options = {{}}
    if op_limit is not None:
        options['op_limit'] = op_limit
    if config is not None:
        options['config'] = config
    env = runtime.make_default_env(**options)
    env['star'] = {{name: env[name] for name in STAR_ALIASES}}
    for assignment in program.assignments:
        value = runtime.evaluate(assignment.expr, env)
        if not assignment.is_call:
            env[assignment.id] = value
    return {{'env': env, 'plots': env.plots}}
'''


def _precedence(node: ASTNode) -> int:
    if isinstance(node, Binary):
        return PRECEDENCE.get(node.op, 0)
    if isinstance(node, Unary):
        return UNARY_PRECEDENCE
    return ATOM_PRECEDENCE


def _wrap(node: ASTNode, minimum: int) -> str:
    text = render_expr(node)
    if _precedence(node) < minimum:
        return f"({text})"
    return text


def render_number(value) -> str:
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    return np.format_float_positional(value, trim='0')


def render_string(value: str) -> str:
    return '"' + ''.join(STRING_ESCAPES.get(c, c) for c in value) + '"'


def render_call(node: Call) -> str:
    """callee(positional..., { name: value, ... })"""
    positional, named = node.split_args()
    parts = [render_expr(arg) for arg in positional]
    if named:
        entries = ', '.join(f"{name}: {render_expr(value)}" for name, value in named)
        parts.append(f"{{ {entries} }}")
    return f"{node.callee}({', '.join(parts)})"


def render_expr(node: ASTNode) -> str:
    """Render an expression as Star source"""
    if isinstance(node, Number):
        return render_number(node.value)
    if isinstance(node, String):
        return render_string(node.value)
    if isinstance(node, Identifier):
        return node.name
    if isinstance(node, Array):
        return '[' + ', '.join(render_expr(item) for item in node.items) + ']'
    if isinstance(node, Index):
        return f"{_wrap(node.target, ATOM_PRECEDENCE)}[{render_expr(node.index)}]"
    if isinstance(node, Unary):
        return f"{node.op}{_wrap(node.expr, UNARY_PRECEDENCE)}"
    if isinstance(node, Binary):
        prec = PRECEDENCE[node.op]
        if node.op == '^':
            # Right associative: a ^ (b ^ c) needs no parentheses, (a ^ b) ^ c does
            left = _wrap(node.left, prec + 1)
            right = _wrap(node.right, prec)
        else:
            left = _wrap(node.left, prec)
            right = _wrap(node.right, prec + 1)
        return f"{left} {node.op} {right}"
    if isinstance(node, Call):
        return render_call(node)
    raise ValueError(f"Cannot render node type: {type(node).__name__}")


def render_statement(assignment: Assignment) -> str:
    if assignment.is_call:
        return render_expr(assignment.expr)
    return f"{assignment.id} = {render_expr(assignment.expr)}"


def render_program(program: Program) -> str:
    try:
        return '\n'.join(render_statement(a) for a in program.assignments)
    except RecursionError as e:
        raise ValueError("Expression nested too deeply to render") from e


def transpile_pine_to_star(source: str) -> str:
    """Parse, normalize callees and render one line per statement"""
    return render_program(transform_program(parse(source)))


def transpile_to_module(source: str) -> str:
    """
    Python source for a unit exposing `run(runtime, op_limit=None, config=None)`.

    The unit imports `star_script.language.ast_nodes`, so the package must be
    importable where it runs. `runtime` must provide `evaluate(node, env)`
    and `make_default_env()`; `op_limit` and `config` are only forwarded to
    `make_default_env` when given. The `star_script.runtime` package fits.
    """
    program = transform_program(parse(source))
    try:
        program_json = json.dumps(program.to_dict())
    except RecursionError as e:
        raise ValueError("Expression nested too deeply to serialize") from e
    return MODULE_TEMPLATE.format(aliases=STAR_ALIASES, program_json=repr(program_json))
