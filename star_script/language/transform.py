"""
AST Transformer
Rewrites call targets into the `star` host namespace
"""
from dataclasses import replace

from .ast_nodes import (
    ASTNode, Array, Binary, Call, Index, Program, Unary
)

STAR_PREFIX = "star."

# Host names mirrored under `star.` for transformed programs
STAR_ALIASES = ('plot', 'ta', 'request', 'input', 'math', 'color', 'strategy')

# Bare TA names that are routed to star.ta
TA_SHORTHANDS = frozenset({'sma', 'ema', 'rsi', 'wma', 'ma', 'stdev', 'sum', 'avg', 'max', 'min'})

NAMESPACE_PREFIXES = ('ta.', 'request.')


def normalize_callee(callee: str) -> str:
    """Map a source-level callee to its star namespace name"""
    if callee == 'plot':
        return STAR_PREFIX + 'plot'
    if callee.startswith('input'):
        return STAR_PREFIX + callee
    if callee.startswith(NAMESPACE_PREFIXES):
        return STAR_PREFIX + callee
    if callee.startswith(STAR_PREFIX):
        return callee
    if callee in TA_SHORTHANDS:
        return STAR_PREFIX + 'ta.' + callee
    return callee


def transform_node(node: ASTNode) -> ASTNode:
    """Rebuild an expression tree with normalized call targets"""
    if isinstance(node, Call):
        return Call(normalize_callee(node.callee), tuple(transform_node(a) for a in node.args))
    if isinstance(node, Binary):
        return Binary(node.op, transform_node(node.left), transform_node(node.right))
    if isinstance(node, Unary):
        return Unary(node.op, transform_node(node.expr))
    if isinstance(node, Index):
        return Index(transform_node(node.target), transform_node(node.index))
    if isinstance(node, Array):
        return Array(tuple(transform_node(item) for item in node.items))
    return node


def transform_program(program: Program) -> Program:
    """Return a new Program whose calls target the star namespace"""
    try:
        assignments = tuple(
            replace(a, expr=transform_node(a.expr)) for a in program.assignments
        )
    except RecursionError as e:
        raise ValueError("Expression nested too deeply to transform") from e
    return Program(indicators=program.indicators, assignments=assignments)
