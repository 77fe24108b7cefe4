"""
Star Script Evaluator
Tree-walking execution of AST nodes against an explicit Environment
"""
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from loguru import logger

from star_script.language.ast_nodes import (
    ASTNode, Array, Binary, Call, Identifier, Index, Number, String, Unary
)


class EvaluationError(RuntimeError):
    """Raised for unsupported nodes, operators or operand types"""


class OperationLimitExceeded(EvaluationError):
    """Raised when a run visits more nodes than its operation budget allows"""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Runtime exceeded operation limit ({limit})")


class Unresolved(str):
    """Raw name returned for an identifier that does not resolve"""

    def __repr__(self):
        return f"Unresolved({str.__repr__(self)})"


class Keyword(str):
    """Name half of a named argument once evaluated"""

    def __repr__(self):
        return f"Keyword({str.__repr__(self)})"


@dataclass(frozen=True)
class UnresolvedCall:
    """Placeholder result of calling something that is not callable"""
    callee: str
    args: Tuple[Any, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {'callee': self.callee, 'args': list(self.args)}


_MISSING = object()


class Environment:
    """
    Execution context for one run.

    Holds name bindings (series, host namespaces and user variables), the
    plots and inputs recorded by host functions, and the operation counter.
    """

    def __init__(self, bindings: Optional[Dict[str, Any]] = None, op_limit: Optional[int] = None):
        self.bindings: Dict[str, Any] = dict(bindings or {})
        self.plots: List[Dict[str, Any]] = []
        self.inputs: Dict[str, Any] = {}
        self.op_count = 0
        self.op_limit = op_limit

    def __getitem__(self, name: str) -> Any:
        return self.bindings[name]

    def __setitem__(self, name: str, value: Any):
        self.bindings[name] = value

    def __contains__(self, name: str) -> bool:
        return name in self.bindings

    def get(self, name: str, default: Any = None) -> Any:
        return self.bindings.get(name, default)

    def tick(self):
        """Count one visited node against the budget"""
        self.op_count += 1
        if self.op_limit is not None and self.op_count > self.op_limit:
            raise OperationLimitExceeded(self.op_limit)

    def resolve(self, path: str) -> Any:
        """Resolve a dotted name; returns _MISSING when any segment fails"""
        return resolve_path(self.bindings, path)


def resolve_path(root: Any, path: str) -> Any:
    """
    Walk a dotted path over mappings and object attributes.

    Segments starting with an underscore never resolve, so scripts cannot
    reach private or dunder attributes of host objects.
    """
    current = root
    for segment in path.split('.'):
        if not segment or segment.startswith('_') or current is None:
            return _MISSING
        if isinstance(current, Mapping):
            current = current.get(segment, _MISSING)
        else:
            current = getattr(current, segment, _MISSING)
        if current is _MISSING:
            return _MISSING
    return current


def split_arguments(values: List[Any]) -> Tuple[List[Any], Dict[str, Any]]:
    """Fold evaluated call arguments into positional values and keyword options"""
    positional = []
    named = {}
    i = 0
    while i < len(values):
        value = values[i]
        if isinstance(value, Keyword) and i + 1 < len(values):
            named[str(value)] = values[i + 1]
            i += 2
            continue
        positional.append(value)
        i += 1
    return positional, named


def evaluate(node: ASTNode, env: Environment) -> Any:
    """Evaluate an expression node"""
    try:
        return _evaluate(node, env)
    except RecursionError as e:
        raise EvaluationError("Expression nested too deeply to evaluate") from e


def _evaluate(node: ASTNode, env: Environment) -> Any:
    env.tick()

    if isinstance(node, Number):
        return node.value

    if isinstance(node, String):
        return node.value

    if isinstance(node, Identifier):
        return _eval_identifier(node, env)

    if isinstance(node, Binary):
        return _eval_binary_chain(node, env)

    if isinstance(node, Unary):
        return _eval_unary(node.op, _evaluate(node.expr, env))

    if isinstance(node, Call):
        return _eval_call(node, env)

    if isinstance(node, Array):
        return [_evaluate(item, env) for item in node.items]

    if isinstance(node, Index):
        target = _evaluate(node.target, env)
        index = _evaluate(node.index, env)
        return _eval_index(target, index)

    raise EvaluationError(f"Runtime does not support node type: {type(node).__name__}")


def _eval_identifier(node: Identifier, env: Environment) -> Any:
    if node.name == 'true':
        return True
    if node.name == 'false':
        return False
    if node.keyword:
        return Keyword(node.name)

    value = env.resolve(node.name)
    if value is _MISSING:
        return Unresolved(node.name)
    return value


def _eval_binary_chain(node: Binary, env: Environment) -> Any:
    """Evaluate a left-leaning chain such as a + b - c without recursing down its left spine"""
    chain = [node]
    base = node.left
    while node.op != '^' and isinstance(base, Binary) and base.op != '^':
        env.tick()
        chain.append(base)
        base = base.left

    value = _evaluate(base, env)
    for link in reversed(chain):
        value = _eval_binary(link.op, value, _evaluate(link.right, env))
    return value


def _eval_binary(op: str, left: Any, right: Any) -> Any:
    """Arithmetic with IEEE semantics for division and exponentiation"""
    try:
        if op == '+':
            return left + right
        if op == '-':
            return left - right
        if op == '*':
            return left * right
        if op == '/':
            with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
                return np.true_divide(left, right)
        if op == '^':
            with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
                return np.float_power(left, right)
    except TypeError as e:
        raise EvaluationError(
            f"Unsupported operand types for {op}: {type(left).__name__} and {type(right).__name__}"
        ) from e

    raise EvaluationError(f"Unsupported binary op {op}")


def _eval_unary(op: str, value: Any) -> Any:
    try:
        if op == '-':
            return -value
        if op == '+':
            return +value
    except TypeError as e:
        raise EvaluationError(f"Unsupported operand type for unary {op}: {type(value).__name__}") from e

    raise EvaluationError(f"Unsupported unary op {op}")


def _eval_call(node: Call, env: Environment) -> Any:
    function = env.resolve(node.callee)
    values = [_evaluate(arg, env) for arg in node.args]

    if not callable(function):
        logger.debug(f"Unresolved call: {node.callee}")
        return UnresolvedCall(node.callee, tuple(values))

    positional, named = split_arguments(values)
    try:
        return function(*positional, **named)
    except TypeError as e:
        raise EvaluationError(f"Call to {node.callee} failed: {e}") from e


def _eval_index(target: Any, index: Any) -> Any:
    if isinstance(index, float) and index.is_integer():
        index = int(index)
    if isinstance(target, pd.Series):
        return target.iloc[index]
    return target[index]
