"""
AST node definitions for Star Script
Every node is a frozen dataclass; child sequences are tuples so trees can be
shared between the parser, transformer and transpiler without copying.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union

CALL_SENTINEL = "_call"


class ASTNode:
    """Base class for all expression nodes"""

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class Number(ASTNode):
    value: Union[int, float]

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'Number', 'value': self.value}


@dataclass(frozen=True)
class String(ASTNode):
    value: str

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'String', 'value': self.value}


@dataclass(frozen=True)
class Identifier(ASTNode):
    """
    Name reference, e.g. `close` or `syminfo.tickerid`.

    `keyword` marks the name half of a named argument (`title="x"`). It is
    excluded from equality so the interleaved argument shape compares the
    same whether or not the marker was set.
    """
    name: str
    keyword: bool = field(default=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        data = {'type': 'Identifier', 'name': self.name}
        if self.keyword:
            data['keyword'] = True
        return data


@dataclass(frozen=True)
class Array(ASTNode):
    items: Tuple[ASTNode, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'Array', 'items': [item.to_dict() for item in self.items]}


@dataclass(frozen=True)
class Index(ASTNode):
    """Series subscript, e.g. close[12]"""
    target: ASTNode
    index: ASTNode

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'Index', 'target': self.target.to_dict(), 'index': self.index.to_dict()}


@dataclass(frozen=True)
class Unary(ASTNode):
    op: str
    expr: ASTNode

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'Unary', 'op': self.op, 'expr': self.expr.to_dict()}


@dataclass(frozen=True)
class Binary(ASTNode):
    op: str
    left: ASTNode
    right: ASTNode

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'Binary',
            'op': self.op,
            'left': self.left.to_dict(),
            'right': self.right.to_dict()
        }


@dataclass(frozen=True)
class Call(ASTNode):
    """
    Function call with a dotted callee.

    Named arguments are interleaved into `args` as a keyword Identifier
    immediately followed by the value node:
        f(a=1, b=2) -> args = (Identifier a, Number 1, Identifier b, Number 2)
    """
    callee: str
    args: Tuple[ASTNode, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'Call', 'callee': self.callee, 'args': [arg.to_dict() for arg in self.args]}

    def split_args(self) -> Tuple[List[ASTNode], List[Tuple[str, ASTNode]]]:
        """Separate positional arguments from (name, value) keyword pairs"""
        positional = []
        named = []
        args = list(self.args)
        i = 0
        while i < len(args):
            arg = args[i]
            if isinstance(arg, Identifier) and arg.keyword and i + 1 < len(args):
                named.append((arg.name, args[i + 1]))
                i += 2
                continue
            positional.append(arg)
            i += 1
        return positional, named


Expression = Union[Number, String, Identifier, Array, Index, Unary, Binary, Call]


@dataclass(frozen=True)
class Assignment:
    id: str
    expr: ASTNode

    @property
    def is_call(self) -> bool:
        return self.id == CALL_SENTINEL

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'expr': self.expr.to_dict()}


@dataclass(frozen=True)
class Program:
    indicators: Tuple[str, ...] = ()
    assignments: Tuple[Assignment, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'indicators': list(self.indicators),
            'assignments': [a.to_dict() for a in self.assignments]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Program':
        """Rebuild a Program from its `to_dict` form"""
        assignments = tuple(
            Assignment(id=a['id'], expr=node_from_dict(a['expr']))
            for a in data.get('assignments', [])
        )
        return cls(indicators=tuple(data.get('indicators', [])), assignments=assignments)


def node_from_dict(data: Dict[str, Any]) -> ASTNode:
    """Rebuild an expression node from its `to_dict` form"""
    node_type = data.get('type') if isinstance(data, dict) else None
    builder = _NODE_BUILDERS.get(node_type)
    if builder is None:
        raise ValueError(f"Unknown AST node type: {node_type!r}")
    return builder(data)


_NODE_BUILDERS = {
    'Number': lambda d: Number(d['value']),
    'String': lambda d: String(d['value']),
    'Identifier': lambda d: Identifier(d['name'], keyword=bool(d.get('keyword', False))),
    'Array': lambda d: Array(tuple(node_from_dict(i) for i in d.get('items', []))),
    'Index': lambda d: Index(node_from_dict(d['target']), node_from_dict(d['index'])),
    'Unary': lambda d: Unary(d['op'], node_from_dict(d['expr'])),
    'Binary': lambda d: Binary(d['op'], node_from_dict(d['left']), node_from_dict(d['right'])),
    'Call': lambda d: Call(d['callee'], tuple(node_from_dict(a) for a in d.get('args', []))),
}
