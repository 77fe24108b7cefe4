import math
from types import SimpleNamespace

import pandas as pd
import pytest

from star_script.language.ast_nodes import Identifier, Number, Unary
from star_script.language.parser import parse_expression
from star_script.runtime.evaluator import (
    Environment, EvaluationError, Keyword, OperationLimitExceeded, Unresolved, UnresolvedCall, evaluate
)


def ev(text, env=None):
    return evaluate(parse_expression(text), env if env is not None else Environment())


def test_arithmetic_precedence():
    assert ev("1 + 2 * 3") == 7
    assert ev("(1 + 2) * 3") == 9
    assert ev("2 ^ 3 ^ 2") == 512
    assert ev("-2 ^ 2") == 4
    assert ev("10 / 4") == 2.5


def test_division_by_zero_follows_ieee():
    assert math.isinf(ev("1 / 0"))
    assert math.isnan(ev("0 / 0"))
    assert ev("-1 / 0") < 0


def test_power_overflow_is_infinite():
    assert math.isinf(ev("10 ^ 400"))


def test_booleans():
    assert ev("true") is True
    assert ev("false") is False


def test_unresolved_identifier_degrades_to_name():
    value = ev("foo.bar")
    assert isinstance(value, Unresolved)
    assert value == "foo.bar"


def test_dotted_resolution_over_mappings_and_attributes():
    env = Environment({'a': {'b': SimpleNamespace(c=5)}})
    assert ev("a.b.c", env) == 5


def test_underscore_segments_never_resolve():
    env = Environment({'obj': SimpleNamespace(_secret=1, public=2)})
    assert isinstance(ev("obj._secret", env), Unresolved)
    assert ev("obj.public", env) == 2


def test_keyword_marker_evaluates_to_keyword():
    value = evaluate(Identifier('title', keyword=True), Environment())
    assert isinstance(value, Keyword)
    assert value == 'title'


def test_host_call_receives_positional_and_keyword_arguments():
    env = Environment({'f': lambda *args, **kwargs: (args, kwargs)})
    assert ev('f(1, "x", size=2)', env) == ((1, 'x'), {'size': 2})
    assert ev('f(1, { size: 3 })', env) == ((1,), {'size': 3})


def test_arguments_are_evaluated_left_to_right():
    seen = []
    env = Environment({'log': lambda value: seen.append(value) or value, 'f': lambda *args: args})
    ev("f(log(1), log(2), log(3))", env)
    assert seen == [1, 2, 3]


def test_unknown_call_returns_placeholder():
    assert ev("nothing(1, 2)") == UnresolvedCall('nothing', (1, 2))


def test_operation_limit():
    env = Environment(op_limit=3)
    with pytest.raises(OperationLimitExceeded, match=r"operation limit \(3\)"):
        ev("1 + 2 + 3", env)


def test_operation_counter_counts_nodes():
    env = Environment()
    ev("1 + 2 * 3", env)
    assert env.op_count == 5


def test_incompatible_operands_raise():
    with pytest.raises(EvaluationError, match="-"):
        ev('"a" - 1')
    with pytest.raises(EvaluationError):
        ev('-"a"')


def test_string_concatenation():
    assert ev('"a" + "b"') == "ab"


def test_series_broadcast():
    env = Environment({'close': pd.Series([1.0, 2.0, 3.0])})
    assert list(ev("close * 2", env)) == [2.0, 4.0, 6.0]
    assert list(ev("close / 0", env)) == [math.inf] * 3


def test_index_is_positional():
    env = Environment({'close': pd.Series([1.0, 2.0, 3.0], index=[10, 20, 30])})
    assert ev("close[0]", env) == 1.0
    assert ev("[10, 20, 30][1]") == 20
    assert ev("[10, 20][1.0]") == 20


def test_index_errors_propagate():
    with pytest.raises(IndexError):
        ev("[1, 2][5]")


def test_unsupported_node():
    with pytest.raises(EvaluationError):
        evaluate(object(), Environment())


def test_long_flat_chain_evaluates_without_recursion():
    env = Environment()
    assert ev(" + ".join(["1"] * 3000), env) == 3000
    assert env.op_count == 5999
    assert ev(" - ".join(["1"] * 2000)) == -1998


def test_chain_respects_operation_limit():
    with pytest.raises(OperationLimitExceeded):
        ev(" + ".join(["1"] * 3000), Environment(op_limit=100))


def test_excessive_nesting_raises_evaluation_error():
    node = Number(1)
    for _ in range(20000):
        node = Unary('-', node)
    with pytest.raises(EvaluationError, match="nested too deeply"):
        evaluate(node, Environment())


def test_host_type_errors_name_the_callee():
    env = Environment({'g': lambda value: value})
    with pytest.raises(EvaluationError, match="Call to g failed"):
        ev("g(1, 2)", env)
    with pytest.raises(EvaluationError, match="Call to g failed"):
        ev("g(1, size=2)", env)
