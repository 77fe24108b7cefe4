"""
Script Runner
Default host environment and the parse-and-run driver
"""
import math
import zlib
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from loguru import logger

from star_script.core.config import Config
from star_script.core.strategy_engine import StrategyEngine
from star_script.language.parser import parse
from star_script.language.transform import STAR_ALIASES
from star_script.runtime.evaluator import Environment, evaluate
from star_script.runtime.indicators import TechnicalAnalysis

NAMED_COLORS = {
    'red': 'rgb(255,0,0)',
    'green': 'rgb(0,128,0)',
    'blue': 'rgb(0,0,255)',
    'white': 'rgb(255,255,255)',
    'black': 'rgb(0,0,0)',
}

# Maximum price offset applied by request.security
SECURITY_OFFSET_RANGE = 50.0


@dataclass
class RunResult:
    env: Environment
    plots: List[Dict[str, Any]]
    indicators: List[str]


def synthetic_close(length: int = 200, base_price: float = 100.0, price_step: float = 0.5) -> pd.Series:
    """Deterministic rising close series: base_price + price_step * i"""
    return pd.Series(base_price + price_step * np.arange(length), dtype=float, name='close')


class MathNamespace:
    """The `math` namespace"""

    def avg(self, *values, **options):
        if not values:
            return float('nan')
        return sum(values) / len(values)

    def abs(self, value, **options):
        return abs(value)

    def max(self, *values, **options):
        return max(values)

    def min(self, *values, **options):
        return min(values)

    def sqrt(self, value, **options):
        return np.sqrt(value)

    def pow(self, base, exponent, **options):
        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            return np.float_power(base, exponent)

    def round(self, value, precision=0, **options):
        return round(value, int(precision)) if precision else round(value)


class ColorNamespace:
    """The `color` namespace: rgb() plus named constants"""

    def __init__(self):
        for name, value in NAMED_COLORS.items():
            setattr(self, name, value)

    def rgb(self, r, g, b, *args, **options):
        return f"rgb({r},{g},{b})"


class InputNamespace:
    """
    The `input` namespace.

    `input(...)` and `input.int/float/bool/string/source(...)` all return
    their default and record it in `env.inputs` under its title.
    """

    def __init__(self, env: Environment):
        self._env = env
        self.int = self._record
        self.float = self._record
        self.bool = self._record
        self.string = self._record
        self.source = self._record

    def __call__(self, *args, **options):
        return self._record(*args, **options)

    def _record(self, defval=None, *args, **options):
        title = options.get('title')
        if title is None and args:
            first = args[0]
            if isinstance(first, Mapping):
                title = first.get('title')
            elif isinstance(first, str):
                title = first
        if title is not None:
            self._env.inputs[str(title)] = defval
        return defval


class RequestNamespace:
    """The `request` namespace"""

    def __init__(self, env: Environment):
        self._env = env

    def security(self, symbol, timeframe, expr=None, *args, **options):
        """Series for another symbol/timeframe, offset deterministically per symbol"""
        if isinstance(expr, pd.Series):
            base = expr
        elif isinstance(expr, (list, tuple, np.ndarray)):
            base = pd.Series(expr, dtype=float)
        else:
            base = self._env['close']
        return base + security_offset(symbol, timeframe)


def security_offset(symbol: Any, timeframe: Any) -> float:
    """CRC-32 of "symbol:timeframe" scaled into [0, 50]"""
    crc = zlib.crc32(f"{symbol}:{timeframe}".encode('utf-8'))
    return crc / 0xFFFFFFFF * SECURITY_OFFSET_RANGE


def make_plot(env: Environment):
    def plot(series=None, *args, **options):
        title = options.get('title')
        if title is None and args:
            first = args[0]
            if isinstance(first, Mapping):
                title = first.get('title')
            elif isinstance(first, str):
                title = first
        env.plots.append({
            'callee': 'plot',
            'args': [series, *args],
            'title': title,
            'options': options
        })
        return None
    return plot


def make_default_env(op_limit: Optional[int] = None, config: Optional[Config] = None) -> Environment:
    """
    Build a fresh environment with synthetic series and the host namespaces.

    The operation budget is unbounded unless `op_limit` is given or an
    explicit config supplies `runtime.op_limit`.
    """
    if op_limit is None and config is not None:
        op_limit = config.get('runtime.op_limit')
    config = config or Config()

    close = synthetic_close(
        length=int(config.get('runtime.series_length', 200)),
        base_price=float(config.get('runtime.base_price', 100.0)),
        price_step=float(config.get('runtime.price_step', 0.5))
    )

    env = Environment(op_limit=op_limit)
    env['close'] = close
    env['high'] = (close + 1).rename('high')
    env['low'] = (close - 1).rename('low')
    env['plot'] = make_plot(env)
    env['ta'] = TechnicalAnalysis()
    env['math'] = MathNamespace()
    env['color'] = ColorNamespace()
    env['input'] = InputNamespace(env)
    env['request'] = RequestNamespace(env)
    env['strategy'] = StrategyEngine(
        price_source=lambda: _latest_close(env),
        commission_percent=float(config.get('strategy.commission_percent', 0.0)),
        default_qty=int(config.get('strategy.default_qty', 1))
    )
    return env


def _latest_close(env: Environment) -> float:
    close = env.get('close')
    if isinstance(close, pd.Series):
        return float(close.iloc[-1]) if len(close) else math.nan
    return float(close)


def star_namespace(env: Environment) -> Dict[str, Any]:
    """The `star` alias namespace used by transformed programs"""
    return {name: env[name] for name in STAR_ALIASES}


def run_script(source: str, op_limit: Optional[int] = None, config: Optional[Config] = None) -> RunResult:
    """Parse and evaluate a script, binding each assignment in order"""
    program = parse(source)
    env = make_default_env(op_limit=op_limit, config=config)

    for assignment in program.assignments:
        value = evaluate(assignment.expr, env)
        if not assignment.is_call:
            env[assignment.id] = value

    logger.debug(f"Run finished: {len(program.assignments)} statements, {env.op_count} operations")
    return RunResult(env=env, plots=env.plots, indicators=list(program.indicators))
