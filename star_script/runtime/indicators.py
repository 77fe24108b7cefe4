"""
Technical Indicators Library
Implements the ta.* functions available to Star Script
"""
import numpy as np
import pandas as pd
from typing import Any


class Indicators:
    """
    Rolling indicator math over pandas Series.
    Every function returns a full Series aligned with its source.
    """

    @staticmethod
    def sma(source: pd.Series, length: int) -> pd.Series:
        """Simple Moving Average - ta.sma()"""
        return source.rolling(window=length).mean()

    @staticmethod
    def ema(source: pd.Series, length: int) -> pd.Series:
        """Exponential Moving Average - ta.ema()"""
        return source.ewm(span=length, adjust=False).mean()

    @staticmethod
    def wma(source: pd.Series, length: int) -> pd.Series:
        """Weighted Moving Average - ta.wma()"""
        weights = np.arange(1, length + 1)
        return source.rolling(window=length).apply(
            lambda x: np.dot(x, weights) / weights.sum(), raw=True
        )

    @staticmethod
    def rma(source: pd.Series, length: int) -> pd.Series:
        """Running Moving Average (Wilder's smoothing) - ta.rma()"""
        alpha = 1 / length
        return source.ewm(alpha=alpha, adjust=False).mean()

    @staticmethod
    def rsi(source: pd.Series, length: int = 14) -> pd.Series:
        """Relative Strength Index - ta.rsi(); 50 where price did not move"""
        delta = source.diff()
        gain = (delta.where(delta > 0, 0)).rolling(window=length).mean()
        loss = (-delta.where(delta < 0, 0)).rolling(window=length).mean()
        with np.errstate(divide='ignore', invalid='ignore'):
            rs = gain / loss
            rsi = 100 - (100 / (1 + rs))
        return rsi.where(~((gain == 0) & (loss == 0)), 50.0)

    @staticmethod
    def stdev(source: pd.Series, length: int) -> pd.Series:
        """Population standard deviation - ta.stdev()"""
        return source.rolling(window=length).std(ddof=0)

    @staticmethod
    def highest(source: pd.Series, length: int) -> pd.Series:
        """Highest value over period - ta.highest()"""
        return source.rolling(window=length).max()

    @staticmethod
    def lowest(source: pd.Series, length: int) -> pd.Series:
        """Lowest value over period - ta.lowest()"""
        return source.rolling(window=length).min()

    @staticmethod
    def rolling_sum(source: pd.Series, length: int) -> pd.Series:
        """Moving sum - ta.sum()"""
        return source.rolling(window=length).sum()

    @staticmethod
    def crossover(series1: pd.Series, series2: pd.Series) -> pd.Series:
        """Crossover - ta.crossover()"""
        return (series1 > series2) & (series1.shift(1) <= series2.shift(1))

    @staticmethod
    def crossunder(series1: pd.Series, series2: pd.Series) -> pd.Series:
        """Crossunder - ta.crossunder()"""
        return (series1 < series2) & (series1.shift(1) >= series2.shift(1))

    @staticmethod
    def change(source: pd.Series, length: int = 1) -> pd.Series:
        """Change - ta.change()"""
        return source.diff(length)


def as_series(value: Any):
    """Series-like script values (series, lists, arrays) as a float Series; None otherwise"""
    if isinstance(value, pd.Series):
        return value.astype(float)
    if isinstance(value, (list, tuple, np.ndarray)):
        return pd.Series(value, dtype=float)
    return None


def latest(series: pd.Series) -> Any:
    """Last value of a computed indicator series"""
    if len(series) == 0:
        return float('nan')
    value = series.iloc[-1]
    if isinstance(value, (np.bool_, bool)):
        return bool(value)
    return float(value)


def window_length(length: Any, available: int, default: int = 1) -> int:
    """Coerce a script length argument to a usable window size"""
    try:
        n = int(length)
    except (TypeError, ValueError):
        n = default
    return max(1, min(n, available)) if available else max(1, n)


class TechnicalAnalysis:
    """
    The `ta` namespace seen by scripts.

    Series inputs yield the latest value of the rolling computation over
    the last `length` values; scalar inputs pass through unchanged.
    """

    def _rolling(self, compute, source: Any, length: Any) -> Any:
        series = as_series(source)
        if series is None:
            return source
        return latest(compute(series, window_length(length, len(series))))

    def sma(self, source, length=14, **options):
        return self._rolling(Indicators.sma, source, length)

    def ema(self, source, length=14, **options):
        return self._rolling(Indicators.ema, source, length)

    def wma(self, source, length=14, **options):
        return self._rolling(Indicators.wma, source, length)

    def rma(self, source, length=14, **options):
        return self._rolling(Indicators.rma, source, length)

    def stdev(self, source, length=20, **options):
        return self._rolling(Indicators.stdev, source, length)

    def highest(self, source, length=1, **options):
        return self._rolling(Indicators.highest, source, length)

    def lowest(self, source, length=1, **options):
        return self._rolling(Indicators.lowest, source, length)

    def sum(self, source, length=1, **options):
        return self._rolling(Indicators.rolling_sum, source, length)

    def rsi(self, source, length=14, **options):
        series = as_series(source)
        if series is None or len(series) <= 1:
            return 50.0
        # Window of `length` price changes needs length + 1 closes
        n = window_length(length, len(series) - 1, default=14)
        return latest(Indicators.rsi(series.iloc[-(n + 1):].reset_index(drop=True), n))

    def change(self, source, length=1, **options):
        series = as_series(source)
        if series is None:
            return source
        n = window_length(length, len(series) - 1 if len(series) > 1 else 1)
        return latest(Indicators.change(series, n))

    def crossover(self, series1, series2, **options):
        return self._cross(Indicators.crossover, series1, series2)

    def crossunder(self, series1, series2, **options):
        return self._cross(Indicators.crossunder, series1, series2)

    def _cross(self, compute, series1, series2) -> bool:
        first = as_series(series1)
        second = as_series(series2)
        if first is None and second is None:
            return False
        if first is None:
            first = pd.Series(float(series1), index=second.index)
        if second is None:
            second = pd.Series(float(series2), index=first.index)
        return latest(compute(first, second))

    def avg(self, *values, **options):
        """Rolling mean for (series, length); plain mean of scalar arguments"""
        return self._series_or_scalars(self.sma, np.mean, values, options)

    def max(self, *values, **options):
        return self._series_or_scalars(self.highest, np.max, values, options)

    def min(self, *values, **options):
        return self._series_or_scalars(self.lowest, np.min, values, options)

    def _series_or_scalars(self, rolling, reduce, values: tuple, options: dict) -> Any:
        if not values:
            return float('nan')
        if as_series(values[0]) is not None and len(values) <= 2:
            return rolling(*values, **options)
        return float(reduce(values))

    # Aliases
    ma = sma
