"""Technical indicator calculations.

Pure functions over closing prices in ascending time order. None of them
raise on short input; insufficient data yields None.

Note: only the latest value of each indicator is produced. MACD's signal
line and histogram would need the full MACD-line history and are always
reported as None.
"""

import math
from collections.abc import Sequence
from typing import Any

from marketdata.data.models import Bar, IndicatorSet, MACDResult, PriceSeries

RSI_PERIOD = 14
EMA_SHORT_PERIOD = 12
EMA_LONG_PERIOD = 26

# Substituted for a zero average loss
MIN_AVG_LOSS = 0.001


def _mean(values: Sequence[float]) -> float:
    """Calculate arithmetic mean."""
    return sum(values) / len(values)


def calculate_rsi(closes: Sequence[float], period: int = RSI_PERIOD) -> float | None:
    """Relative Strength Index with Wilder's smoothing.

    Averages are seeded with the simple mean of the first ``period`` gains
    and losses, then smoothed as ``(avg * (period - 1) + current) / period``.

    Args:
        closes: Closing prices, oldest first.
        period: Lookback period.

    Returns:
        The latest RSI in [0, 100], or None with fewer than ``period + 1``
        closes or when the averages overflow.
    """
    if period < 1 or len(closes) < period + 1:
        return None

    changes = [current - previous for previous, current in zip(closes, closes[1:])]
    gains = [max(change, 0.0) for change in changes]
    losses = [abs(min(change, 0.0)) for change in changes]

    avg_gain = _mean(gains[:period])
    avg_loss = _mean(losses[:period])
    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    rs = avg_gain / (avg_loss if avg_loss != 0 else MIN_AVG_LOSS)
    rsi = 100 - (100 / (1 + rs))
    # Closes near the float limit overflow the averages to inf/inf
    if not math.isfinite(rsi):
        return None
    return rsi


def calculate_ema(values: Sequence[float], period: int) -> float | None:
    """Exponential moving average seeded with a simple average.

    Args:
        values: Series, oldest first.
        period: EMA period.

    Returns:
        The latest EMA, or None with fewer than ``period`` values.
    """
    if period < 1 or len(values) < period:
        return None

    multiplier = 2 / (period + 1)
    ema = _mean(values[:period])
    for value in values[period:]:
        ema = (value - ema) * multiplier + ema
    return ema


def calculate_macd(closes: Sequence[float]) -> MACDResult:
    """MACD line as EMA(12) - EMA(26).

    Signal line and histogram are always None.
    """
    ema_short = calculate_ema(closes, EMA_SHORT_PERIOD)
    ema_long = calculate_ema(closes, EMA_LONG_PERIOD)
    if ema_short is None or ema_long is None:
        return MACDResult()
    return MACDResult(macd_line=ema_short - ema_long)


def compute_indicator_set(closes: Sequence[float]) -> IndicatorSet:
    """RSI(14), EMA(12), EMA(26) and MACD for a closing price series."""
    return IndicatorSet(
        rsi=calculate_rsi(closes, RSI_PERIOD),
        ema_short=calculate_ema(closes, EMA_SHORT_PERIOD),
        ema_long=calculate_ema(closes, EMA_LONG_PERIOD),
        macd=calculate_macd(closes),
    )


def calculate_indicators(series: PriceSeries | Sequence[Bar]) -> dict[str, Any]:
    """Indicator payload for a price series.

    Args:
        series: A PriceSeries or bars in ascending time order.

    Returns:
        ``{}`` for an empty series, otherwise
        ``{"rsi", "emaShort", "emaLong", "macd": {"macdLine", "signalLine", "histogram"}}``.
    """
    bars = series.data if isinstance(series, PriceSeries) else series
    if not bars:
        return {}

    closes = [bar.close for bar in bars if bar.close is not None]
    return compute_indicator_set(closes).model_dump(by_alias=True)
