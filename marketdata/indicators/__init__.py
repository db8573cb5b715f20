"""Technical indicator engine (RSI, EMA, MACD)."""

from marketdata.indicators.engine import (
    calculate_ema,
    calculate_indicators,
    calculate_macd,
    calculate_rsi,
    compute_indicator_set,
)

__all__ = [
    "calculate_ema",
    "calculate_indicators",
    "calculate_macd",
    "calculate_rsi",
    "compute_indicator_set",
]
