"""Orders detected candles along the chart's time axis."""

from typing import Iterable, Tuple

from .models import Candle, CandleSequence


def sequence(*candle_lists: Iterable[Candle]) -> CandleSequence:
    """Merge candle lists and sort left to right (chronological on screen)."""
    merged = [c for candles in candle_lists for c in candles]
    # sorted() is stable, so equal x keeps the input order
    return tuple(sorted(merged, key=lambda c: c.x))


def has_enough_candles(candles: CandleSequence, min_candles: int) -> bool:
    return len(candles) >= min_candles


def last_three(candles: CandleSequence) -> Tuple[Candle, Candle, Candle]:
    """Return (two_back, one_back, current). Caller checks the length first."""
    return candles[-3], candles[-2], candles[-1]
