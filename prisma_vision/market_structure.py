#!/usr/bin/env python3
"""
Market Structure Analyzer
Derives pressure, phase, support/resistance levels and a moving-average band
from an ordered candle sequence.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from .config import StructureConfig
from .models import Band, Candle, ColorClass, MarketStructure, Phase, StructureLevel, StructureLevels

logger = logging.getLogger("prisma_vision.structure")


def pressure_score(candles: Sequence[Candle]) -> float:
    """Bullish vs bearish box area, normalized to -100..100 (0 when empty)."""
    bullish_area = sum(c.area for c in candles if c.color is ColorClass.BULLISH)
    bearish_area = sum(c.area for c in candles if c.color is ColorClass.BEARISH)
    total_area = bullish_area + bearish_area
    if total_area <= 0:
        return 0.0
    return (bullish_area - bearish_area) / total_area * 100.0


def trailing_run_length(candles: Sequence[Candle]) -> int:
    """Number of same-color candles at the end of the sequence."""
    if not candles:
        return 0
    color = candles[-1].color
    run = 0
    for candle in reversed(candles):
        if candle.color is not color:
            break
        run += 1
    return run


def is_exhausted(candles: Sequence[Candle], config: StructureConfig) -> bool:
    """
    Detect an exhaustion move.

    Either the latest candle is a size spike against the trailing average,
    or the trend has printed too many candles of one color in a row.
    """
    if not candles:
        return False

    if trailing_run_length(candles) >= config.exhaustion_run_length:
        return True

    previous = candles[-1 - config.exhaustion_lookback:-1]
    if len(previous) < 2:
        return False
    trailing_avg = sum(c.height for c in previous) / len(previous)
    return candles[-1].height > trailing_avg * config.exhaustion_multiplier


def classify_phase(score: float, exhausted: bool = False, threshold: float = 30.0) -> Phase:
    if exhausted:
        return Phase.EXHAUSTION
    if score > threshold:
        return Phase.BUYING
    if score < -threshold:
        return Phase.SELLING
    return Phase.CONSOLIDATION


def cluster_levels(points: Sequence[float], tolerance: float, min_touches: int) -> List[StructureLevel]:
    """
    Group sorted y values into horizontal levels.

    A value joins the current cluster while it stays within ``tolerance`` of
    the cluster's first value. Clusters below ``min_touches`` are dropped.
    """
    levels = []
    if not points:
        return levels

    points = sorted(points)
    start = points[0]
    total = points[0]
    count = 1
    for point in points[1:]:
        if point - start <= tolerance:
            total += point
            count += 1
            continue
        if count >= min_touches:
            levels.append(StructureLevel(y=total / count, touch_count=count))
        start = point
        total = point
        count = 1

    if count >= min_touches:
        levels.append(StructureLevel(y=total / count, touch_count=count))
    return levels


def detect_levels(candles: Sequence[Candle], config: StructureConfig) -> StructureLevels:
    highs = [c.top for c in candles]
    lows = [c.bottom for c in candles]
    return StructureLevels(
        resistance=tuple(cluster_levels(highs, config.level_tolerance_px, config.min_level_touches)),
        support=tuple(cluster_levels(lows, config.level_tolerance_px, config.min_level_touches)),
    )


def compute_band(candles: Sequence[Candle], period: int = 9, deviation: float = 1.5) -> Optional[Band]:
    """
    Moving-average band over the closing y of the trailing ``period`` candles.

    Returns None until ``period`` candles are available.
    """
    if len(candles) < period:
        return None
    closes = np.array([c.close_y for c in candles[-period:]], dtype=float)
    center = float(closes.mean())
    offset = float(closes.std()) * deviation  # population std
    # Screen y grows downwards: the upper line sits at the smaller y
    return Band(center=center, upper=center - offset, lower=center + offset)


class MarketStructureAnalyzer:
    def __init__(self, config=None):
        """
        Initialize the analyzer.

        Args:
            config (StructureConfig): clustering, band and phase tunables
        """
        self.config = config or StructureConfig()

    def analyze(self, candles):
        """
        Compute every structure feature for one frame.

        Args:
            candles (tuple): ordered CandleSequence

        Returns:
            MarketStructure: pressure score, phase, levels and band
        """
        cfg = self.config
        if not candles:
            return MarketStructure()

        score = pressure_score(candles)
        phase = classify_phase(score, is_exhausted(candles, cfg), cfg.phase_threshold)
        levels = detect_levels(candles, cfg)
        band = compute_band(candles, cfg.band_period, cfg.band_deviation)

        logger.debug(
            f"Structure: pressure={score:.1f} phase={phase.value} "
            f"resistance={len(levels.resistance)} support={len(levels.support)} band={'yes' if band else 'no'}"
        )
        return MarketStructure(pressure_score=score, phase=phase, levels=levels, band=band)
