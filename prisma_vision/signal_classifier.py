#!/usr/bin/env python3
"""
Signal Classifier
Rule engine that turns the latest candles and market structure into a CALL/PUT/NEUTRAL signal.

Rule families, in priority order:
  1. Reversal: opposite-color run, a reversal candle, then a confirmed breakout.
  2. Flow: trend continuation with a force or continuation candle and no rejection wick.
Non-neutral signals are only emitted inside the signal window at the end of each minute.
"""

import logging
import math
from datetime import datetime
from typing import NamedTuple, Optional, Sequence, Tuple

from .candle_sequence import has_enough_candles, last_three
from .config import ClassifierConfig
from .models import (
    Band,
    Candle,
    ColorClass,
    MarketData,
    Phase,
    ShapeHint,
    SignalData,
    SignalType,
    StructureLevel,
    Zone,
)

logger = logging.getLogger("prisma_vision.classifier")

NO_METHOD = "---"


class RuleHit(NamedTuple):
    type: SignalType
    confidence: int
    method: str
    reasons: Tuple[str, ...]


def in_signal_window(now: datetime, start: int = 50, end: int = 59) -> bool:
    """True during the last seconds of each wall-clock minute."""
    return start <= now.second <= end


def epoch_ms(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def near_level(y: float, levels: Sequence[StructureLevel], proximity: float) -> bool:
    return any(abs(y - level.y) < proximity for level in levels)


def band_breakout(candles: Sequence[Candle], band: Optional[Band]) -> str:
    if band is None or not candles:
        return NO_METHOD
    close_y = candles[-1].close_y
    if close_y < band.upper:
        return "ROMPIMENTO ALTA"
    if close_y > band.lower:
        return "ROMPIMENTO BAIXA"
    return "DENTRO DA BANDA"


class SignalClassifier:
    def __init__(self, config=None):
        """
        Initialize the classifier.

        Args:
            config (ClassifierConfig): breakout, flow and window tunables
        """
        self.config = config or ClassifierConfig()

    def check_reversal(self, candles, structure):
        """
        Reversal rule: needs the candle two back to oppose the current one,
        a reversal candle one back, and the current extreme to clear the
        reversal candle's extreme by more than the confirmation threshold.

        Returns:
            RuleHit or None
        """
        cfg = self.config
        prev2, prev1, current = last_three(candles)
        levels = structure.levels

        # CALL: bearish context, hammer (or already green), green breakout above
        if prev2.color is ColorClass.BEARISH and current.color is ColorClass.BULLISH:
            is_reversal_candle = prev1.shape is ShapeHint.HAMMER or prev1.color is ColorClass.BULLISH
            if is_reversal_candle and prev1.top - current.top > cfg.breakout_threshold_px:
                reasons = ["TENDÊNCIA BAIXA", "REVERSÃO CONFIRMADA"]
                has_support = near_level(current.bottom, levels.support, cfg.level_proximity_px)
                if has_support:
                    reasons.append("ZONA SUPORTE")
                method = "HAMMER + BREAKOUT" if prev1.shape is ShapeHint.HAMMER else "REVERSÃO + CONFIRMAÇÃO"
                return RuleHit(SignalType.CALL, 95 if has_support else 90, method, tuple(reasons))

        # PUT: bullish context, shooting star (or already red), red breakout below
        if prev2.color is ColorClass.BULLISH and current.color is ColorClass.BEARISH:
            is_reversal_candle = prev1.shape is ShapeHint.SHOOTING_STAR or prev1.color is ColorClass.BEARISH
            if is_reversal_candle and current.bottom - prev1.bottom > cfg.breakout_threshold_px:
                reasons = ["TENDÊNCIA ALTA", "REVERSÃO CONFIRMADA"]
                has_resistance = near_level(current.top, levels.resistance, cfg.level_proximity_px)
                if has_resistance:
                    reasons.append("ZONA RESISTÊNCIA")
                method = "SHOOTING STAR + BREAKOUT" if prev1.shape is ShapeHint.SHOOTING_STAR else "REVERSÃO + CONFIRMAÇÃO"
                return RuleHit(SignalType.PUT, 95 if has_resistance else 90, method, tuple(reasons))

        return None

    def check_flow(self, candles, structure):
        """
        Flow rule: the phase must be directional and agree with the last two
        candles, and the latest candle must be a force or continuation candle
        without a rejection wick against the trend.

        Returns:
            RuleHit or None
        """
        cfg = self.config
        prev2, prev1, current = last_three(candles)
        avg_height = (prev1.height + prev2.height) / 2

        if structure.phase is Phase.BUYING and current.is_bullish and prev1.is_bullish:
            signal_type = SignalType.CALL
            rejection_shape = ShapeHint.SHOOTING_STAR
            force_reason, continuation_reason = "FORÇA COMPRADORA", "CONTINUAÇÃO DE ALTA"
        elif structure.phase is Phase.SELLING and not current.is_bullish and not prev1.is_bullish:
            signal_type = SignalType.PUT
            rejection_shape = ShapeHint.HAMMER
            force_reason, continuation_reason = "FORÇA VENDEDORA", "CONTINUAÇÃO DE BAIXA"
        else:
            return None

        is_force_candle = current.height >= avg_height * cfg.force_candle_ratio
        is_continuation_candle = current.height >= avg_height * cfg.continuation_candle_ratio
        no_rejection = current.shape is not rejection_shape

        if not (is_force_candle or is_continuation_candle) or not no_rejection:
            return None

        if is_force_candle:
            return RuleHit(signal_type, 100, "VELA DE FORÇA (100%)",
                           (force_reason, "SEM REJEIÇÃO", "FLUXO CONFIRMADO"))
        return RuleHit(signal_type, 100, "CONTINUAÇÃO (100%)",
                       (continuation_reason, "SEM REJEIÇÃO", "FLUXO CONFIRMADO"))

    def evaluate(self, candles, structure):
        """Run the rule families without the time gate."""
        if not has_enough_candles(candles, self.config.min_candles):
            return None
        if structure.phase is Phase.EXHAUSTION:
            return None
        return self.check_reversal(candles, structure) or self.check_flow(candles, structure)

    def classify(self, candles, structure, now):
        """
        Classify the current frame.

        Args:
            candles (tuple): ordered CandleSequence
            structure (MarketStructure): features from the structure analyzer
            now (datetime): current instant; gates the signal window and stamps the result

        Returns:
            SignalData: a fresh snapshot that fully replaces the previous one
        """
        cfg = self.config
        hit = self.evaluate(candles, structure)

        window_open = in_signal_window(now, cfg.signal_window_start, cfg.signal_window_end)
        if hit is not None and not window_open:
            logger.debug(f"{hit.type.value} candidate ({hit.method}) held back outside signal window")
            hit = None
        elif hit is not None:
            logger.info(f"Signal {hit.type.value} {hit.confidence}% via {hit.method}: {', '.join(hit.reasons)}")

        signal_type = hit.type if hit else SignalType.NEUTRAL
        confidence = hit.confidence if hit else 0

        market_data = MarketData(
            pressure_score=round_half_up(structure.pressure_score),
            phase=structure.phase,
            math_prediction=signal_type,
            math_score=confidence,
            breakout=band_breakout(candles, structure.band),
            zone=Zone.BUY if structure.pressure_score > 0 else Zone.SELL,
        )
        return SignalData(
            type=signal_type,
            confidence=confidence,
            reasons=hit.reasons if hit else (),
            timestamp=epoch_ms(now),
            method=hit.method if hit else NO_METHOD,
            market_data=market_data,
        )
