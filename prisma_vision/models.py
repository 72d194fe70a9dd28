from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

import numpy as np


class ColorClass(Enum):
    BULLISH = "GREEN"
    BEARISH = "RED"


class ShapeHint(Enum):
    NORMAL = "NORMAL"
    HAMMER = "HAMMER"
    SHOOTING_STAR = "SHOOTING_STAR"


class Phase(Enum):
    NEUTRAL = "NEUTRO"
    CONSOLIDATION = "CONSOLIDAÇÃO"
    BUYING = "COMPRADORA"
    SELLING = "VENDEDORA"
    EXHAUSTION = "EXAUSTÃO"


class SignalType(Enum):
    CALL = "CALL"
    PUT = "PUT"
    NEUTRAL = "NEUTRAL"


class Zone(Enum):
    BUY = "COMPRA"
    SELL = "VENDA"
    NEUTRAL = "NEUTRO"


class Outcome(Enum):
    PENDING = "PENDING"
    WIN = "WIN"
    LOSS = "LOSS"


@dataclass(frozen=True)
class Frame:
    """One captured bitmap. ``pixels`` is H x W x 3 (RGB) or H x W x 4 (RGBA), uint8."""
    pixels: np.ndarray
    captured_at: datetime

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass(frozen=True)
class Candle:
    x: int
    y: int
    width: int
    height: int
    color: ColorClass
    shape: ShapeHint = ShapeHint.NORMAL
    top_density: int = 0
    bottom_density: int = 0

    @property
    def top(self) -> int:
        return self.y

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def is_bullish(self) -> bool:
        return self.color is ColorClass.BULLISH

    @property
    def close_y(self) -> int:
        # Bullish candles close at their top edge on screen, bearish at the bottom.
        return self.top if self.is_bullish else self.bottom


CandleSequence = Tuple[Candle, ...]


@dataclass(frozen=True)
class StructureLevel:
    y: float
    touch_count: int


@dataclass(frozen=True)
class StructureLevels:
    resistance: Tuple[StructureLevel, ...] = ()
    support: Tuple[StructureLevel, ...] = ()


@dataclass(frozen=True)
class Band:
    """Moving-average band in screen pixels; ``upper`` has the smaller y."""
    center: float
    upper: float
    lower: float


@dataclass(frozen=True)
class MarketStructure:
    pressure_score: float = 0.0
    phase: Phase = Phase.NEUTRAL
    levels: StructureLevels = field(default_factory=StructureLevels)
    band: Optional[Band] = None


@dataclass(frozen=True)
class MarketData:
    pressure_score: int = 0
    phase: Phase = Phase.NEUTRAL
    math_prediction: SignalType = SignalType.NEUTRAL
    math_score: int = 0
    breakout: str = "---"
    zone: Zone = Zone.NEUTRAL

    def to_dict(self) -> dict:
        return {
            "pressureScore": self.pressure_score,
            "phase": self.phase.value,
            "mathPrediction": self.math_prediction.value,
            "mathScore": self.math_score,
            "breakout": self.breakout,
            "zone": self.zone.value,
        }


@dataclass(frozen=True)
class SignalData:
    type: SignalType = SignalType.NEUTRAL
    confidence: int = 0
    reasons: Tuple[str, ...] = ()
    timestamp: int = 0  # epoch milliseconds
    method: str = "---"
    market_data: MarketData = field(default_factory=MarketData)

    @property
    def is_actionable(self) -> bool:
        return self.type is not SignalType.NEUTRAL

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "confidence": self.confidence,
            "reasons": list(self.reasons),
            "timestamp": self.timestamp,
            "method": self.method,
            "marketData": self.market_data.to_dict(),
        }


@dataclass(frozen=True)
class ProcessingStats:
    fps: int = 0
    ocr_text: str = ""
    processing_time_ms: int = 0
    frame_count: int = 0


@dataclass(frozen=True)
class FrameAnalysis:
    candles: CandleSequence
    structure: MarketStructure
    signal: SignalData
    overlay: Optional[np.ndarray] = None


@dataclass
class HistoryEntry:
    id: int
    type: SignalType
    time: str
    method: str
    result: Outcome = Outcome.PENDING
