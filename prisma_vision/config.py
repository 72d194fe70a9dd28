from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import os
import yaml


HsvBound = Tuple[int, int, int]


class ConfigError(ValueError):
    """Raised when tunables are inconsistent. Fails at load time, never per tick."""


def _env_override(value: Any, env_key: str) -> Any:
    env_val = os.getenv(env_key)
    if env_val is None:
        return value
    if isinstance(value, bool):
        return env_val.strip().lower() in ("1", "true", "yes", "y", "on")
    if isinstance(value, int):
        try:
            return int(env_val)
        except ValueError:
            return value
    if isinstance(value, float):
        try:
            return float(env_val)
        except ValueError:
            return value
    return env_val


def _as_bound(value: Any) -> HsvBound:
    return tuple(int(v) for v in value)  # type: ignore[return-value]


@dataclass
class HsvRange:
    lower: HsvBound
    upper: HsvBound

    def validate(self, name: str) -> None:
        if len(self.lower) != 3 or len(self.upper) != 3:
            raise ConfigError(f"{name}: HSV bounds need exactly 3 components")
        # OpenCV 8-bit HSV: H in 0..180, S and V in 0..255
        limits = (180, 255, 255)
        for lo, hi, top in zip(self.lower, self.upper, limits):
            if lo < 0 or hi > top:
                raise ConfigError(f"{name}: bound {self.lower}-{self.upper} outside OpenCV HSV range")
            if lo > hi:
                raise ConfigError(f"{name}: lower bound {self.lower} exceeds upper bound {self.upper}")


@dataclass
class SegmenterConfig:
    # Tuned for typical TradingView / broker candle colors
    bullish: HsvRange = field(default_factory=lambda: HsvRange((35, 50, 50), (85, 255, 255)))
    bearish: List[HsvRange] = field(default_factory=lambda: [
        HsvRange((0, 50, 50), (10, 255, 255)),
        HsvRange((170, 50, 50), (180, 255, 255)),
    ])


@dataclass
class ExtractorConfig:
    min_contour_area: float = 30.0
    min_candle_width: int = 3
    min_candle_height: int = 5
    tall_box_ratio: float = 1.5
    hammer_density_ratio: float = 2.5
    shooting_star_density_ratio: float = 0.4


@dataclass
class StructureConfig:
    level_tolerance_px: float = 10.0
    min_level_touches: int = 2
    band_period: int = 9
    band_deviation: float = 1.5
    phase_threshold: float = 30.0
    exhaustion_multiplier: float = 2.0
    exhaustion_lookback: int = 5
    exhaustion_run_length: int = 5


@dataclass
class ClassifierConfig:
    min_candles: int = 3
    breakout_threshold_px: float = 20.0
    level_proximity_px: float = 20.0
    force_candle_ratio: float = 1.3
    continuation_candle_ratio: float = 0.9
    signal_window_start: int = 50
    signal_window_end: int = 59


@dataclass
class RuntimeConfig:
    tick_interval_ms: int = 200
    ocr_enabled: bool = True
    ocr_every_n_ticks: int = 15
    ocr_region_width: int = 120
    ocr_upscale: float = 2.0
    ocr_char_whitelist: str = "0123456789./:-"
    draw_overlay: bool = True
    sound_alerts: bool = False
    timezone: str = "America/Sao_Paulo"
    log_path: str = "prisma_vision.log"
    log_level: str = "INFO"


@dataclass
class Config:
    segmenter: SegmenterConfig = field(default_factory=SegmenterConfig)
    extractor: ExtractorConfig = field(default_factory=ExtractorConfig)
    structure: StructureConfig = field(default_factory=StructureConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)

    def validate(self) -> "Config":
        """Check every tunable; raises ConfigError on the first inconsistency."""
        self.segmenter.bullish.validate("segmenter.bullish")
        if not self.segmenter.bearish:
            raise ConfigError("segmenter.bearish needs at least one hue band")
        for i, rng in enumerate(self.segmenter.bearish):
            rng.validate(f"segmenter.bearish[{i}]")

        ex = self.extractor
        _require_non_negative("extractor.min_contour_area", ex.min_contour_area)
        _require_positive("extractor.min_candle_width", ex.min_candle_width)
        _require_positive("extractor.min_candle_height", ex.min_candle_height)
        _require_positive("extractor.tall_box_ratio", ex.tall_box_ratio)
        _require_positive("extractor.shooting_star_density_ratio", ex.shooting_star_density_ratio)
        if ex.hammer_density_ratio <= ex.shooting_star_density_ratio:
            raise ConfigError("extractor.hammer_density_ratio must exceed shooting_star_density_ratio")

        st = self.structure
        _require_non_negative("structure.level_tolerance_px", st.level_tolerance_px)
        _require_positive("structure.min_level_touches", st.min_level_touches)
        _require_positive("structure.band_period", st.band_period)
        _require_non_negative("structure.band_deviation", st.band_deviation)
        if not 0 <= st.phase_threshold <= 100:
            raise ConfigError("structure.phase_threshold must be within 0..100")
        _require_positive("structure.exhaustion_multiplier", st.exhaustion_multiplier)
        _require_positive("structure.exhaustion_lookback", st.exhaustion_lookback)
        _require_positive("structure.exhaustion_run_length", st.exhaustion_run_length)

        cl = self.classifier
        if cl.min_candles < 3:
            raise ConfigError("classifier.min_candles must be at least 3 (rules look three candles back)")
        _require_non_negative("classifier.breakout_threshold_px", cl.breakout_threshold_px)
        _require_non_negative("classifier.level_proximity_px", cl.level_proximity_px)
        _require_positive("classifier.continuation_candle_ratio", cl.continuation_candle_ratio)
        if cl.force_candle_ratio < cl.continuation_candle_ratio:
            raise ConfigError("classifier.force_candle_ratio must be >= continuation_candle_ratio")
        for name in ("signal_window_start", "signal_window_end"):
            value = getattr(cl, name)
            if not 0 <= value <= 59:
                raise ConfigError(f"classifier.{name} must be a second within 0..59")
        if cl.signal_window_start > cl.signal_window_end:
            raise ConfigError("classifier.signal_window_start must not exceed signal_window_end")

        rt = self.runtime
        _require_positive("runtime.tick_interval_ms", rt.tick_interval_ms)
        _require_positive("runtime.ocr_every_n_ticks", rt.ocr_every_n_ticks)
        _require_positive("runtime.ocr_region_width", rt.ocr_region_width)
        _require_positive("runtime.ocr_upscale", rt.ocr_upscale)
        return self


def _require_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ConfigError(f"{name} must be positive (got {value})")


def _require_non_negative(name: str, value: float) -> None:
    if value < 0:
        raise ConfigError(f"{name} must not be negative (got {value})")


def _hsv_range(raw: Dict[str, Any]) -> HsvRange:
    return HsvRange(lower=_as_bound(raw["lower"]), upper=_as_bound(raw["upper"]))


def config_from_dict(raw: Optional[Dict[str, Any]]) -> Config:
    raw = raw or {}
    seg_raw = raw.get("segmenter", {}) or {}

    try:
        segmenter = SegmenterConfig()
        if "bullish" in seg_raw:
            segmenter.bullish = _hsv_range(seg_raw["bullish"])
        if "bearish" in seg_raw:
            segmenter.bearish = [_hsv_range(r) for r in seg_raw["bearish"]]

        cfg = Config(
            segmenter=segmenter,
            extractor=ExtractorConfig(**(raw.get("extractor", {}) or {})),
            structure=StructureConfig(**(raw.get("structure", {}) or {})),
            classifier=ClassifierConfig(**(raw.get("classifier", {}) or {})),
            runtime=RuntimeConfig(**(raw.get("runtime", {}) or {})),
        )
    except (TypeError, KeyError) as e:
        # unknown keys in a section, or an HSV range missing lower/upper
        raise ConfigError(f"Invalid config section: {e}") from e

    # env overrides for the knobs people change per machine
    rt = cfg.runtime
    rt.tick_interval_ms = _env_override(rt.tick_interval_ms, "PRISMA_TICK_INTERVAL_MS")
    rt.ocr_enabled = _env_override(rt.ocr_enabled, "PRISMA_OCR_ENABLED")
    rt.sound_alerts = _env_override(rt.sound_alerts, "PRISMA_SOUND_ALERTS")
    rt.timezone = _env_override(rt.timezone, "PRISMA_TIMEZONE")
    rt.log_path = _env_override(rt.log_path, "PRISMA_LOG_PATH")
    rt.log_level = _env_override(rt.log_level, "PRISMA_LOG_LEVEL")

    return cfg.validate()


def load_config(path: Optional[str] = None) -> Config:
    """Load a YAML config file; with no path, defaults plus env overrides."""
    if path is None:
        return config_from_dict({})
    with open(path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return config_from_dict(raw)
