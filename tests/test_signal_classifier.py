from datetime import datetime

from prisma_vision.config import ClassifierConfig, StructureConfig
from prisma_vision.market_structure import MarketStructureAnalyzer
from prisma_vision.models import Band, Candle, ColorClass, Phase, ShapeHint, SignalType, Zone
from prisma_vision.signal_classifier import (
    SignalClassifier,
    band_breakout,
    epoch_ms,
    in_signal_window,
    round_half_up,
)

IN_WINDOW = datetime(2024, 1, 1, 12, 0, 55)
OUT_OF_WINDOW = datetime(2024, 1, 1, 12, 0, 30)

G = ColorClass.BULLISH
R = ColorClass.BEARISH


def _c(x: int, y: int, h: int, color: ColorClass, shape: ShapeHint = ShapeHint.NORMAL, w: int = 10) -> Candle:
    return Candle(x=x, y=y, width=w, height=h, color=color, shape=shape)


def _classify(candles, now=IN_WINDOW):
    candles = tuple(candles)
    structure = MarketStructureAnalyzer(StructureConfig()).analyze(candles)
    return SignalClassifier(ClassifierConfig()).classify(candles, structure, now)


def _hammer_reversal(current_y=110, current_h=40):
    return [
        _c(10, 100, 40, R),
        _c(30, 120, 40, R),
        _c(50, 140, 40, R),
        _c(70, 140, 40, G, ShapeHint.HAMMER),
        _c(90, current_y, current_h, G),
    ]


def _star_reversal():
    return [
        _c(10, 140, 40, G),
        _c(30, 120, 40, G),
        _c(50, 100, 40, G),
        _c(70, 100, 40, R, ShapeHint.SHOOTING_STAR),
        _c(90, 130, 40, R),
    ]


def test_hammer_breakout_near_support_is_call_95():
    signal = _classify(_hammer_reversal())

    assert signal.type is SignalType.CALL
    assert signal.confidence == 95
    assert signal.method == "HAMMER + BREAKOUT"
    assert signal.reasons == ("TENDÊNCIA BAIXA", "REVERSÃO CONFIRMADA", "ZONA SUPORTE")
    assert signal.timestamp == epoch_ms(IN_WINDOW)

    market = signal.market_data
    assert market.pressure_score == -20
    assert market.phase is Phase.CONSOLIDATION
    assert market.math_prediction is SignalType.CALL
    assert market.math_score == 95
    assert market.zone is Zone.SELL
    assert market.breakout == "---"


def test_reversal_without_support_is_90():
    candles = _hammer_reversal()
    # push the older bottoms away so no support level forms near the breakout candle
    candles[0] = _c(10, 0, 40, R)
    candles[1] = _c(30, 200, 40, R)
    signal = _classify(candles)

    assert signal.type is SignalType.CALL
    assert signal.confidence == 90
    assert "ZONA SUPORTE" not in signal.reasons


def test_green_reversal_candle_without_hammer_uses_confirmation_method():
    candles = _hammer_reversal()
    candles[3] = _c(70, 140, 40, G)
    signal = _classify(candles)

    assert signal.type is SignalType.CALL
    assert signal.method == "REVERSÃO + CONFIRMAÇÃO"


def test_breakout_must_exceed_threshold():
    assert _classify(_hammer_reversal(current_y=120)).type is SignalType.NEUTRAL  # exactly 20px
    assert _classify(_hammer_reversal(current_y=115)).type is SignalType.CALL  # 25px


def test_shooting_star_breakout_near_resistance_is_put_95():
    signal = _classify(_star_reversal())

    assert signal.type is SignalType.PUT
    assert signal.confidence == 95
    assert signal.method == "SHOOTING STAR + BREAKOUT"
    assert signal.reasons == ("TENDÊNCIA ALTA", "REVERSÃO CONFIRMADA", "ZONA RESISTÊNCIA")
    assert signal.market_data.zone is Zone.BUY
    assert signal.market_data.pressure_score == 20


def test_signal_suppressed_outside_window():
    signal = _classify(_hammer_reversal(), now=OUT_OF_WINDOW)

    assert signal.type is SignalType.NEUTRAL
    assert signal.confidence == 0
    assert signal.reasons == ()
    assert signal.method == "---"
    assert signal.market_data.math_prediction is SignalType.NEUTRAL
    assert signal.market_data.math_score == 0
    # structure readings are still live
    assert signal.market_data.pressure_score == -20
    assert signal.timestamp == epoch_ms(OUT_OF_WINDOW)


def test_window_bounds_are_inclusive():
    assert in_signal_window(datetime(2024, 1, 1, 12, 0, 50))
    assert in_signal_window(datetime(2024, 1, 1, 12, 0, 59))
    assert not in_signal_window(datetime(2024, 1, 1, 12, 0, 49))
    assert not in_signal_window(datetime(2024, 1, 1, 12, 1, 0))


def test_flow_force_candle_call():
    signal = _classify([_c(10, 100, 40, G), _c(30, 90, 40, G), _c(50, 60, 60, G)])

    assert signal.type is SignalType.CALL
    assert signal.confidence == 100
    assert signal.method == "VELA DE FORÇA (100%)"
    assert signal.reasons == ("FORÇA COMPRADORA", "SEM REJEIÇÃO", "FLUXO CONFIRMADO")
    assert signal.market_data.phase is Phase.BUYING


def test_flow_continuation_candle_call():
    signal = _classify([_c(10, 100, 40, G), _c(30, 90, 40, G), _c(50, 80, 40, G)])

    assert signal.type is SignalType.CALL
    assert signal.method == "CONTINUAÇÃO (100%)"
    assert signal.reasons[0] == "CONTINUAÇÃO DE ALTA"


def test_flow_force_candle_put():
    signal = _classify([_c(10, 100, 40, R), _c(30, 110, 40, R), _c(50, 120, 60, R)])

    assert signal.type is SignalType.PUT
    assert signal.method == "VELA DE FORÇA (100%)"
    assert signal.reasons == ("FORÇA VENDEDORA", "SEM REJEIÇÃO", "FLUXO CONFIRMADO")


def test_tiny_final_candle_does_not_confirm_flow():
    signal = _classify([_c(10, 100, 40, G), _c(30, 90, 40, G), _c(50, 85, 10, G)])

    assert signal.market_data.phase is Phase.BUYING
    assert signal.type is SignalType.NEUTRAL


def test_rejection_wick_blocks_flow():
    candles = [_c(10, 100, 40, G), _c(30, 90, 40, G), _c(50, 60, 60, G, ShapeHint.SHOOTING_STAR)]
    assert _classify(candles).type is SignalType.NEUTRAL


def test_exhaustion_blocks_all_rules():
    # five greens in a row: exhaustion, even though it is a textbook force candle
    candles = [_c(10 + 20 * i, 100 - 10 * i, 40, G) for i in range(4)] + [_c(90, 40, 60, G)]
    signal = _classify(candles)

    assert signal.market_data.phase is Phase.EXHAUSTION
    assert signal.type is SignalType.NEUTRAL


def test_spike_candle_blocks_reversal():
    signal = _classify(_hammer_reversal(current_y=60, current_h=100))

    assert signal.market_data.phase is Phase.EXHAUSTION
    assert signal.type is SignalType.NEUTRAL


def test_fewer_than_three_candles_is_neutral():
    signal = _classify([_c(10, 100, 40, G), _c(30, 60, 80, G)])
    assert signal.type is SignalType.NEUTRAL


def test_empty_frame_is_neutral_with_neutral_phase():
    signal = _classify([])

    assert signal.type is SignalType.NEUTRAL
    assert signal.market_data.phase is Phase.NEUTRAL
    assert signal.market_data.pressure_score == 0
    assert signal.market_data.zone is Zone.SELL


def test_band_breakout_labels():
    band = Band(center=100.0, upper=80.0, lower=120.0)

    assert band_breakout([_c(10, 70, 20, G)], band) == "ROMPIMENTO ALTA"
    assert band_breakout([_c(10, 110, 20, R)], band) == "ROMPIMENTO BAIXA"
    assert band_breakout([_c(10, 90, 20, G)], band) == "DENTRO DA BANDA"
    assert band_breakout([_c(10, 90, 20, G)], None) == "---"


def test_round_half_up():
    assert round_half_up(12.5) == 13
    assert round_half_up(-12.5) == -12
    assert round_half_up(-20.0) == -20


def test_to_dict_uses_wire_keys():
    payload = _classify(_hammer_reversal()).to_dict()

    assert payload["type"] == "CALL"
    assert payload["reasons"] == ["TENDÊNCIA BAIXA", "REVERSÃO CONFIRMADA", "ZONA SUPORTE"]
    assert payload["marketData"] == {
        "pressureScore": -20,
        "phase": "CONSOLIDAÇÃO",
        "mathPrediction": "CALL",
        "mathScore": 95,
        "breakout": "---",
        "zone": "VENDA",
    }
