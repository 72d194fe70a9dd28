#!/usr/bin/env python3
"""Terminal and sound alerts for new signal events."""

import logging
import os
import platform
from datetime import datetime

from .models import SignalType

logger = logging.getLogger("prisma_vision.alerts")


# (macOS sound, freedesktop sound, Windows beep frequency) per direction
ALERT_SOUNDS = {
    SignalType.CALL: ("Glass", "complete", 1500),
    SignalType.PUT: ("Basso", "dialog-warning", 600),
}


def play_alert_sound(signal_type=SignalType.CALL):
    """Play a rising or falling alert sound for the signal direction."""
    mac_sound, linux_sound, beep_hz = ALERT_SOUNDS.get(signal_type, ALERT_SOUNDS[SignalType.CALL])
    try:
        system = platform.system().lower()
        if system == "darwin":
            os.system(f"afplay /System/Library/Sounds/{mac_sound}.aiff")
        elif system == "linux":
            os.system(f"paplay /usr/share/sounds/freedesktop/stereo/{linux_sound}.oga")
        elif system == "windows":
            import winsound
            winsound.Beep(beep_hz, 400)
        else:
            print("\a")
    except Exception as e:
        logger.debug(f"Sound alert failed ({e}); falling back to terminal bell")
        print("\a")


def format_alert(signal, now=None):
    """Build the banner lines for a signal."""
    now = now or datetime.now()
    alert_symbol = "🚀" if signal.type is SignalType.CALL else "🚨"
    signal_emoji = "📈" if signal.type is SignalType.CALL else "📉"
    market = signal.market_data

    border = "=" * 80
    return [
        border,
        f"{alert_symbol} ALERT: {signal.type.value} SIGNAL ({signal.confidence}%) {alert_symbol}",
        f"Signal Type: {signal.type.value} {signal_emoji}",
        f"Method: {signal.method}",
        f"Reasons: {', '.join(signal.reasons)}",
        f"Pressure: {market.pressure_score} ({market.phase.value}) | Zone: {market.zone.value} | Band: {market.breakout}",
        f"Time: {now.strftime('%Y-%m-%d %H:%M:%S')}",
        border,
    ]


def show_alert_message(signal, logger, sound=False):
    """Show a prominent alert message in the terminal."""
    print("\n" + "\n".join(format_alert(signal)) + "\n")
    logger.warning(f"ALERT: {signal.type.value} {signal.confidence}% via {signal.method} ({', '.join(signal.reasons)})")
    if sound:
        play_alert_sound(signal.type)
