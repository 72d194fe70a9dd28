#!/usr/bin/env python3
"""
Prisma Vision CLI

Modes:
  --image PATH   analyze one screenshot and print the signal as JSON
  --watch PATH   re-analyze a screenshot file on every tick (for external capture tools)
  --screen       capture a monitor (or a region of it) and analyze live
"""

import argparse
import json
import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler

from PIL import Image

from .alerts import show_alert_message
from .config import ConfigError, load_config
from .engine import FrameAnalyzer, ScreenProcessor
from .frame_source import ImageFileFrameSource, ScreenFrameSource
from .ledger import SignalEventTracker, SignalLedger
from .overlay import save_analysis_figure

# One alert per signal window: the window is 10 s wide and ticks every 200 ms
EVENT_MIN_GAP_MS = 15_000


def configure_logging(log_path: str, level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger("prisma_vision")
    log_level = getattr(logging, str(level).upper(), logging.INFO)
    logger.setLevel(log_level)

    if not logger.handlers:
        os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)

        file_handler = RotatingFileHandler(log_path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))

        logger.addHandler(file_handler)
        logger.addHandler(console_handler)

    return logger


def parse_region(value):
    """Parse 'left,top,width,height' into an mss region dict."""
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 4:
        raise argparse.ArgumentTypeError("region must be left,top,width,height")
    try:
        left, top, width, height = (int(p) for p in parts)
    except ValueError:
        raise argparse.ArgumentTypeError("region values must be integers")
    if width <= 0 or height <= 0:
        raise argparse.ArgumentTypeError("region width and height must be positive")
    return {"left": left, "top": top, "width": width, "height": height}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Detect chart candles on screen and emit CALL/PUT signals")
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument('--image', type=str, help='Analyze a single screenshot and exit')
    mode.add_argument('--watch', type=str, help='Re-read and analyze a screenshot file on every tick')
    mode.add_argument('--screen', action='store_true', help='Capture the screen live')
    parser.add_argument('--config', type=str, default=None, help='YAML config file')
    parser.add_argument('--monitor', type=int, default=1, help='Monitor number for --screen (mss numbering)')
    parser.add_argument('--region', type=parse_region, default=None, help='Capture region left,top,width,height')
    parser.add_argument('--at', type=datetime.fromisoformat, default=None,
                        help='ISO time used for the signal window in --image mode (default: now)')
    parser.add_argument('--report', type=str, default=None, help='Save a diagnostic PNG figure (--image mode)')
    parser.add_argument('--overlay', type=str, default=None, help='Save the annotated frame as PNG (--image mode)')
    parser.add_argument('--log-file', type=str, default=None, help='Log file path (overrides config)')
    return parser.parse_args(argv)


def analyze_image(args, config, logger):
    source = ImageFileFrameSource(args.image)
    frame = source.read()
    if frame is None:
        logger.error(f"❌ Image not found: {args.image}")
        return 1

    now = args.at or datetime.now()
    analysis = FrameAnalyzer(config).analyze(frame, now=now)
    logger.info(f"Detected {len(analysis.candles)} candle(s); phase {analysis.structure.phase.value}")

    print(json.dumps(analysis.signal.to_dict(), ensure_ascii=False, indent=2))

    if args.report:
        save_analysis_figure(frame.pixels, analysis, args.report)
    if args.overlay and analysis.overlay is not None:
        os.makedirs(os.path.dirname(args.overlay) or ".", exist_ok=True)
        Image.fromarray(analysis.overlay).save(args.overlay)
        logger.info(f"💾 Overlay saved to: {args.overlay}")
    return 0


def run_live(source, config, logger):
    tracker = SignalEventTracker(min_gap_ms=EVENT_MIN_GAP_MS)
    ledger = SignalLedger(config.runtime.timezone)

    def handle_analysis(analysis):
        signal = analysis.signal
        if tracker.observe(signal):
            ledger.record(signal)
            show_alert_message(signal, logger, sound=config.runtime.sound_alerts)

    processor = ScreenProcessor(source, config, on_analysis=handle_analysis)
    try:
        processor.run_forever()
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received. Shutting down.")
        print("\nShutting down...")
    finally:
        processor.stop()
        summary = ledger.summary()
        logger.info(
            f"Session: {len(ledger.entries)} signal(s), {summary['wins']}W/{summary['losses']}L, "
            f"last stats {processor.stats.fps} fps / {processor.stats.processing_time_ms} ms"
        )
    return 0


def main(argv=None):
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except (ConfigError, OSError) as e:
        print(f"ERROR: invalid configuration: {e}", file=sys.stderr)
        return 2

    logger = configure_logging(args.log_file or config.runtime.log_path, config.runtime.log_level)

    if args.image:
        return analyze_image(args, config, logger)
    if args.watch:
        return run_live(ImageFileFrameSource(args.watch), config, logger)
    return run_live(ScreenFrameSource(args.monitor, args.region), config, logger)


if __name__ == "__main__":
    sys.exit(main())
