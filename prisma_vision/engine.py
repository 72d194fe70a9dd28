#!/usr/bin/env python3
"""
Analysis Engine
FrameAnalyzer runs one full pass over a frame (segment -> extract -> order ->
structure -> classify -> overlay). ScreenProcessor drives it on a fixed tick
from a background thread and publishes the latest signal and stats.
"""

import logging
import threading
import time
from datetime import datetime, timedelta

from .candle_sequence import sequence
from .color_segmenter import ColorSegmenter
from .config import Config
from .frame_source import FrameNotReady
from .market_structure import MarketStructureAnalyzer
from .models import ColorClass, FrameAnalysis, ProcessingStats, SignalData
from .ocr import PriceOcrWorker, preprocess_price_region
from .overlay import render_overlay
from .shape_extractor import ShapeExtractor
from .signal_classifier import SignalClassifier

logger = logging.getLogger("prisma_vision.engine")


def precise_sleep_until(target_time, stop_event=None):
    """Sleep until target_time with sub-100ms precision, minimizing drift. Returns early on stop."""
    wait = stop_event.wait if stop_event is not None else time.sleep
    while True:
        remaining = (target_time - datetime.now()).total_seconds()
        if remaining <= 0:
            return
        if stop_event is not None and stop_event.is_set():
            return
        # Coarse sleep when far, fine-grained as we approach
        if remaining > 1.0:
            wait(remaining - 0.8)
        elif remaining > 0.2:
            wait(remaining - 0.15)
        elif remaining > 0.05:
            wait(remaining - 0.02)
        else:
            wait(remaining)
            return


class FrameAnalyzer:
    def __init__(self, config=None):
        """
        Wire up the analysis stages.

        Args:
            config (Config): full configuration; defaults when omitted
        """
        self.config = config or Config()
        self.segmenter = ColorSegmenter(self.config.segmenter)
        self.extractor = ShapeExtractor(self.config.extractor)
        self.structure_analyzer = MarketStructureAnalyzer(self.config.structure)
        self.classifier = SignalClassifier(self.config.classifier)

    def analyze(self, frame, now=None):
        """
        Run one analysis pass.

        Args:
            frame (Frame): captured bitmap
            now (datetime): instant used for the signal window; defaults to the capture time

        Returns:
            FrameAnalysis: candles, structure, signal and (optionally) the overlay image
        """
        now = now or frame.captured_at

        bullish_mask, bearish_mask = self.segmenter.segment(frame.pixels)
        candles = sequence(
            self.extractor.extract(bullish_mask, ColorClass.BULLISH),
            self.extractor.extract(bearish_mask, ColorClass.BEARISH),
        )
        structure = self.structure_analyzer.analyze(candles)
        signal = self.classifier.classify(candles, structure, now)

        overlay = None
        if self.config.runtime.draw_overlay:
            overlay = render_overlay(frame.pixels, candles, structure)

        return FrameAnalysis(candles=candles, structure=structure, signal=signal, overlay=overlay)


class ScreenProcessor:
    def __init__(self, source, config=None, analyzer=None, ocr_worker=None, on_analysis=None, clock=datetime.now):
        """
        Periodic screen processor.

        Args:
            source (FrameSource): where frames come from
            config (Config): full configuration
            analyzer (FrameAnalyzer): analysis pass; built from config when omitted
            ocr_worker (PriceOcrWorker): price OCR; built from config when omitted and OCR is enabled
            on_analysis (callable): called with each FrameAnalysis on the processing thread
            clock (callable): returns the current datetime
        """
        self.source = source
        self.config = config or Config()
        self.analyzer = analyzer or FrameAnalyzer(self.config)
        runtime = self.config.runtime
        if ocr_worker is None and runtime.ocr_enabled:
            ocr_worker = PriceOcrWorker(char_whitelist=runtime.ocr_char_whitelist)
        self.ocr_worker = ocr_worker
        self.on_analysis = on_analysis
        self.clock = clock

        # Whole-value snapshots, replaced (never mutated) once per completed pass
        self.signal = SignalData()
        self.stats = ProcessingStats()
        self.frame_count = 0

        self._stop_event = threading.Event()
        self._thread = None

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def _read_frame(self):
        try:
            return self.source.read()
        except (FrameNotReady, OSError) as e:
            logger.debug(f"Frame not ready: {e}")
            return None
        except Exception:
            logger.exception("Frame source failed; tick skipped")
            return None

    def _submit_ocr(self, frame):
        runtime = self.config.runtime
        if self.ocr_worker is None or self.frame_count % runtime.ocr_every_n_ticks != 0:
            return
        try:
            image = preprocess_price_region(frame.pixels, runtime.ocr_region_width, runtime.ocr_upscale)
            self.ocr_worker.submit(image)
        except Exception as e:
            logger.warning(f"OCR request skipped: {e}")

    def tick(self):
        """
        Run one pass. Failures are contained here so the loop keeps its cadence.

        Returns:
            FrameAnalysis or None: None when the tick was skipped or failed
        """
        started = time.perf_counter()
        frame = self._read_frame()
        if frame is None:
            return None

        try:
            analysis = self.analyzer.analyze(frame, now=self.clock())
        except MemoryError:
            logger.error("Out of memory during analysis pass; frame dropped")
            return None
        except Exception:
            logger.exception("Unexpected error during analysis pass")
            return None

        self.frame_count += 1
        elapsed_ms = (time.perf_counter() - started) * 1000
        ocr_text = self.ocr_worker.mailbox.peek() if self.ocr_worker is not None else ""
        self.signal = analysis.signal
        self.stats = ProcessingStats(
            fps=int(round(1000 / max(elapsed_ms, 1.0))),
            ocr_text=ocr_text,
            processing_time_ms=int(round(elapsed_ms)),
            frame_count=self.frame_count,
        )

        # after publishing: OCR never holds back the signal
        self._submit_ocr(frame)

        if self.on_analysis is not None:
            try:
                self.on_analysis(analysis)
            except Exception:
                logger.exception("on_analysis callback failed")
        return analysis

    def run_forever(self):
        """Tick at the configured interval until stop() is called."""
        interval = timedelta(milliseconds=self.config.runtime.tick_interval_ms)
        next_tick = datetime.now()
        logger.info(f"✅ Screen processor running every {self.config.runtime.tick_interval_ms} ms")
        while not self._stop_event.is_set():
            self.tick()
            next_tick += interval
            now = datetime.now()
            if next_tick < now:
                # Pass overran the interval: drop the missed ticks instead of bursting
                next_tick = now
            precise_sleep_until(next_tick, self._stop_event)
        logger.info("Screen processor stopped")

    def start(self):
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run_forever, name="screen-processor", daemon=True)
        self._thread.start()

    def stop(self, timeout=5.0):
        """Stop ticking, wait for the current pass, release OCR and the frame source."""
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
            self._thread = None
        if self.ocr_worker is not None:
            self.ocr_worker.shutdown(wait=False)
        self.source.close()
