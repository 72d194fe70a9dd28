#!/usr/bin/env python3
"""
Frame Sources
Where chart bitmaps come from: a saved screenshot on disk, or a live grab of a monitor region.
"""

import logging
import os
from datetime import datetime

import cv2
import mss
import numpy as np
from mss.exception import ScreenShotError
from PIL import Image

from .models import Frame

logger = logging.getLogger("prisma_vision.frame_source")


class FrameNotReady(RuntimeError):
    """The source has no usable frame yet; the caller should skip this tick."""


class FrameSource:
    """Base interface. ``read()`` returns a Frame, or None when nothing is ready."""

    def read(self):
        raise NotImplementedError

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class ImageFileFrameSource(FrameSource):
    def __init__(self, image_path):
        """
        Serve a screenshot from disk. The file is re-read on every call so an
        external tool can keep overwriting it.

        Args:
            image_path (str): path to a PNG/JPG chart screenshot
        """
        self.image_path = image_path

    def read(self):
        if not os.path.exists(self.image_path):
            logger.debug(f"Image not found yet: {self.image_path}")
            return None

        # Image.open is lazy; convert() forces the decode so truncated files fail here
        with Image.open(self.image_path) as img:
            if img.mode == 'RGBA':
                pixels = np.array(img)
            else:
                pixels = np.array(img.convert('RGB'))

        if pixels.size == 0:
            raise FrameNotReady(f"Empty image: {self.image_path}")
        return Frame(pixels=pixels, captured_at=datetime.now())


class ScreenFrameSource(FrameSource):
    def __init__(self, monitor_number=1, region=None):
        """
        Capture frames straight from the screen.

        Args:
            monitor_number (int): mss monitor index (0 is the virtual all-screens monitor)
            region (dict): optional {"left", "top", "width", "height"} sub-rectangle
        """
        self.monitor_number = monitor_number
        self.region = region
        self._sct = None

    def _monitor(self):
        monitors = self._sct.monitors
        if self.monitor_number >= len(monitors):
            raise FrameNotReady(f"Monitor {self.monitor_number} not available ({len(monitors) - 1} found)")
        monitor = monitors[self.monitor_number]
        if not self.region:
            return monitor
        return {
            "left": monitor["left"] + int(self.region["left"]),
            "top": monitor["top"] + int(self.region["top"]),
            "width": int(self.region["width"]),
            "height": int(self.region["height"]),
        }

    def read(self):
        # mss handles are thread-bound, so open lazily on the capture thread
        if self._sct is None:
            self._sct = mss.mss()

        try:
            shot = self._sct.grab(self._monitor())
        except ScreenShotError as e:
            # Locked screen, display switch, lost X/Wayland session
            raise FrameNotReady(f"Screen grab failed: {e}") from e
        bgra = np.array(shot)
        if bgra.size == 0:
            return None
        return Frame(pixels=cv2.cvtColor(bgra, cv2.COLOR_BGRA2RGB), captured_at=datetime.now())

    def close(self):
        if self._sct is not None:
            self._sct.close()
            self._sct = None
