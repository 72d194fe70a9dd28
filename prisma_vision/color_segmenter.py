#!/usr/bin/env python3
"""
Color Segmenter
Splits a chart frame into bullish (green) and bearish (red) candle masks using HSV ranges.
"""

import logging

import cv2
import numpy as np

from .config import SegmenterConfig

logger = logging.getLogger("prisma_vision.segmenter")


def to_rgb(pixels):
    """
    Return the RGB view of a frame, dropping alpha when present.

    Args:
        pixels (np.ndarray): H x W x 3 (RGB) or H x W x 4 (RGBA) image

    Returns:
        np.ndarray or None: RGB image, or None for unsupported layouts
    """
    if pixels is None or pixels.size == 0 or pixels.ndim != 3:
        return None
    if pixels.shape[2] == 4:  # RGBA
        return np.ascontiguousarray(pixels[:, :, :3])
    if pixels.shape[2] == 3:  # RGB
        return pixels
    return None


class ColorSegmenter:
    def __init__(self, config=None):
        """
        Initialize the segmenter.

        Args:
            config (SegmenterConfig): hue/saturation/value ranges for each color class
        """
        self.config = config or SegmenterConfig()
        self.bullish_lower = np.array(self.config.bullish.lower, dtype=np.uint8)
        self.bullish_upper = np.array(self.config.bullish.upper, dtype=np.uint8)

        # Red wraps around the hue circle, so it needs more than one range
        self.bearish_ranges = [
            (np.array(r.lower, dtype=np.uint8), np.array(r.upper, dtype=np.uint8))
            for r in self.config.bearish
        ]

    def _empty_masks(self, pixels):
        if pixels is not None and pixels.ndim >= 2:
            shape = pixels.shape[:2]
        else:
            shape = (0, 0)
        return np.zeros(shape, dtype=np.uint8), np.zeros(shape, dtype=np.uint8)

    def segment(self, pixels):
        """
        Build the bullish and bearish binary masks for a frame.

        Args:
            pixels (np.ndarray): RGB or RGBA frame pixels

        Returns:
            tuple: (bullish_mask, bearish_mask), uint8 arrays of 0/255 with the frame's height and width
        """
        rgb_image = to_rgb(pixels)
        if rgb_image is None:
            logger.debug(f"Unsupported frame layout {getattr(pixels, 'shape', None)}; returning empty masks")
            return self._empty_masks(pixels)

        if rgb_image.dtype != np.uint8:
            rgb_image = np.clip(rgb_image, 0, 255).astype(np.uint8)

        try:
            hsv_image = cv2.cvtColor(rgb_image, cv2.COLOR_RGB2HSV)

            bullish_mask = cv2.inRange(hsv_image, self.bullish_lower, self.bullish_upper)

            bearish_mask = np.zeros(hsv_image.shape[:2], dtype=np.uint8)
            for lower, upper in self.bearish_ranges:
                bearish_mask = cv2.bitwise_or(bearish_mask, cv2.inRange(hsv_image, lower, upper))
        except cv2.error as e:
            logger.warning(f"Color segmentation failed: {e}")
            return self._empty_masks(pixels)

        return bullish_mask, bearish_mask
