#!/usr/bin/env python3
"""
Shape Extractor
Finds candle bodies in a color mask and tags each one with a wick-shape hint.
"""

import logging

import cv2

from .config import ExtractorConfig
from .models import Candle, ShapeHint

logger = logging.getLogger("prisma_vision.extractor")


class ShapeExtractor:
    def __init__(self, config=None):
        """
        Initialize the extractor.

        Args:
            config (ExtractorConfig): noise filters and shape thresholds
        """
        self.config = config or ExtractorConfig()

    def half_densities(self, mask, x, y, width, height):
        """
        Count mask pixels in the top and bottom halves of a box.

        Both halves are floor(height / 2) rows tall and clipped to the mask.

        Returns:
            tuple: (top_density, bottom_density)
        """
        rows = mask.shape[0]
        half = height // 2

        top_end = min(y + half, rows)
        bottom_start = y + half
        bottom_end = min(bottom_start + half, rows)

        if top_end <= y or bottom_end <= bottom_start:
            return 0, 0

        top_density = cv2.countNonZero(mask[y:top_end, x:x + width])
        bottom_density = cv2.countNonZero(mask[bottom_start:bottom_end, x:x + width])
        return int(top_density), int(bottom_density)

    def classify_shape(self, width, height, top_density, bottom_density):
        """
        Approximate wick-vs-body proportions from the density split.

        A top-heavy tall box reads as a hammer (body up, long lower wick),
        a bottom-heavy one as a shooting star.
        """
        cfg = self.config
        if height <= width * cfg.tall_box_ratio:
            return ShapeHint.NORMAL

        density_ratio = top_density / (bottom_density + 0.1)
        if density_ratio > cfg.hammer_density_ratio:
            return ShapeHint.HAMMER
        if density_ratio < cfg.shooting_star_density_ratio:
            return ShapeHint.SHOOTING_STAR
        return ShapeHint.NORMAL

    def extract(self, mask, color):
        """
        Turn every surviving contour of a mask into a Candle.

        Args:
            mask (np.ndarray): uint8 binary mask from the segmenter
            color (ColorClass): color class the mask represents

        Returns:
            list: Candle objects in contour order (not sorted)
        """
        if mask is None or mask.size == 0:
            return []

        try:
            contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        except cv2.error as e:
            logger.warning(f"Contour search failed for {color.value} mask: {e}")
            return []

        cfg = self.config
        candles = []
        for contour in contours:
            # Skip single-pixel and antialiasing noise
            if cv2.contourArea(contour) <= cfg.min_contour_area:
                continue

            x, y, w, h = cv2.boundingRect(contour)
            if h < cfg.min_candle_height or w < cfg.min_candle_width:
                continue

            top_density, bottom_density = self.half_densities(mask, x, y, w, h)
            candles.append(Candle(
                x=int(x),
                y=int(y),
                width=int(w),
                height=int(h),
                color=color,
                shape=self.classify_shape(w, h, top_density, bottom_density),
                top_density=top_density,
                bottom_density=bottom_density,
            ))

        logger.debug(f"Extracted {len(candles)} {color.value} candle(s) from {len(contours)} contour(s)")
        return candles
