#!/usr/bin/env python3
"""
Price label OCR
Reads the on-screen price axis in the background. Never blocks the analysis tick:
results land in a one-slot mailbox that the next stats snapshot reads.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor

import cv2
import pytesseract

from .color_segmenter import to_rgb

logger = logging.getLogger("prisma_vision.ocr")

_NON_PRICE_CHARS = re.compile(r"[^0-9.,]")


def preprocess_price_region(pixels, region_width=120, scale=2.0):
    """
    Crop the right-hand price strip and prepare it for OCR.

    Args:
        pixels (np.ndarray): RGB or RGBA frame pixels
        region_width (int): width in pixels of the strip taken from the right edge
        scale (float): upscale factor, helps on small fonts

    Returns:
        np.ndarray or None: binarized (inverted, Otsu) grayscale image
    """
    rgb_image = to_rgb(pixels)
    if rgb_image is None:
        return None

    height, width = rgb_image.shape[:2]
    region_width = min(region_width, width)
    if region_width <= 0 or height <= 0:
        return None

    roi = rgb_image[:, width - region_width:]
    resized = cv2.resize(roi, (int(region_width * scale), int(height * scale)), interpolation=cv2.INTER_LINEAR)
    gray = cv2.cvtColor(resized, cv2.COLOR_RGB2GRAY)
    # Otsu picks the threshold; inverted so dark text on light background works too
    _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY_INV + cv2.THRESH_OTSU)
    return binary


def clean_ocr_text(text):
    """Keep only digits and decimal separators."""
    return _NON_PRICE_CHARS.sub("", text or "")


class OcrMailbox:
    """Single shared cell: the newest completed OCR text overwrites the previous one."""

    def __init__(self):
        self._text = ""

    def put(self, text):
        self._text = text

    def peek(self):
        return self._text


class PriceOcrWorker:
    def __init__(self, mailbox=None, char_whitelist="0123456789./:-", lang="eng"):
        """
        Initialize the OCR worker.

        Args:
            mailbox (OcrMailbox): where recognized text is delivered
            char_whitelist (str): characters tesseract may return
            lang (str): tesseract language
        """
        self.mailbox = mailbox or OcrMailbox()
        self.lang = lang
        whitelist = char_whitelist.replace(" ", "")
        self.tesseract_config = f"--psm 6 -c tessedit_char_whitelist={whitelist}" if whitelist else "--psm 6"
        self.available = True
        self._executor = None
        self._pending = None

    @property
    def busy(self):
        return self._pending is not None and not self._pending.done()

    def recognize(self, image):
        """Run tesseract synchronously and return the cleaned price text."""
        text = pytesseract.image_to_string(image, lang=self.lang, config=self.tesseract_config)
        return clean_ocr_text(text)

    def _run(self, image):
        try:
            text = self.recognize(image)
        except pytesseract.TesseractNotFoundError as e:
            logger.warning(f"OCR not available (tesseract binary missing): {e}. Disabling price OCR.")
            self.available = False
            return
        except Exception as e:
            logger.error(f"OCR failed: {e}")
            return
        self.mailbox.put(text)
        logger.debug(f"OCR price text: '{text}'")

    def submit(self, image):
        """
        Queue an image for recognition unless one is already in flight.

        Returns:
            bool: True when the image was queued
        """
        if image is None or not self.available or self.busy:
            return False
        # Started on first use, and again after a shutdown so a restarted processor keeps OCR
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="price-ocr")
        self._pending = self._executor.submit(self._run, image)
        return True

    def shutdown(self, wait=True):
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
        self._executor = None
        self._pending = None
