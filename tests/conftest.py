from datetime import datetime

import cv2
import numpy as np
import pytest

from prisma_vision.models import Frame

GREEN = (0, 200, 0)
RED = (200, 0, 0)


def draw_box(pixels, x, y, w, h, color):
    # inclusive corners, so boundingRect comes back as (x, y, w, h)
    cv2.rectangle(pixels, (x, y), (x + w - 1, y + h - 1), color, -1)


def draw_hammer(pixels, x, y, w, h, body_h, color):
    """Wide body on top, 2px wick below it."""
    draw_box(pixels, x, y, w, body_h, color)
    mid = x + w // 2 - 1
    draw_box(pixels, mid, y + body_h, 2, h - body_h, color)


@pytest.fixture
def reversal_frame():
    """Three red candles, a green hammer, then a green breakout candle."""
    pixels = np.zeros((250, 200, 3), dtype=np.uint8)
    draw_box(pixels, 10, 100, 10, 40, RED)
    draw_box(pixels, 30, 120, 10, 40, RED)
    draw_box(pixels, 50, 140, 10, 40, RED)
    draw_hammer(pixels, 70, 140, 10, 40, 14, GREEN)
    draw_box(pixels, 90, 110, 10, 40, GREEN)
    return Frame(pixels=pixels, captured_at=datetime(2024, 1, 1, 12, 0, 55))
