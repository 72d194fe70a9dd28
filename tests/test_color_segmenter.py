import numpy as np

from conftest import GREEN, RED, draw_box
from prisma_vision.color_segmenter import ColorSegmenter, to_rgb
from prisma_vision.config import HsvRange, SegmenterConfig

MAGENTA_RED = (200, 0, 60)  # hue ~171 on OpenCV's 0..180 scale
BLUE = (0, 0, 200)


def _frame():
    pixels = np.zeros((100, 120, 3), dtype=np.uint8)
    draw_box(pixels, 10, 10, 10, 40, GREEN)
    draw_box(pixels, 40, 10, 10, 40, RED)
    draw_box(pixels, 70, 10, 10, 40, MAGENTA_RED)
    draw_box(pixels, 100, 10, 10, 40, BLUE)
    return pixels


def test_masks_split_green_and_red():
    bullish, bearish = ColorSegmenter().segment(_frame())

    assert bullish.shape == bearish.shape == (100, 120)
    assert bullish[30, 15] == 255
    assert bearish[30, 15] == 0
    assert bearish[30, 45] == 255
    assert bullish[30, 45] == 0
    assert np.count_nonzero(bullish) == 400


def test_red_wraps_around_hue_circle():
    _, bearish = ColorSegmenter().segment(_frame())
    assert bearish[30, 75] == 255
    assert np.count_nonzero(bearish) == 800


def test_other_colors_and_background_are_ignored():
    bullish, bearish = ColorSegmenter().segment(_frame())
    assert bullish[30, 105] == 0 and bearish[30, 105] == 0
    assert bullish[80, 60] == 0 and bearish[80, 60] == 0


def test_rgba_frames_drop_alpha():
    rgb = _frame()
    rgba = np.dstack([rgb, np.full(rgb.shape[:2], 255, dtype=np.uint8)])

    bullish, bearish = ColorSegmenter().segment(rgba)
    expected_bullish, expected_bearish = ColorSegmenter().segment(rgb)

    assert np.array_equal(bullish, expected_bullish)
    assert np.array_equal(bearish, expected_bearish)


def test_unsupported_layout_gives_empty_masks():
    gray = np.zeros((30, 40), dtype=np.uint8)
    bullish, bearish = ColorSegmenter().segment(gray)

    assert bullish.shape == (30, 40)
    assert not bullish.any() and not bearish.any()
    assert to_rgb(gray) is None
    assert to_rgb(np.zeros((5, 5, 2), dtype=np.uint8)) is None


def test_custom_ranges():
    config = SegmenterConfig(
        bullish=HsvRange((100, 50, 50), (130, 255, 255)),  # blue as "bullish"
        bearish=[HsvRange((0, 50, 50), (10, 255, 255))],
    )
    bullish, bearish = ColorSegmenter(config).segment(_frame())

    assert bullish[30, 105] == 255
    assert bullish[30, 15] == 0
    assert bearish[30, 75] == 0
