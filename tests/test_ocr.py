import threading

import cv2
import numpy as np
import pytesseract

from prisma_vision import ocr
from prisma_vision.ocr import OcrMailbox, PriceOcrWorker, clean_ocr_text, preprocess_price_region


def _price_axis_frame():
    pixels = np.full((80, 300, 3), 255, dtype=np.uint8)
    cv2.putText(pixels, "1.2345", (200, 40), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 0), 1)
    return pixels


def test_preprocess_crops_right_strip_and_binarizes():
    image = preprocess_price_region(_price_axis_frame(), region_width=120, scale=2.0)

    assert image.shape == (160, 240)
    assert image.dtype == np.uint8
    assert set(np.unique(image)) <= {0, 255}
    # dark text on white: inverted, so text becomes the minority white pixels
    assert 0 < np.count_nonzero(image) < image.size // 2


def test_preprocess_narrow_frame_uses_full_width():
    pixels = np.zeros((10, 50, 4), dtype=np.uint8)
    assert preprocess_price_region(pixels, region_width=120, scale=1.0).shape == (10, 50)


def test_preprocess_rejects_unsupported_layout():
    assert preprocess_price_region(np.zeros((10, 10), dtype=np.uint8)) is None


def test_clean_keeps_digits_and_separators():
    assert clean_ocr_text("Price: 1.234,5\n") == "1.234,5"
    assert clean_ocr_text("12:30 - 7/8") == "123078"
    assert clean_ocr_text(None) == ""


def test_mailbox_keeps_latest():
    mailbox = OcrMailbox()
    assert mailbox.peek() == ""
    mailbox.put("1.1")
    mailbox.put("1.2")
    assert mailbox.peek() == "1.2"


def test_worker_delivers_cleaned_text(monkeypatch):
    calls = []

    def fake_image_to_string(image, lang=None, config=None):
        calls.append(config)
        return " 1.2345\n"

    monkeypatch.setattr(ocr.pytesseract, "image_to_string", fake_image_to_string)
    worker = PriceOcrWorker()

    assert worker.submit(np.zeros((4, 4), dtype=np.uint8)) is True
    worker.shutdown(wait=True)

    assert worker.mailbox.peek() == "1.2345"
    assert calls == ["--psm 6 -c tessedit_char_whitelist=0123456789./:-"]


def test_worker_skips_while_busy(monkeypatch):
    release = threading.Event()

    def slow_image_to_string(image, lang=None, config=None):
        release.wait(5)
        return "9.99"

    monkeypatch.setattr(ocr.pytesseract, "image_to_string", slow_image_to_string)
    worker = PriceOcrWorker()
    image = np.zeros((4, 4), dtype=np.uint8)

    assert worker.submit(image) is True
    assert worker.busy
    assert worker.submit(image) is False

    release.set()
    worker.shutdown(wait=True)
    assert worker.mailbox.peek() == "9.99"


def test_worker_disables_itself_without_tesseract(monkeypatch):
    def missing(image, lang=None, config=None):
        raise pytesseract.TesseractNotFoundError()

    monkeypatch.setattr(ocr.pytesseract, "image_to_string", missing)
    worker = PriceOcrWorker()

    worker.submit(np.zeros((4, 4), dtype=np.uint8))
    worker.shutdown(wait=True)

    assert worker.available is False
    assert worker.submit(np.zeros((4, 4), dtype=np.uint8)) is False
    assert worker.mailbox.peek() == ""


def test_worker_survives_ocr_failure(monkeypatch):
    def broken(image, lang=None, config=None):
        raise RuntimeError("tesseract crashed")

    monkeypatch.setattr(ocr.pytesseract, "image_to_string", broken)
    worker = PriceOcrWorker()
    worker.submit(np.zeros((4, 4), dtype=np.uint8))
    worker.shutdown(wait=True)

    assert worker.available is True
    assert worker.mailbox.peek() == ""


def test_worker_accepts_work_again_after_shutdown(monkeypatch):
    answers = iter(["1.10", "1.20"])
    monkeypatch.setattr(ocr.pytesseract, "image_to_string", lambda image, lang=None, config=None: next(answers))
    worker = PriceOcrWorker()
    image = np.zeros((4, 4), dtype=np.uint8)

    worker.submit(image)
    worker.shutdown(wait=True)
    assert worker.mailbox.peek() == "1.10"

    assert worker.submit(image) is True
    worker.shutdown(wait=True)
    assert worker.mailbox.peek() == "1.20"


def test_shutdown_before_any_work_is_harmless():
    worker = PriceOcrWorker()
    worker.shutdown(wait=True)
    assert not worker.busy
