"""
qr_backdrop.scan
----------------

QR decoding on arbitrary pixels using OpenCV's built-in detector.

Not finding a code is an ordinary result here, so these functions return
``None``/``False`` instead of raising.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterator

import cv2
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


def _grayscale(image: Image.Image) -> np.ndarray:
    arr = np.array(image.convert("RGB"))
    return cv2.cvtColor(arr, cv2.COLOR_RGB2GRAY)


def _stretch_contrast(gray: np.ndarray) -> np.ndarray:
    return cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX)


def _otsu_threshold(gray: np.ndarray) -> np.ndarray:
    return cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)[1]


# Tried in order until one yields a payload.
PREPROCESSING_PASSES: tuple[tuple[str, Callable[[np.ndarray], np.ndarray]], ...] = (
    ("grayscale", lambda gray: gray),
    ("contrast", _stretch_contrast),
    ("otsu", _otsu_threshold),
)


def _passes(image: Image.Image) -> Iterator[tuple[str, np.ndarray]]:
    gray = _grayscale(image)
    for name, prepare in PREPROCESSING_PASSES:
        yield name, prepare(gray)


def decode(image: Image.Image) -> bytes | None:
    """
    Scan an image for a QR code and return its payload.

    Returns:
        The decoded payload as UTF-8 bytes, or None if no code could be read.
    """
    detector = cv2.QRCodeDetector()
    for name, prepared in _passes(image):
        try:
            data, _points, _ = detector.detectAndDecode(prepared)
        except cv2.error as exc:
            logger.debug("Decode pass %s raised %s", name, exc)
            continue
        if data:
            logger.debug("Decoded %d chars on pass %s", len(data), name)
            return data.encode("utf-8")
        logger.debug("Decode pass %s found nothing", name)
    return None


def payload_matches(decoded: bytes, expected: bytes) -> bool:
    """
    Compare decoded bytes with the original payload.

    OpenCV hands back byte-mode data that is not valid UTF-8 as Latin-1
    text, which :func:`decode` re-encodes as UTF-8. Both readings of the
    same symbol are accepted.
    """
    if decoded == expected:
        return True
    try:
        return decoded.decode("utf-8").encode("latin-1") == expected
    except (UnicodeDecodeError, UnicodeEncodeError):
        return False


def contains_qr(image: Image.Image) -> bool:
    """Quick check whether a QR code can be located, without decoding it."""
    detector = cv2.QRCodeDetector()
    try:
        found, _points = detector.detect(_grayscale(image))
    except cv2.error as exc:
        logger.debug("Detection raised %s", exc)
        return False
    return bool(found)
