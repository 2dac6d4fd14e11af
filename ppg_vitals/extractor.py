"""
Channel sample extractor.

Reduces one packed RGB frame to three scalar intensities by averaging a
square region of interest in the centre of the frame.  The centre of a
fingertip-covered lens is the most uniformly lit part of the image; the
edges suffer from vignetting and light leaking around the finger.

ROI geometry
------------
    region = min(width, height) // 4
    rows   = [cy - region // 2, cy + region // 2)
    cols   = [cx - region // 2, cx + region // 2)

clamped to the frame.  Frames smaller than 8 px on the short side have an
empty ROI and produce no sample.
"""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional

import numpy as np

logger = logging.getLogger(__name__)

BYTES_PER_PIXEL = 3


class ChannelSample(NamedTuple):
    """Mean red/green/blue intensity of one frame and its capture time."""

    red: float
    green: float
    blue: float
    timestamp_ms: float


def _as_byte_array(pixels) -> np.ndarray:
    if isinstance(pixels, (bytes, bytearray, memoryview)):
        return np.frombuffer(pixels, dtype=np.uint8)
    return np.asarray(pixels, dtype=np.uint8).ravel()


def roi_bounds(width: int, height: int) -> tuple[int, int, int, int]:
    """Return ``(x0, y0, x1, y1)`` of the centre ROI (end-exclusive)."""
    cx, cy = width // 2, height // 2
    half = min(width, height) // 4 // 2
    x0 = max(cx - half, 0)
    y0 = max(cy - half, 0)
    x1 = min(cx + half, width)
    y1 = min(cy + half, height)
    return x0, y0, x1, y1


def extract_channel_sample(
    pixels,
    width: int,
    height: int,
    timestamp_ms: float,
) -> Optional[ChannelSample]:
    """
    Average the centre ROI of a packed RGB frame.

    Parameters
    ----------
    pixels:
        Row-major interleaved RGB bytes (``bytes``, ``bytearray``,
        ``memoryview`` or any array-like of uint8, e.g. an H × W × 3 frame).
    width, height:
        Frame geometry in pixels.
    timestamp_ms:
        Capture time attached to the sample.

    Returns
    -------
    ChannelSample or None
        *None* when no pixel of the ROI lies inside both the frame and the
        supplied buffer.
    """
    if width <= 0 or height <= 0:
        logger.debug("Skipping frame with degenerate geometry %dx%d", width, height)
        return None

    data = _as_byte_array(pixels)
    n_pixels = data.size // BYTES_PER_PIXEL

    x0, y0, x1, y1 = roi_bounds(width, height)
    if x1 <= x0 or y1 <= y0 or n_pixels == 0:
        logger.debug("Empty ROI for %dx%d frame – no sample", width, height)
        return None

    ys = np.arange(y0, y1)
    xs = np.arange(x0, x1)
    idx = (ys[:, None] * width + xs[None, :]).ravel()
    # Pixels that would run past the end of a short buffer are skipped
    idx = idx[idx < n_pixels]
    if idx.size == 0:
        logger.debug("ROI lies beyond the %d-byte buffer – no sample", data.size)
        return None

    rgb = data[: n_pixels * BYTES_PER_PIXEL].reshape(-1, BYTES_PER_PIXEL)[idx]
    red, green, blue = rgb.astype(np.float64).mean(axis=0)
    return ChannelSample(float(red), float(green), float(blue), float(timestamp_ms))
