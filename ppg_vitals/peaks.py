"""
Systolic peak detector.

A sample is a peak when it is strictly greater than both neighbours and
than ``mean + 0.5 × std`` of the whole series.  There is no refractory
period: two neighbouring samples can both qualify, and the resulting
too-short interval is rejected later by the physiological interval guard.
"""

from __future__ import annotations

import numpy as np

THRESHOLD_STD_FACTOR = 0.5


def detection_threshold(series) -> float:
    """Return ``mean + 0.5 × population standard deviation``."""
    x = np.asarray(series, dtype=np.float64)
    return float(np.mean(x) + THRESHOLD_STD_FACTOR * np.std(x))


def find_peaks(series) -> np.ndarray:
    """
    Return the strictly increasing indices of local maxima above threshold.

    The first and last samples are never peaks.
    """
    x = np.asarray(series, dtype=np.float64)
    if x.size < 3:
        return np.array([], dtype=np.intp)

    threshold = detection_threshold(x)
    mid = x[1:-1]
    mask = (mid > x[:-2]) & (mid > x[2:]) & (mid > threshold)
    return np.flatnonzero(mask) + 1
