"""
Filter stage.

A single-pole recursive smoother:

    out[0] = raw[0]
    out[i] = out[i-1] + alpha * (raw[i] - out[i-1])

With ``alpha = 0.1`` at 30 fps this attenuates everything above a few Hz
and keeps the cardiac band.  It has no high-pass section, so baseline
drift passes through; peak detection copes with that through its
mean-relative threshold.
"""

from __future__ import annotations

import numpy as np
from scipy.signal import lfilter

SMOOTHING_ALPHA = 0.1


def smooth(series, alpha: float = SMOOTHING_ALPHA) -> np.ndarray:
    """
    Apply the exponential smoothing recurrence to *series*.

    Returns a new float64 array of the same length.
    """
    if not 0.0 < alpha <= 1.0:
        raise ValueError(f"alpha must be in (0, 1], got {alpha}")

    x = np.asarray(series, dtype=np.float64)
    if x.size == 0:
        return x.copy()

    # Run the filter on the offset from the first sample: the initial state
    # is then zero and a constant input stays exactly constant.
    origin = x[0]
    return lfilter([alpha], [1.0, alpha - 1.0], x - origin) + origin
