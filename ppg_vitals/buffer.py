"""
Rolling signal buffer.

Holds the red, green and blue intensity series of one measurement session
together with the per-frame timestamps.  The four sequences are appended,
trimmed and cleared as a unit so that index ``i`` always refers to the same
frame in every one of them.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, NamedTuple, Optional

import numpy as np

from ppg_vitals.extractor import ChannelSample, extract_channel_sample

logger = logging.getLogger(__name__)

SAMPLE_RATE = 30            # nominal frames per second
ANALYSIS_SECONDS = 15       # minimum window before any estimate is made
WINDOW_SECONDS = 30         # samples older than this are dropped


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class SignalSnapshot(NamedTuple):
    """Consistent copy of the buffer contents, one float64 array per series."""

    red: np.ndarray
    green: np.ndarray
    blue: np.ndarray
    timestamps: np.ndarray

    def __len__(self) -> int:
        return len(self.timestamps)


class SignalBuffer:
    """
    Bounded, thread-safe store of per-frame channel samples.

    Parameters
    ----------
    fps:
        Nominal sampling rate of the frame stream.
    analysis_seconds:
        Seconds of data required before :meth:`has_enough_data` is true
        (``fps × analysis_seconds`` samples; 450 with the defaults).
    window_seconds:
        Length of the rolling window kept in memory.  Never shorter than
        ``analysis_seconds``.
    clock:
        Callable returning the current time in milliseconds; used when a
        frame is added without an explicit timestamp.
    """

    def __init__(
        self,
        fps: float = SAMPLE_RATE,
        analysis_seconds: float = ANALYSIS_SECONDS,
        window_seconds: float = WINDOW_SECONDS,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        if fps <= 0:
            raise ValueError(f"fps must be positive, got {fps}")
        if analysis_seconds <= 0:
            raise ValueError(f"analysis_seconds must be positive, got {analysis_seconds}")

        self.fps = fps
        self.analysis_seconds = analysis_seconds
        self.min_samples = int(fps * analysis_seconds)
        if self.min_samples < 1:
            raise ValueError(
                f"fps × analysis_seconds must cover at least one sample, "
                f"got {fps} × {analysis_seconds}"
            )
        self.window_seconds = max(window_seconds, analysis_seconds)
        self._clock = clock

        maxlen = max(int(fps * self.window_seconds), self.min_samples)
        self._red: Deque[float] = deque(maxlen=maxlen)
        self._green: Deque[float] = deque(maxlen=maxlen)
        self._blue: Deque[float] = deque(maxlen=maxlen)
        self._timestamps: Deque[float] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def add_frame(
        self,
        pixels,
        width: int,
        height: int,
        timestamp_ms: Optional[float] = None,
    ) -> Optional[ChannelSample]:
        """
        Extract a sample from a packed RGB frame and append it.

        A frame whose ROI is empty leaves the buffer untouched and returns
        *None*.
        """
        if timestamp_ms is None:
            timestamp_ms = self._clock()
        sample = extract_channel_sample(pixels, width, height, timestamp_ms)
        if sample is not None:
            self.append(sample)
        return sample

    def append(self, sample: ChannelSample) -> None:
        with self._lock:
            self._red.append(sample.red)
            self._green.append(sample.green)
            self._blue.append(sample.blue)
            self._timestamps.append(sample.timestamp_ms)

    def clear_data(self) -> None:
        """Drop every sample.  Call at the start of each measurement session."""
        with self._lock:
            self._red.clear()
            self._green.clear()
            self._blue.clear()
            self._timestamps.clear()
        logger.debug("Signal buffer cleared")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._timestamps)

    def has_enough_data(self) -> bool:
        return len(self) >= self.min_samples

    @property
    def fill_ratio(self) -> float:
        """Progress towards the analysis minimum (0 – 1)."""
        return min(len(self) / self.min_samples, 1.0)

    def snapshot(self) -> SignalSnapshot:
        """Copy all four series under the lock so their lengths match."""
        with self._lock:
            return SignalSnapshot(
                red=np.array(self._red, dtype=np.float64),
                green=np.array(self._green, dtype=np.float64),
                blue=np.array(self._blue, dtype=np.float64),
                timestamps=np.array(self._timestamps, dtype=np.float64),
            )
