"""
Frame sources.

:class:`FrameSource` wraps OpenCV ``VideoCapture`` (a webcam index or a
video file) and yields RGB frames with millisecond timestamps, ready for
:meth:`SignalBuffer.add_frame`.  :func:`synthetic_frames` produces a
simulated fingertip stream for demos and tests.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Generator, Optional, Tuple, Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)

Frame = Tuple[np.ndarray, float]


class FrameSource:
    """
    Thin wrapper around ``cv2.VideoCapture``.

    Parameters
    ----------
    source:
        Camera index (``int``) or path to a video file.
    resolution:
        Requested (width, height) for cameras; ignored for files.
    fps:
        Requested frame rate for cameras; ignored for files.
    """

    def __init__(
        self,
        source: Union[int, str] = 0,
        resolution: Tuple[int, int] = (640, 480),
        fps: int = 30,
    ) -> None:
        self.source = source
        self.resolution = resolution
        self.fps = fps
        self._cap: Optional[cv2.VideoCapture] = None

    @property
    def is_file(self) -> bool:
        return not isinstance(self.source, int)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        cap = cv2.VideoCapture(self.source)
        if not cap.isOpened():
            raise RuntimeError(f"Cannot open video source {self.source!r}")
        if not self.is_file:
            w, h = self.resolution
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
            cap.set(cv2.CAP_PROP_FPS, self.fps)
        self._cap = cap
        logger.info(
            "Frame source opened – source=%s fps=%.1f",
            self.source,
            cap.get(cv2.CAP_PROP_FPS) or self.fps,
        )

    def close(self) -> None:
        if self._cap is None:
            return
        self._cap.release()
        self._cap = None
        logger.info("Frame source closed.")

    def __enter__(self) -> "FrameSource":
        self.open()
        return self

    def __exit__(self, *_) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Frame acquisition
    # ------------------------------------------------------------------

    def read_frame(self) -> Optional[Frame]:
        """
        Capture one frame.

        Returns
        -------
        (frame, timestamp_ms) or None
            *frame* is an RGB array (H × W × 3, uint8).
        """
        if self._cap is None:
            raise RuntimeError("Frame source is not open.  Call open() first.")
        ok, bgr = self._cap.read()
        if not ok:
            logger.warning("VideoCapture.read() returned False.")
            return None
        if self.is_file:
            timestamp_ms = float(self._cap.get(cv2.CAP_PROP_POS_MSEC))
        else:
            timestamp_ms = time.monotonic() * 1000.0
        return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB), timestamp_ms

    def frames(self) -> Generator[Frame, None, None]:
        """Yield frames until the source ends or fails ten times in a row."""
        null_streak = 0
        while self._cap is not None:
            frame = self.read_frame()
            if frame is None:
                null_streak += 1
                if null_streak >= 10:
                    logger.info("Source returned 10 consecutive empty reads – stopping.")
                    break
                continue
            null_streak = 0
            yield frame


def synthetic_frames(
    bpm: float = 72.0,
    fps: float = 30.0,
    seconds: float = 20.0,
    size: Tuple[int, int] = (64, 48),
    base_rgb: Tuple[float, float, float] = (180.0, 60.0, 40.0),
    pulse_rgb: Tuple[float, float, float] = (3.0, 6.0, 1.0),
) -> Generator[Frame, None, None]:
    """
    Yield uniform RGB frames whose colour pulses sinusoidally at *bpm*.

    Timestamps are exact multiples of the frame period, starting at zero.
    """
    width, height = size
    freq_hz = bpm / 60.0
    base = np.asarray(base_rgb, dtype=np.float64)
    pulse = np.asarray(pulse_rgb, dtype=np.float64)
    for i in range(int(fps * seconds)):
        t = i / fps
        colour = np.clip(base + pulse * math.sin(2 * math.pi * freq_hz * t), 0, 255)
        frame = np.empty((height, width, 3), dtype=np.uint8)
        frame[:, :] = np.round(colour).astype(np.uint8)
        yield frame, i * 1000.0 / fps
