"""
Measurement session.

Couples frame ingestion with a periodic analysis tick.  Frames are
appended from the caller's thread; a single background thread wakes once
per ``interval`` and, when the buffer holds enough data, runs
:meth:`PPGAnalyzer.analyze` on a snapshot and hands the result map to the
registered listeners.  The buffer's lock keeps appends and snapshots from
interleaving, so the four series are always read at matching lengths.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from ppg_vitals.estimators import PPGAnalyzer

logger = logging.getLogger(__name__)

Measurements = Dict[str, Optional[float]]
Listener = Callable[[Measurements], None]


class MeasurementSession:
    """
    One timed PPG measurement.

    Parameters
    ----------
    analyzer:
        Processing core whose buffer the session fills.
    interval:
        Seconds between analysis ticks (default 1 s).
    duration_seconds:
        The session stops itself after this long.  *None* runs until
        :meth:`stop` is called.
    """

    def __init__(
        self,
        analyzer: Optional[PPGAnalyzer] = None,
        interval: float = 1.0,
        duration_seconds: Optional[float] = 30.0,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.analyzer = analyzer if analyzer is not None else PPGAnalyzer()
        self.interval = interval
        self.duration_seconds = duration_seconds

        self._listeners: List[Listener] = []
        self._latest: Optional[Measurements] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._started_at: Optional[float] = None
        self._running = False
        self._state_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Clear the buffer and begin ticking.  No-op if already running."""
        with self._state_lock:
            if self._running:
                return
            self.analyzer.clear_data()
            self._latest = None
            self._started_at = time.monotonic()
            self._running = True
            # Each run owns its stop event, so a finishing worker never sees
            # the event of the run that replaced it.
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run, args=(self._stop_event,), name="ppg-analysis", daemon=True
            )
            self._thread.start()
        logger.info(
            "Measurement started – interval=%.1fs duration=%s",
            self.interval,
            f"{self.duration_seconds:.0f}s" if self.duration_seconds else "unbounded",
        )

    def stop(self) -> Optional[Measurements]:
        """Stop ticking and return the last result map (or *None*)."""
        with self._state_lock:
            was_running = self._running
            self._running = False
            self._stop_event.set()
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        if was_running:
            logger.info("Measurement stopped.")
        return self._latest

    def __enter__(self) -> "MeasurementSession":
        self.start()
        return self

    def __exit__(self, *_) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Ingestion / results
    # ------------------------------------------------------------------

    def submit_frame(self, pixels, width: int, height: int, timestamp_ms: Optional[float] = None):
        if not self._running:
            logger.debug("Frame ignored – session not running")
            return None
        return self.analyzer.add_frame(pixels, width, height, timestamp_ms)

    def add_listener(self, callback: Listener) -> None:
        self._listeners.append(callback)

    def tick(self) -> Optional[Measurements]:
        """Run one analysis pass and notify listeners if it produced a result."""
        result = self.analyzer.analyze()
        if result is None:
            return None
        self._latest = result
        for callback in list(self._listeners):
            try:
                callback(result)
            except Exception:
                logger.exception("Measurement listener %r failed", callback)
        return result

    @property
    def latest(self) -> Optional[Measurements]:
        return self._latest

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def elapsed_seconds(self) -> float:
        if self._started_at is None:
            return 0.0
        return time.monotonic() - self._started_at

    @property
    def remaining_seconds(self) -> Optional[float]:
        if self.duration_seconds is None:
            return None
        return max(self.duration_seconds - self.elapsed_seconds, 0.0)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            self.tick()
            if self.remaining_seconds == 0.0:
                with self._state_lock:
                    if self._stop_event is stop_event:
                        self._running = False
                logger.info("Measurement duration reached.")
                return
