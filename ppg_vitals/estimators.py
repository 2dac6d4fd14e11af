"""
Vital-sign estimators.

Pure functions that turn channel series into heart rate, heart-rate
variability (RMSSD), SpO2 and blood pressure, plus :class:`PPGAnalyzer`,
which applies them to a :class:`~ppg_vitals.buffer.SignalBuffer` and
enforces the data-sufficiency gate.

Every estimator returns *None* when it cannot produce a value.  That is
the normal outcome during the first seconds of a session and is not an
error.

Notes
-----
- Heart rate and HRV come from peak timing on the smoothed green channel
  (green light is most strongly absorbed by haemoglobin).
- SpO2 uses the ratio of ratios on red and green, with green standing in
  for the infrared channel of a real pulse oximeter.
- Blood pressure is an uncalibrated heuristic over heart rate and green
  signal amplitude.  Results are indicative only, not clinical-grade.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, NamedTuple, Optional

import numpy as np

from ppg_vitals.buffer import SignalBuffer, SignalSnapshot
from ppg_vitals.filters import smooth
from ppg_vitals.peaks import find_peaks

logger = logging.getLogger(__name__)

# Physiological beat-to-beat interval window (seconds), exclusive: 30 – 200 BPM
MIN_INTERVAL_S = 0.3
MAX_INTERVAL_S = 2.0

HR_MIN_BPM = 30.0
HR_MAX_BPM = 200.0

SPO2_MIN = 70.0
SPO2_MAX = 100.0

SYSTOLIC_BASE = 90.0
DIASTOLIC_BASE = 60.0
SYSTOLIC_RANGE = (80.0, 200.0)
DIASTOLIC_RANGE = (50.0, 120.0)


class BloodPressure(NamedTuple):
    systolic: float
    diastolic: float


# ---------------------------------------------------------------------------
# Signal statistics
# ---------------------------------------------------------------------------

def amplitude(series) -> float:
    """Peak-to-peak range; 0.0 for an empty series."""
    x = np.asarray(series, dtype=np.float64)
    if x.size == 0:
        return 0.0
    return float(x.max() - x.min())


def variability(series) -> float:
    """Population standard deviation."""
    return float(np.std(np.asarray(series, dtype=np.float64)))


def dc_component(series) -> float:
    return float(np.mean(np.asarray(series, dtype=np.float64)))


def ac_component(series) -> float:
    """Standard deviation of the mean-removed signal."""
    x = np.asarray(series, dtype=np.float64)
    return variability(x - np.mean(x))


def red_green_ratio(red, green) -> float:
    """Mean red over mean green; 1.0 if either is empty or green is not positive."""
    red = np.asarray(red, dtype=np.float64)
    green = np.asarray(green, dtype=np.float64)
    if red.size == 0 or green.size == 0:
        return 1.0
    green_mean = float(np.mean(green))
    if green_mean <= 0:
        return 1.0
    return float(np.mean(red)) / green_mean


def signal_quality(red, green) -> float:
    """Amplitude-to-variability score in [0, 1]."""
    quality = (amplitude(red) + amplitude(green)) / (
        variability(red) + variability(green) + 1.0
    )
    return float(np.clip(quality, 0.0, 1.0))


# ---------------------------------------------------------------------------
# Beat timing
# ---------------------------------------------------------------------------

def peak_intervals(peaks, timestamps_ms) -> np.ndarray:
    """
    Successive peak-to-peak intervals in seconds.

    Intervals outside the open range (0.3, 2.0) s are discarded, not
    clamped.
    """
    peaks = np.asarray(peaks, dtype=np.intp)
    if peaks.size < 2:
        return np.array([], dtype=np.float64)
    times = np.asarray(timestamps_ms, dtype=np.float64)[peaks]
    dt = np.diff(times) / 1000.0
    return dt[(dt > MIN_INTERVAL_S) & (dt < MAX_INTERVAL_S)]


def estimate_heart_rate(green, timestamps_ms) -> Optional[float]:
    """Mean beat rate (BPM) over the green channel, clamped to [30, 200]."""
    peaks = find_peaks(smooth(green))
    if len(peaks) < 2:
        logger.debug("Heart rate unavailable: %d peaks", len(peaks))
        return None

    intervals = peak_intervals(peaks, timestamps_ms)
    if intervals.size == 0:
        logger.debug("Heart rate unavailable: no interval in physiological range")
        return None

    bpm = 60.0 / float(np.mean(intervals))
    return float(np.clip(bpm, HR_MIN_BPM, HR_MAX_BPM))


def estimate_hrv(green, timestamps_ms) -> Optional[float]:
    """RMSSD of the retained beat intervals, in milliseconds."""
    peaks = find_peaks(smooth(green))
    if len(peaks) < 3:
        return None

    rr_ms = peak_intervals(peaks, timestamps_ms) * 1000.0
    if rr_ms.size < 2:
        return None

    successive = np.diff(rr_ms)
    return math.sqrt(float(np.mean(successive ** 2)))


def estimate_spo2(red, green) -> Optional[float]:
    """
    Oxygen saturation (%) from the red/green ratio of ratios.

    Formula: SpO2 ≈ 110 − 25 × (AC_red/DC_red) / (AC_green/DC_green),
    shifted by ±5 points according to :func:`signal_quality` and clamped
    to [70, 100].
    """
    red_dc = dc_component(red)
    green_dc = dc_component(green)
    if red_dc == 0 or green_dc == 0:
        logger.debug("SpO2 unavailable: zero DC component")
        return None

    red_ac = ac_component(red)
    green_ac = ac_component(green)
    if green_ac == 0:
        logger.debug("SpO2 unavailable: no pulsatile green component")
        return None

    ratio = (red_ac / red_dc) / (green_ac / green_dc)
    spo2 = 110.0 - 25.0 * ratio
    spo2 += (signal_quality(red, green) - 0.5) * 10.0
    return float(np.clip(spo2, SPO2_MIN, SPO2_MAX))


def estimate_blood_pressure(red, green, heart_rate: float) -> BloodPressure:
    """
    Heuristic systolic/diastolic estimate (mmHg).

    Uncalibrated: coefficients are fixed for reproducibility and the output
    is only clamped to [80, 200] / [50, 120].
    """
    hr_factor = (heart_rate - 70.0) * 0.3
    amplitude_factor = amplitude(green) * 2.0
    variability_factor = variability(green) * 15.0
    ratio_factor = (red_green_ratio(red, green) - 1.0) * 10.0

    systolic = (
        SYSTOLIC_BASE + hr_factor + amplitude_factor + variability_factor + ratio_factor
    )
    diastolic = (
        DIASTOLIC_BASE
        + hr_factor * 0.6
        + amplitude_factor * 0.5
        + variability_factor * 0.7
    )
    return BloodPressure(
        systolic=float(np.clip(systolic, *SYSTOLIC_RANGE)),
        diastolic=float(np.clip(diastolic, *DIASTOLIC_RANGE)),
    )


# ---------------------------------------------------------------------------
# Buffer-backed analyzer
# ---------------------------------------------------------------------------

class PPGAnalyzer:
    """
    Estimates vital signs from the contents of a :class:`SignalBuffer`.

    Each ``calculate_*`` method takes its own snapshot and returns *None*
    until the buffer holds ``buffer.min_samples`` samples.  SpO2 and blood
    pressure additionally require a heart rate.

    Parameters
    ----------
    buffer:
        Session buffer to read from.  A fresh one with default settings is
        created when omitted.
    """

    def __init__(self, buffer: Optional[SignalBuffer] = None) -> None:
        self.buffer = buffer if buffer is not None else SignalBuffer()

    # Convenience pass-throughs so callers can treat the analyzer as the
    # whole processing core.
    def add_frame(self, pixels, width: int, height: int, timestamp_ms: Optional[float] = None):
        return self.buffer.add_frame(pixels, width, height, timestamp_ms)

    def clear_data(self) -> None:
        self.buffer.clear_data()

    def has_enough_data(self) -> bool:
        return self.buffer.has_enough_data()

    # ------------------------------------------------------------------
    # Estimators
    # ------------------------------------------------------------------

    def _sufficient_snapshot(self) -> Optional[SignalSnapshot]:
        snap = self.buffer.snapshot()
        if len(snap) < self.buffer.min_samples:
            return None
        return snap

    def calculate_heart_rate(self) -> Optional[float]:
        snap = self._sufficient_snapshot()
        if snap is None:
            return None
        return estimate_heart_rate(snap.green, snap.timestamps)

    def calculate_hrv(self) -> Optional[float]:
        snap = self._sufficient_snapshot()
        if snap is None:
            return None
        return estimate_hrv(snap.green, snap.timestamps)

    def calculate_spo2(self) -> Optional[float]:
        snap = self._sufficient_snapshot()
        if snap is None:
            return None
        if estimate_heart_rate(snap.green, snap.timestamps) is None:
            return None
        return estimate_spo2(snap.red, snap.green)

    def calculate_blood_pressure(self) -> Optional[BloodPressure]:
        snap = self._sufficient_snapshot()
        if snap is None:
            return None
        heart_rate = estimate_heart_rate(snap.green, snap.timestamps)
        if heart_rate is None:
            return None
        return estimate_blood_pressure(snap.red, snap.green, heart_rate)

    def analyze(self) -> Optional[Dict[str, Optional[float]]]:
        """
        Run every estimator on one snapshot.

        Returns
        -------
        dict or None
            ``{"heart_rate", "systolic", "diastolic", "hrv", "spo2"}`` with
            *None* for each unavailable value, or *None* when the buffer
            does not yet hold enough data.
        """
        snap = self._sufficient_snapshot()
        if snap is None:
            return None

        heart_rate = estimate_heart_rate(snap.green, snap.timestamps)
        result: Dict[str, Optional[float]] = {
            "heart_rate": heart_rate,
            "systolic": None,
            "diastolic": None,
            "hrv": estimate_hrv(snap.green, snap.timestamps),
            "spo2": None,
        }
        if heart_rate is not None:
            bp = estimate_blood_pressure(snap.red, snap.green, heart_rate)
            result["systolic"] = bp.systolic
            result["diastolic"] = bp.diastolic
            result["spo2"] = estimate_spo2(snap.red, snap.green)

        logger.debug("Analysis over %d samples: %s", len(snap), result)
        return result
