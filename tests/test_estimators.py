"""
Unit tests for the vital-sign estimators and PPGAnalyzer.
Run with:  pytest tests/
"""

from __future__ import annotations

import numpy as np
import pytest

from ppg_vitals.buffer import SignalBuffer
from ppg_vitals.estimators import (
    BloodPressure,
    PPGAnalyzer,
    ac_component,
    estimate_blood_pressure,
    estimate_heart_rate,
    estimate_hrv,
    estimate_spo2,
    peak_intervals,
    red_green_ratio,
    signal_quality,
)
from ppg_vitals.extractor import ChannelSample

FPS = 30.0


def _timestamps(n: int) -> np.ndarray:
    return np.arange(n) * 1000.0 / FPS


def _sine(hz: float, n: int = 450, mean: float = 100.0, amp: float = 5.0) -> np.ndarray:
    t = np.arange(n) / FPS
    return mean + amp * np.sin(2 * np.pi * hz * t)


def _fill(buffer: SignalBuffer, red, green, blue=None) -> None:
    if blue is None:
        blue = np.full(len(green), 40.0)
    for i, (r, g, b) in enumerate(zip(red, green, blue)):
        buffer.append(ChannelSample(float(r), float(g), float(b), i * 1000.0 / FPS))


def _analyzer_with_pulse(n: int = 450) -> PPGAnalyzer:
    analyzer = PPGAnalyzer(SignalBuffer(fps=FPS))
    _fill(analyzer.buffer, _sine(1.2, n, mean=150.0, amp=2.0), _sine(1.2, n))
    return analyzer


# ---------------------------------------------------------------------------
# Beat timing
# ---------------------------------------------------------------------------

class TestPeakIntervals:

    def test_interval_guard_is_exclusive(self):
        # Intervals of 0.30, 0.31, 1.99 and 2.00 s
        timestamps = np.array([0.0, 300.0, 610.0, 2600.0, 4600.0])
        intervals = peak_intervals([0, 1, 2, 3, 4], timestamps)
        assert list(intervals) == pytest.approx([0.31, 1.99])

    def test_adjacent_peaks_are_filtered_downstream(self):
        # Peaks two samples apart (66 ms) are rejected, not merged
        intervals = peak_intervals([10, 12, 37], _timestamps(50))
        assert list(intervals) == pytest.approx([25 / FPS])

    def test_fewer_than_two_peaks(self):
        assert peak_intervals([5], _timestamps(10)).size == 0


class TestHeartRate:
    # The 30–200 BPM clamp cannot trigger here: only intervals in (0.3, 2.0) s
    # are averaged, so 60 / mean already lies strictly inside the range.

    def test_synthetic_72_bpm(self):
        """A noiseless 1.2 Hz green sine must give ~72 BPM."""
        hr = estimate_heart_rate(_sine(1.2), _timestamps(450))
        assert hr is not None
        assert abs(hr - 72.0) < 5.0, f"Expected ~72 BPM, got {hr:.1f}"

    def test_fast_pulse(self):
        hr = estimate_heart_rate(_sine(3.0), _timestamps(450))
        assert hr is not None
        assert 30.0 <= hr <= 200.0
        assert abs(hr - 180.0) < 5.0, f"Expected ~180 BPM, got {hr:.1f}"

    def test_slow_pulse(self):
        hr = estimate_heart_rate(_sine(0.55), _timestamps(450))
        assert hr is not None
        assert 30.0 <= hr <= 200.0
        assert abs(hr - 33.0) < 3.0, f"Expected ~33 BPM, got {hr:.1f}"

    def test_flat_line_unavailable(self):
        assert estimate_heart_rate(np.full(450, 90.0), _timestamps(450)) is None

    def test_intervals_out_of_range_unavailable(self):
        # One peak every 90 samples = 3 s, longer than any accepted beat
        assert estimate_heart_rate(_sine(1 / 3.0), _timestamps(450)) is None


class TestHRV:

    def test_periodic_signal_has_low_rmssd(self):
        hrv = estimate_hrv(_sine(1.2), _timestamps(450))
        assert hrv is not None
        assert hrv < 1.0, f"RMSSD should be ~0 for a periodic signal, got {hrv:.3f}"

    def test_rmssd_of_irregular_timestamps(self):
        # Same sampled waveform, but every other beat is stamped 20 ms late,
        # so successive intervals alternate 853 / 813 ms
        green = _sine(1.2)
        timestamps = _timestamps(450).copy()
        period = 25
        for start in range(period, 450, 2 * period):
            timestamps[start:start + period] += 20.0
        hrv = estimate_hrv(green, timestamps)
        assert hrv == pytest.approx(40.0, abs=0.5)

    def test_flat_line_unavailable(self):
        assert estimate_hrv(np.full(450, 90.0), _timestamps(450)) is None

    def test_too_few_beats(self):
        # 2 s of signal at 1.2 Hz: at most two peaks
        assert estimate_hrv(_sine(1.2, n=60), _timestamps(60)) is None


# ---------------------------------------------------------------------------
# SpO2
# ---------------------------------------------------------------------------

class TestSpO2:

    def test_in_range(self):
        spo2 = estimate_spo2(_sine(1.2, mean=150.0, amp=2.0), _sine(1.2))
        assert spo2 is not None
        assert 70.0 <= spo2 <= 100.0

    def test_clamped_high(self):
        spo2 = estimate_spo2(_sine(1.2, mean=150.0, amp=0.1), _sine(1.2))
        assert spo2 == 100.0

    def test_clamped_low(self):
        spo2 = estimate_spo2(_sine(1.2, mean=50.0, amp=20.0), _sine(1.2, mean=200.0, amp=1.0))
        assert spo2 == 70.0

    def test_zero_dc_unavailable(self):
        alternating = np.tile([1.0, -1.0], 225)
        assert np.mean(alternating) == 0.0
        assert estimate_spo2(alternating, alternating) is None
        assert estimate_spo2(np.zeros(450), _sine(1.2)) is None

    def test_flat_green_unavailable(self):
        assert estimate_spo2(_sine(1.2), np.full(450, 80.0)) is None

    def test_ac_component(self):
        x = np.array([1.0, 3.0, 1.0, 3.0])
        assert ac_component(x) == pytest.approx(1.0)

    def test_signal_quality_bounds(self):
        assert signal_quality(np.full(10, 5.0), np.full(10, 5.0)) == 0.0
        assert signal_quality(_sine(1.2, amp=10.0), _sine(1.2, amp=10.0)) == 1.0


# ---------------------------------------------------------------------------
# Blood pressure
# ---------------------------------------------------------------------------

class TestBloodPressure:

    def test_exact_coefficients(self):
        bp = estimate_blood_pressure(np.full(450, 120.0), np.full(450, 100.0), heart_rate=80.0)
        # hr 3.0, amplitude 0, variability 0, ratio (1.2 - 1) * 10 = 2.0
        assert bp.systolic == pytest.approx(95.0)
        assert bp.diastolic == pytest.approx(61.8)

    def test_clamped_high(self):
        green = _sine(1.2, amp=50.0)
        bp = estimate_blood_pressure(green, green, heart_rate=150.0)
        assert bp == BloodPressure(200.0, 120.0)

    def test_clamped_low(self):
        flat = np.full(450, 100.0)
        bp = estimate_blood_pressure(flat, flat, heart_rate=0.0)
        assert bp == BloodPressure(80.0, 50.0)

    def test_red_green_ratio_fallbacks(self):
        assert red_green_ratio([], [1.0, 2.0]) == 1.0
        assert red_green_ratio([1.0], []) == 1.0
        assert red_green_ratio([5.0], [0.0]) == 1.0
        assert red_green_ratio([150.0], [100.0]) == pytest.approx(1.5)


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------

class TestPPGAnalyzer:

    def test_insufficient_data_all_unavailable(self):
        analyzer = _analyzer_with_pulse(n=449)
        assert not analyzer.has_enough_data()
        assert analyzer.calculate_heart_rate() is None
        assert analyzer.calculate_hrv() is None
        assert analyzer.calculate_spo2() is None
        assert analyzer.calculate_blood_pressure() is None
        assert analyzer.analyze() is None

    def test_synthetic_pulse_scenario(self):
        analyzer = _analyzer_with_pulse()
        assert analyzer.has_enough_data()

        hr = analyzer.calculate_heart_rate()
        assert hr is not None and abs(hr - 72.0) < 5.0

        hrv = analyzer.calculate_hrv()
        assert hrv is not None and hrv < 1.0

        spo2 = analyzer.calculate_spo2()
        assert spo2 is not None and 70.0 <= spo2 <= 100.0

        bp = analyzer.calculate_blood_pressure()
        assert bp is not None
        assert 80.0 <= bp.systolic <= 200.0
        assert 50.0 <= bp.diastolic <= 120.0

    def test_analyze_matches_individual_calls(self):
        analyzer = _analyzer_with_pulse()
        result = analyzer.analyze()
        bp = analyzer.calculate_blood_pressure()
        assert set(result) == {"heart_rate", "systolic", "diastolic", "hrv", "spo2"}
        assert result["heart_rate"] == analyzer.calculate_heart_rate()
        assert result["hrv"] == analyzer.calculate_hrv()
        assert result["spo2"] == analyzer.calculate_spo2()
        assert (result["systolic"], result["diastolic"]) == (bp.systolic, bp.diastolic)

    def test_flat_line_scenario(self):
        analyzer = PPGAnalyzer()
        flat = np.full(450, 128.0)
        _fill(analyzer.buffer, flat, flat, flat)
        assert analyzer.has_enough_data()
        assert analyzer.calculate_heart_rate() is None
        assert analyzer.calculate_hrv() is None
        assert analyzer.calculate_spo2() is None
        assert analyzer.calculate_blood_pressure() is None
        assert analyzer.analyze() == {
            "heart_rate": None,
            "systolic": None,
            "diastolic": None,
            "hrv": None,
            "spo2": None,
        }

    def test_zero_channels_spo2_unavailable(self):
        analyzer = PPGAnalyzer()
        zeros = np.zeros(450)
        _fill(analyzer.buffer, zeros, zeros, zeros)
        assert analyzer.calculate_spo2() is None

    def test_clear_data_resets_everything(self):
        analyzer = _analyzer_with_pulse()
        assert analyzer.calculate_heart_rate() is not None
        analyzer.clear_data()
        assert not analyzer.has_enough_data()
        assert analyzer.calculate_heart_rate() is None
        assert analyzer.calculate_hrv() is None
        assert analyzer.calculate_spo2() is None
        assert analyzer.calculate_blood_pressure() is None

    def test_add_frame_passthrough(self):
        analyzer = PPGAnalyzer()
        frame = np.full((8, 8, 3), 60, dtype=np.uint8)
        sample = analyzer.add_frame(frame, 8, 8, timestamp_ms=0.0)
        assert sample is not None
        assert len(analyzer.buffer) == 1
