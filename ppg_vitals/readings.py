"""
Vital readings.

Turns analysis result maps into typed, displayable records and provides the
summary statistics (average over a period, short-term trend) shown next to
a history of readings.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Mapping, Optional

HEART_RATE = "heart_rate"
BLOOD_PRESSURE = "blood_pressure"
HRV = "hrv"
SPO2 = "spo2"

KINDS = (HEART_RATE, BLOOD_PRESSURE, HRV, SPO2)

_UNITS = {
    HEART_RATE: "BPM",
    BLOOD_PRESSURE: "mmHg",
    HRV: "ms",
    SPO2: "%",
}

TREND_THRESHOLD_PERCENT = 5.0


def _round_half_up(value: float) -> int:
    # Display rounding is half away from zero, not banker's rounding
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


@dataclass(frozen=True)
class VitalReading:
    kind: str
    value: float
    timestamp: datetime
    secondary_value: Optional[float] = None     # diastolic for blood pressure
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in KINDS:
            raise ValueError(f"Unknown reading kind {self.kind!r}")

    @property
    def unit(self) -> str:
        return _UNITS[self.kind]

    @property
    def display_value(self) -> str:
        if self.kind == HEART_RATE:
            return f"{_round_half_up(self.value)} BPM"
        if self.kind == BLOOD_PRESSURE:
            diastolic = _round_half_up(self.secondary_value or 0.0)
            return f"{_round_half_up(self.value)}/{diastolic} mmHg"
        if self.kind == HRV:
            return f"{self.value:.1f} ms"
        return f"{_round_half_up(self.value)}%"

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "value": self.value,
            "secondary_value": self.secondary_value,
            "timestamp": self.timestamp.isoformat(),
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "VitalReading":
        secondary = data.get("secondary_value")
        return cls(
            kind=data["type"],
            value=float(data["value"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            secondary_value=float(secondary) if secondary is not None else None,
            notes=data.get("notes"),
        )


def readings_from_measurements(
    measurements: Mapping[str, Optional[float]],
    timestamp: datetime,
) -> List[VitalReading]:
    """Build one reading per available vital in an analysis result map."""
    readings: List[VitalReading] = []
    if measurements.get("heart_rate") is not None:
        readings.append(VitalReading(HEART_RATE, measurements["heart_rate"], timestamp))
    systolic = measurements.get("systolic")
    diastolic = measurements.get("diastolic")
    if systolic is not None and diastolic is not None:
        readings.append(
            VitalReading(BLOOD_PRESSURE, systolic, timestamp, secondary_value=diastolic)
        )
    if measurements.get("hrv") is not None:
        readings.append(VitalReading(HRV, measurements["hrv"], timestamp))
    if measurements.get("spo2") is not None:
        readings.append(VitalReading(SPO2, measurements["spo2"], timestamp))
    return readings


def average_value(
    readings: Iterable[VitalReading],
    kind: str,
    start: datetime,
    end: datetime,
) -> Optional[float]:
    """Mean primary value of *kind* readings taken within [start, end]."""
    values = [
        r.value for r in readings
        if r.kind == kind and start <= r.timestamp <= end
    ]
    if not values:
        return None
    return sum(values) / len(values)


def trend(
    readings: Iterable[VitalReading],
    kind: str,
    now: datetime,
    days: int = 7,
) -> str:
    """
    Compare the oldest and newest *kind* reading of the last *days* days.

    Returns ``"increasing"`` / ``"decreasing"`` for a change beyond ±5 %,
    otherwise ``"stable"``.
    """
    since = now - timedelta(days=days)
    recent = sorted(
        (r for r in readings if r.kind == kind and since <= r.timestamp <= now),
        key=lambda r: r.timestamp,
    )
    if len(recent) < 2 or recent[0].value == 0:
        return "stable"

    first, last = recent[0].value, recent[-1].value
    change = (last - first) / first * 100.0
    if change > TREND_THRESHOLD_PERCENT:
        return "increasing"
    if change < -TREND_THRESHOLD_PERCENT:
        return "decreasing"
    return "stable"
