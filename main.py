#!/usr/bin/env python3
"""
PPG Vitals – command-line entry point.

Usage
-----
    python main.py [OPTIONS]

Options
-------
    --source SRC           Camera index or video file (default: 0)
    --synthetic-bpm FLOAT  Use a simulated fingertip stream at this rate
    --fps INT              Nominal frame rate (default: 30)
    --analysis-seconds F   Data required before estimating (default: 15)
    --duration FLOAT       Measurement length in seconds (default: 30)
    --json                 Print results as JSON lines
    --verbose              Debug logging

Camera input is measured in real time with a 1-second analysis tick.
Video files and the synthetic stream are processed as fast as they can be
read, with one analysis per ``fps`` frames.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from typing import Dict, Iterable, Optional

from ppg_vitals.buffer import SignalBuffer
from ppg_vitals.camera import Frame, FrameSource, synthetic_frames
from ppg_vitals.estimators import PPGAnalyzer
from ppg_vitals.readings import readings_from_measurements
from ppg_vitals.session import MeasurementSession

logger = logging.getLogger("ppg_vitals")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fingertip PPG vital-sign estimation",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--source", default="0",
                        help="Camera index or path to a video file")
    parser.add_argument("--synthetic-bpm", type=float, default=None,
                        help="Ignore --source and simulate a pulse at this BPM")
    parser.add_argument("--fps", type=int, default=30,
                        help="Nominal capture frame rate")
    parser.add_argument("--analysis-seconds", type=float, default=15.0,
                        help="Seconds of signal needed before estimating")
    parser.add_argument("--duration", type=float, default=30.0,
                        help="Measurement length in seconds")
    parser.add_argument("--json", action="store_true",
                        help="Emit one JSON object per analysis")
    parser.add_argument("--verbose", action="store_true",
                        help="Enable debug logging")
    return parser.parse_args(argv)


def _fmt(value: Optional[float], pattern: str = ".0f") -> str:
    return "--" if value is None else format(value, pattern)


def print_measurements(measurements: Dict[str, Optional[float]], as_json: bool) -> None:
    if as_json:
        print(json.dumps(measurements))
        return
    print(
        f"HR={_fmt(measurements['heart_rate'])} BPM  "
        f"BP={_fmt(measurements['systolic'])}/{_fmt(measurements['diastolic'])} mmHg  "
        f"HRV={_fmt(measurements['hrv'], '.1f')} ms  "
        f"SpO2={_fmt(measurements['spo2'])}%"
    )


def print_summary(measurements: Optional[Dict[str, Optional[float]]], as_json: bool) -> None:
    if measurements is None:
        logger.warning("Not enough signal for an estimate – keep the finger still on the lens.")
        return
    readings = readings_from_measurements(measurements, datetime.now())
    if as_json:
        print(json.dumps([r.to_dict() for r in readings]))
        return
    for reading in readings:
        print(f"{reading.kind:>15}: {reading.display_value}")


# ---------------------------------------------------------------------------
# Measurement loops
# ---------------------------------------------------------------------------

def measure_live(source: FrameSource, session: MeasurementSession) -> Optional[dict]:
    with source, session:
        for frame, timestamp_ms in source.frames():
            if not session.is_running:
                break
            height, width = frame.shape[:2]
            session.submit_frame(frame, width, height, timestamp_ms)
    return session.latest


def measure_offline(
    frames: Iterable[Frame],
    session: MeasurementSession,
    fps: int,
) -> Optional[dict]:
    analyzer = session.analyzer
    analyzer.clear_data()
    max_frames = int(fps * session.duration_seconds) if session.duration_seconds else None
    for idx, (frame, timestamp_ms) in enumerate(frames, start=1):
        height, width = frame.shape[:2]
        analyzer.add_frame(frame, width, height, timestamp_ms)
        if idx % fps == 0:
            session.tick()
        if max_frames is not None and idx >= max_frames:
            break
    return session.latest


def run(args: argparse.Namespace) -> int:
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s – %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        buffer = SignalBuffer(fps=args.fps, analysis_seconds=args.analysis_seconds)
    except ValueError as exc:
        logger.error("%s", exc)
        return 1
    session = MeasurementSession(PPGAnalyzer(buffer), duration_seconds=args.duration)
    session.add_listener(lambda m: print_measurements(m, args.json))

    logger.info("Place a fingertip over the lens and keep it still.")
    try:
        if args.synthetic_bpm is not None:
            frames = synthetic_frames(
                bpm=args.synthetic_bpm, fps=args.fps, seconds=args.duration
            )
            final = measure_offline(frames, session, args.fps)
        else:
            src = int(args.source) if args.source.isdigit() else args.source
            source = FrameSource(src, fps=args.fps)
            if source.is_file:
                with source:
                    final = measure_offline(source.frames(), session, args.fps)
            else:
                final = measure_live(source, session)
    except RuntimeError as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted.")
        final = session.stop()

    print_summary(final, args.json)
    return 0


def main() -> None:
    sys.exit(run(parse_args()))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
