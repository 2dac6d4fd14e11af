"""
PPG Vitals — fingertip photoplethysmography vital-sign estimation.
Place your finger over the camera lens; the colour-channel intensities of
each frame are buffered, smoothed and peak-detected to estimate heart rate,
heart-rate variability, SpO2 and blood pressure.

These are approximate, non-clinical estimates.
"""

__version__ = "0.1.0"
__author__ = "ppg_vitals"
