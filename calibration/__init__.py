"""Calibration module for sensor bias and noise characterization.

Public API:
    - CalibrationStage: Consumes N rest-pose records from the telemetry stream
    - CalibrationAccumulator: Single-pass running sums per channel
    - CalibrationStatistics: Finalized per-channel mean/variance
    - ChannelStatistics: Mean and variance of one channel
"""

from calibration.statistics import (
    CalibrationAccumulator,
    CalibrationStatistics,
    ChannelStatistics,
    TILT_CHANNEL,
    GYRO_CHANNEL,
)
from calibration.stage import CalibrationStage

__all__ = [
    'CalibrationStage',
    'CalibrationAccumulator',
    'CalibrationStatistics',
    'ChannelStatistics',
    'TILT_CHANNEL',
    'GYRO_CHANNEL',
]
