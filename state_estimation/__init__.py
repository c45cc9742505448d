"""State estimation module for self-balancing robot.

This module provides the linear Kalman filter used for the attitude and
full-state estimates, and the telemetry records it consumes.

Public API:
    - EstimatorConfig: Configuration dataclass for estimator parameters
    - LinearKalmanFilter: Generic predict/update Kalman filter
    - TelemetryRecord: Raw telemetry frame from the robot board
    - DerivedMeasurement: Tilt, gyro, encoder and feedback channels
    - derive_measurement: TelemetryRecord -> DerivedMeasurement
"""

from state_estimation.config import EstimatorConfig
from state_estimation.kalman_filter import LinearKalmanFilter
from state_estimation.measurements import (
    TelemetryRecord,
    DerivedMeasurement,
    derive_measurement,
)

__all__ = [
    'EstimatorConfig',
    'LinearKalmanFilter',
    'TelemetryRecord',
    'DerivedMeasurement',
    'derive_measurement',
]
