"""Two-stage Kalman filter cascade.

Stage 1 (attitude, degrees) fuses the gyro rate with the accelerometer
tilt and tracks the gyro bias:

    x = [angle, bias],  angle_dot = gyro − bias

Stage 2 (full state, radians) fuses the bias-corrected attitude with the
wheel encoder through the linearized robot model:

    x = [theta, dtheta, phi, dphi],  y = x + noise

Both filters are built from the calibration statistics and discretized at
the fixed nominal timestep.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from calibration.statistics import CalibrationStatistics
from robot_dynamics.errors import NumericalError
from robot_dynamics.linearization import DynamicsModel
from robot_dynamics.parameters import STATE_DIMENSION
from state_estimation.config import EstimatorConfig
from state_estimation.kalman_filter import LinearKalmanFilter
from state_estimation.measurements import DerivedMeasurement
from state_estimation._internal.imu_fusion import (
    RADIANS_PER_DEGREE,
    encoder_rate_radps,
    encoder_ticks_to_rad,
    feedback_to_voltage,
)
from control_pipeline.actuation import ActuatorLimits

logger = logging.getLogger(__name__)

ATTITUDE_FILTER_NAME = 'attitude'
FULL_STATE_FILTER_NAME = 'full_state'

ATTITUDE_STATE_MATRIX = np.array([[0.0, -1.0], [0.0, 0.0]])
ATTITUDE_CONTROL_MATRIX = np.array([[1.0], [0.0]])
ATTITUDE_OBSERVATION_MATRIX = np.array([[1.0, 0.0]])


def build_attitude_filter(
    calibration: CalibrationStatistics,
    config: EstimatorConfig,
) -> LinearKalmanFilter:
    """Attitude filter seeded from the rest-pose statistics.

    x0 = [0, gyro_mean], P0 = diag(angle0_var, gyro_var), input noise
    gyro_var, measurement noise angle_var.
    """
    gyro = calibration.gyro
    tilt = calibration.tilt
    return LinearKalmanFilter.from_continuous(
        state_matrix=ATTITUDE_STATE_MATRIX,
        control_matrix=ATTITUDE_CONTROL_MATRIX,
        observation_matrix=ATTITUDE_OBSERVATION_MATRIX,
        input_noise_variance=gyro.variance,
        observation_noise=np.array([[tilt.variance]]),
        initial_state=[0.0, gyro.mean],
        initial_covariance=np.diag(
            [config.attitude_initial_angle_variance_deg2, gyro.variance]
        ),
        sampling_period_s=config.sampling_period_s,
        name=ATTITUDE_FILTER_NAME,
    )


def full_state_observation_noise(
    calibration: CalibrationStatistics,
    config: EstimatorConfig,
    encoder_resolution_ppr: int,
) -> np.ndarray:
    """W = diag(angle_var·(π/180)², gyro_var·(π/180)², e², (e/dt)²).

    e is the wheel angle error: a fraction of one encoder tick in radians.
    """
    encoder_error_rad = encoder_ticks_to_rad(
        config.encoder_error_fraction, encoder_resolution_ppr
    )
    return np.diag([
        calibration.tilt.variance * RADIANS_PER_DEGREE ** 2,
        calibration.gyro.variance * RADIANS_PER_DEGREE ** 2,
        encoder_error_rad ** 2,
        (encoder_error_rad / config.sampling_period_s) ** 2,
    ])


def build_full_state_filter(
    model: DynamicsModel,
    calibration: CalibrationStatistics,
    config: EstimatorConfig,
) -> LinearKalmanFilter:
    """Full-state filter over the linearized robot model, C = I."""
    return LinearKalmanFilter.from_continuous(
        state_matrix=model.state_matrix,
        control_matrix=model.control_matrix,
        observation_matrix=np.eye(STATE_DIMENSION),
        input_noise_variance=config.voltage_variance_v2,
        observation_noise=full_state_observation_noise(
            calibration, config, model.constants.encoder_resolution_ppr
        ),
        initial_state=np.zeros(STATE_DIMENSION),
        initial_covariance=config.full_state_initial_covariance_matrix,
        sampling_period_s=config.sampling_period_s,
        name=FULL_STATE_FILTER_NAME,
    )


@dataclass(frozen=True)
class CascadeEstimate:
    """Both filter outputs for one cycle.

    Attributes:
        attitude: [angle_deg, bias_dps] after stage 1
        full_state_measurement: Stage 2 measurement vector (rad, rad/s)
        input_voltage_v: Stage 2 input recovered from motor feedback
        full_state: [theta, dtheta, phi, dphi] after stage 2
        failed_filters: Names of filters that held their previous estimate
    """

    attitude: np.ndarray
    full_state_measurement: np.ndarray
    input_voltage_v: float
    full_state: np.ndarray
    failed_filters: tuple = ()


class FilterCascade:
    """Runs the attitude and full-state filters in order each cycle.

    The only cross-cycle state is held in the two filters and the encoder
    tick accumulator.
    """

    def __init__(
        self,
        attitude_filter: LinearKalmanFilter,
        full_state_filter: LinearKalmanFilter,
        calibration: CalibrationStatistics,
        encoder_resolution_ppr: int,
        sampling_period_s: float,
        actuator_limits: Optional[ActuatorLimits] = None,
    ) -> None:
        self._attitude_filter = attitude_filter
        self._full_state_filter = full_state_filter
        self._tilt_mean_deg = calibration.tilt.mean
        self._encoder_resolution_ppr = encoder_resolution_ppr
        self._sampling_period_s = sampling_period_s
        self._actuator_limits = actuator_limits or ActuatorLimits()
        self._encoder_ticks = 0.0
        self._numerical_errors: Dict[str, int] = {
            ATTITUDE_FILTER_NAME: 0,
            FULL_STATE_FILTER_NAME: 0,
        }

    @classmethod
    def build(
        cls,
        model: DynamicsModel,
        calibration: CalibrationStatistics,
        config: EstimatorConfig,
        actuator_limits: Optional[ActuatorLimits] = None,
    ) -> 'FilterCascade':
        """Create both filters from the model and calibration statistics."""
        cascade = cls(
            attitude_filter=build_attitude_filter(calibration, config),
            full_state_filter=build_full_state_filter(model, calibration, config),
            calibration=calibration,
            encoder_resolution_ppr=model.constants.encoder_resolution_ppr,
            sampling_period_s=config.sampling_period_s,
            actuator_limits=actuator_limits,
        )
        logger.info(
            "Filter cascade ready: dt %.4f s, tilt mean %.4f deg, gyro bias %.4f deg/s",
            config.sampling_period_s, calibration.tilt.mean, calibration.gyro.mean,
        )
        return cascade

    def step(self, measurement: DerivedMeasurement) -> CascadeEstimate:
        """Advance both filters by one sample.

        A NumericalError in either filter is logged and counted; that filter
        keeps its previous estimate and the cascade continues.
        """
        failed = []

        attitude = self._run_filter(
            self._attitude_filter,
            control=[measurement.gyro_rate_dps],
            measurement=[measurement.tilt_deg],
            failed=failed,
        )
        angle_deg, bias_dps = attitude

        self._encoder_ticks += measurement.encoder_delta_ticks
        observed = np.array([
            (angle_deg - self._tilt_mean_deg) * RADIANS_PER_DEGREE,
            (measurement.gyro_rate_dps - bias_dps) * RADIANS_PER_DEGREE,
            encoder_ticks_to_rad(self._encoder_ticks, self._encoder_resolution_ppr),
            encoder_rate_radps(
                measurement.encoder_delta_ticks,
                self._encoder_resolution_ppr,
                self._sampling_period_s,
            ),
        ])
        input_voltage = feedback_to_voltage(
            measurement.motor_feedback,
            self._actuator_limits.command_limit,
            self._actuator_limits.full_scale_voltage_v,
        )

        full_state = self._run_filter(
            self._full_state_filter,
            control=[input_voltage],
            measurement=observed,
            failed=failed,
        )

        return CascadeEstimate(
            attitude=attitude,
            full_state_measurement=observed,
            input_voltage_v=input_voltage,
            full_state=full_state,
            failed_filters=tuple(failed),
        )

    def _run_filter(self, kalman, control, measurement, failed) -> np.ndarray:
        try:
            return kalman.step(control, measurement)
        except NumericalError as error:
            self._numerical_errors[kalman.name] += 1
            failed.append(kalman.name)
            logger.warning("%s filter held its estimate: %s", kalman.name, error)
            return kalman.state

    @property
    def attitude_filter(self) -> LinearKalmanFilter:
        return self._attitude_filter

    @property
    def full_state_filter(self) -> LinearKalmanFilter:
        return self._full_state_filter

    @property
    def encoder_ticks(self) -> float:
        """Accumulated encoder ticks since the cascade was built."""
        return self._encoder_ticks

    @property
    def wheel_angle_rad(self) -> float:
        return encoder_ticks_to_rad(self._encoder_ticks, self._encoder_resolution_ppr)

    @property
    def numerical_errors(self) -> Dict[str, int]:
        """NumericalError count per filter name."""
        return dict(self._numerical_errors)

    @property
    def is_finite(self) -> bool:
        return bool(
            np.all(np.isfinite(self._attitude_filter.state))
            and np.all(np.isfinite(self._full_state_filter.state))
            and math.isfinite(self._encoder_ticks)
        )
