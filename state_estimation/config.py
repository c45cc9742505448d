"""State estimator configuration parameters.

Single source of truth for calibration and Kalman filter settings.
See config/estimator_params.yaml for parameter values.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from robot_dynamics.errors import ConfigurationError
from robot_dynamics.matrix_literal import as_matrix
from robot_dynamics.parameters import STATE_DIMENSION
from robot_dynamics._internal.validation import (
    load_yaml_mapping,
    validate_positive,
    validate_non_negative,
    validate_positive_integer,
    validate_non_negative_integer,
)


@dataclass(frozen=True)
class EstimatorConfig:
    """Configuration parameters for calibration and state estimation.

    All parameters immutable after construction (frozen=True).

    Attributes:
        sampling_period_s: Nominal timestep dt injected into every cycle
        calibration_sample_count: Samples averaged before control (N)
        discarded_leading_records: Start-up records skipped before calibration
        voltage_error_v: Standard deviation of the actuation voltage
        encoder_error_fraction: Wheel angle error as a fraction of one tick
        full_state_initial_covariance: P0 of the full-state filter, row-major
        attitude_initial_angle_variance_deg2: Tilt entry of the attitude P0
    """

    sampling_period_s: float = 0.01
    calibration_sample_count: int = 200
    discarded_leading_records: int = 9
    voltage_error_v: float = 0.1
    encoder_error_fraction: float = 0.1
    full_state_initial_covariance: Tuple[Tuple[float, ...], ...] = tuple(
        tuple(row) for row in (1e-4 * np.eye(STATE_DIMENSION)).tolist()
    )
    attitude_initial_angle_variance_deg2: float = 1.0

    def __post_init__(self) -> None:
        """Validate parameters satisfy constraints."""
        validate_positive(self.sampling_period_s, 'sampling_period_s')
        validate_positive_integer(
            self.calibration_sample_count, 'calibration_sample_count'
        )
        validate_non_negative_integer(
            self.discarded_leading_records, 'discarded_leading_records'
        )
        validate_non_negative(self.voltage_error_v, 'voltage_error_v')
        validate_positive(self.encoder_error_fraction, 'encoder_error_fraction')
        validate_positive(
            self.attitude_initial_angle_variance_deg2,
            'attitude_initial_angle_variance_deg2',
        )

        covariance = self.full_state_initial_covariance_matrix
        if covariance.shape != (STATE_DIMENSION, STATE_DIMENSION):
            raise ConfigurationError(
                f"full_state_initial_covariance must be "
                f"({STATE_DIMENSION}, {STATE_DIMENSION}), got {covariance.shape}"
            )
        if not np.allclose(covariance, covariance.T):
            raise ConfigurationError("full_state_initial_covariance must be symmetric")
        if np.min(np.linalg.eigvalsh(covariance)) < 0:
            raise ConfigurationError(
                "full_state_initial_covariance must be positive semi-definite"
            )

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'EstimatorConfig':
        """Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML file containing estimator parameters

        Returns:
            EstimatorConfig instance

        Raises:
            FileNotFoundError: If YAML file does not exist
            ConfigurationError: If parameters are invalid
        """
        config = load_yaml_mapping(yaml_path)

        defaults = cls()
        covariance = config.get('full_state_initial_covariance')
        if covariance is None:
            covariance_rows = defaults.full_state_initial_covariance
        else:
            covariance_rows = tuple(
                tuple(row) for row in
                as_matrix(covariance, 'full_state_initial_covariance').tolist()
            )

        return cls(
            sampling_period_s=config.get(
                'sampling_period_s', defaults.sampling_period_s
            ),
            calibration_sample_count=config.get(
                'calibration_sample_count', defaults.calibration_sample_count
            ),
            discarded_leading_records=config.get(
                'discarded_leading_records', defaults.discarded_leading_records
            ),
            voltage_error_v=config.get('voltage_error_v', defaults.voltage_error_v),
            encoder_error_fraction=config.get(
                'encoder_error_fraction', defaults.encoder_error_fraction
            ),
            full_state_initial_covariance=covariance_rows,
            attitude_initial_angle_variance_deg2=config.get(
                'attitude_initial_angle_variance_deg2',
                defaults.attitude_initial_angle_variance_deg2,
            ),
        )

    @property
    def full_state_initial_covariance_matrix(self) -> np.ndarray:
        """P0 of the full-state filter as an array (4, 4)."""
        return np.array(self.full_state_initial_covariance, dtype=float)

    @property
    def voltage_variance_v2(self) -> float:
        """Actuation voltage variance, the full-state process noise."""
        return self.voltage_error_v ** 2
